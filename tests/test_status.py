import pytest

from tvspotter.services.status import (
    UNRECOGNIZED_STATUS,
    decode_status,
    encode_status,
    format_status,
)


def test_documented_codes():
    assert encode_status("tv", "close,0") == 200
    assert encode_status("tv", "none,15") == 3015
    assert encode_status("movie", "theatrical-already-released") == 11
    assert encode_status("movie", "digitalPhysical-close,3") == 223
    assert encode_status("tv", "unknown-garbage") == -1


@pytest.mark.parametrize(
    "kind, raw, code",
    [
        ("tv", "ended", 0),
        ("tv", "already-released", 10),
        ("movie", "digitalPhysical-already-released", 12),
        ("movie", "theatrical-close,12", 2112),
        ("movie", "theatrical-none,7", 317),
        ("movie", "digitalPhysical-none,120", 32120),
        ("tv", "close,4", 204),
    ],
)
def test_exact_and_magnitude_categories(kind, raw, code):
    assert encode_status(kind, raw) == code


@pytest.mark.parametrize(
    "kind, raw",
    [
        ("tv", None),
        ("tv", ""),
        ("tv", "close"),
        ("tv", "close,"),
        ("tv", "close,-3"),
        ("tv", "close,03"),
        ("tv", "theatrical-close,3"),
        ("movie", "close,3"),
        ("movie", "ended"),
        ("movie", "digitalPhysical-soon,3"),
    ],
)
def test_unrecognised_input_is_sentinel(kind, raw):
    assert encode_status(kind, raw) == UNRECOGNIZED_STATUS


def test_encode_never_raises_on_odd_types():
    assert encode_status("tv", 42) == UNRECOGNIZED_STATUS


def test_magnitude_stops_at_next_comma():
    assert encode_status("tv", "none,15,extra") == 3015


def test_decomposition_recovers_base_and_magnitude():
    cases = [
        ("tv", None, "close", 20),
        ("tv", None, "none", 30),
        ("movie", "theatrical", "close", 21),
        ("movie", "digitalPhysical", "close", 22),
        ("movie", "theatrical", "none", 31),
        ("movie", "digitalPhysical", "none", 32),
    ]
    for kind, milestone, category, base in cases:
        for days in (0, 7, 10, 365):
            code = encode_status(kind, format_status(category, days, milestone=milestone))
            digits = len(str(days))
            assert code // 10**digits == base
            assert code - base * 10**digits == days

            decoded = decode_status(code)
            assert decoded.base == base
            assert decoded.magnitude == days
            assert decoded.kind == kind
            assert decoded.milestone == milestone
            assert decoded.category == category


def test_decode_exact_categories():
    ended = decode_status(0)
    assert (ended.kind, ended.category, ended.magnitude) == ("tv", "ended", None)
    theatrical = decode_status(11)
    assert (theatrical.kind, theatrical.milestone, theatrical.category) == (
        "movie",
        "theatrical",
        "already-released",
    )


@pytest.mark.parametrize("code", [-1, 5, 13, 99, 400, 2005])
def test_decode_rejects_impossible_codes(code):
    assert decode_status(code) is None


def test_format_status():
    assert format_status("ended") == "ended"
    assert format_status("close", 3) == "close,3"
    assert format_status("already-released", milestone="theatrical") == "theatrical-already-released"
    assert format_status("none", 40, milestone="digitalPhysical") == "digitalPhysical-none,40"
