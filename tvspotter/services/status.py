"""Compact integer encoding of release status text.

A raw status such as ``close,3`` or ``digitalPhysical-none,42`` is turned into
one decimal integer: a two-digit category base followed by the day magnitude
(``close,3`` -> ``20`` then ``3`` -> ``203``). The exact categories have no
magnitude and map straight onto their base. Anything unrecognised becomes
``UNRECOGNIZED_STATUS``.
"""

from __future__ import annotations

import re

from tvspotter.services.models import DecodedStatus, MediaKind

UNRECOGNIZED_STATUS = -1

ENDED = "ended"
ALREADY_RELEASED = "already-released"
CLOSE = "close"
NONE = "none"

THEATRICAL = "theatrical"
DIGITAL_PHYSICAL = "digitalPhysical"

# (kind, raw text) -> base code for categories carrying no magnitude.
_EXACT_CODES: dict[tuple[MediaKind, str], int] = {
    ("tv", ENDED): 0,
    ("tv", ALREADY_RELEASED): 10,
    ("movie", f"{THEATRICAL}-{ALREADY_RELEASED}"): 11,
    ("movie", f"{DIGITAL_PHYSICAL}-{ALREADY_RELEASED}"): 12,
}

# (kind, raw prefix) -> base code for categories followed by ",<days>".
_MAGNITUDE_CODES: dict[tuple[MediaKind, str], int] = {
    ("tv", CLOSE): 20,
    ("tv", NONE): 30,
    ("movie", f"{THEATRICAL}-{CLOSE}"): 21,
    ("movie", f"{DIGITAL_PHYSICAL}-{CLOSE}"): 22,
    ("movie", f"{THEATRICAL}-{NONE}"): 31,
    ("movie", f"{DIGITAL_PHYSICAL}-{NONE}"): 32,
}

_MAGNITUDE_PATTERN = re.compile(r"^(?P<prefix>[A-Za-z-]+),(?P<days>0|[1-9][0-9]*)(?:,.*)?$")

_BASES: dict[int, tuple[MediaKind, str | None, str]] = {
    0: ("tv", None, ENDED),
    10: ("tv", None, ALREADY_RELEASED),
    11: ("movie", THEATRICAL, ALREADY_RELEASED),
    12: ("movie", DIGITAL_PHYSICAL, ALREADY_RELEASED),
    20: ("tv", None, CLOSE),
    30: ("tv", None, NONE),
    21: ("movie", THEATRICAL, CLOSE),
    22: ("movie", DIGITAL_PHYSICAL, CLOSE),
    31: ("movie", THEATRICAL, NONE),
    32: ("movie", DIGITAL_PHYSICAL, NONE),
}


def format_status(category: str, difference_days: int | None = None, *, milestone: str | None = None) -> str:
    """Render the raw status text stored alongside the code."""

    text = f"{milestone}-{category}" if milestone else category
    if difference_days is not None:
        text = f"{text},{difference_days}"
    return text


def encode_status(kind: MediaKind, raw: str | None) -> int:
    """Encode a raw status for ``kind``; never raises."""

    if not raw or not isinstance(raw, str):
        return UNRECOGNIZED_STATUS

    exact = _EXACT_CODES.get((kind, raw))
    if exact is not None:
        return exact

    match = _MAGNITUDE_PATTERN.match(raw)
    if match is None:
        return UNRECOGNIZED_STATUS
    base = _MAGNITUDE_CODES.get((kind, match.group("prefix")))
    if base is None:
        return UNRECOGNIZED_STATUS
    days = match.group("days")
    return base * 10 ** len(days) + int(days)


def decode_status(code: int) -> DecodedStatus | None:
    """Split a status code back into base and magnitude.

    Returns ``None`` for the unrecognised sentinel or any value that no
    valid raw status can produce.
    """

    if code < 0:
        return None
    if code in _EXACT_CODES.values():
        kind, milestone, category = _BASES[code]
        return DecodedStatus(base=code, magnitude=None, kind=kind, milestone=milestone, category=category)

    digits = str(code)
    if len(digits) < 3:
        return None
    base = int(digits[:2])
    if base not in _MAGNITUDE_CODES.values():
        return None
    magnitude = digits[2:]
    if len(magnitude) > 1 and magnitude.startswith("0"):
        return None
    kind, milestone, category = _BASES[base]
    return DecodedStatus(
        base=base,
        magnitude=int(magnitude),
        kind=kind,
        milestone=milestone,
        category=category,
    )
