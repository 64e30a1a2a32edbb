import datetime as dt

import pytest

from tvspotter.services.proximity import difference_in_days, evaluate_proximity, to_utc_instant


def test_same_day_is_zero_and_close():
    for threshold in (0, 1, 30):
        result = evaluate_proximity("2024-01-01", "2024-01-01", threshold)
        assert result.difference_days == 0
        assert result.is_close is True


def test_future_date_within_and_beyond_threshold():
    assert evaluate_proximity(dt.date(2024, 1, 1), "2024-01-05", 4).is_close is True
    beyond = evaluate_proximity(dt.date(2024, 1, 1), "2024-01-06", 4)
    assert beyond.difference_days == 5
    assert beyond.is_close is False


def test_far_past_dates_still_count_as_close():
    result = evaluate_proximity("2024-01-01", "2019-06-01", 2)
    assert result.difference_days < 0
    assert result.is_close is True


@pytest.mark.parametrize(
    "now, target",
    [
        ("2024-01-01", "2024-03-01"),
        ("2023-12-25", "2024-01-01"),
        ("2024-02-28", "2024-02-28"),
    ],
)
def test_difference_is_antisymmetric(now, target):
    assert difference_in_days(now, target) == -difference_in_days(target, now)


def test_close_iff_difference_within_threshold():
    now = dt.date(2024, 1, 1)
    for offset in range(-5, 10):
        target = now + dt.timedelta(days=offset)
        for threshold in range(0, 6):
            result = evaluate_proximity(now, target, threshold)
            assert result.difference_days == offset
            assert result.is_close == (offset <= threshold)


def test_datetime_now_is_rounded_not_truncated():
    # 18:00 the day before is 0.25 days away -> 0; 06:00 is 0.75 days away -> 1.
    late = dt.datetime(2023, 12, 31, 18, 0, tzinfo=dt.timezone.utc)
    early = dt.datetime(2023, 12, 31, 6, 0, tzinfo=dt.timezone.utc)
    assert difference_in_days(late, "2024-01-01") == 0
    assert difference_in_days(early, "2024-01-01") == 1


def test_half_day_rounds_up():
    noon = dt.datetime(2023, 12, 31, 12, 0, tzinfo=dt.timezone.utc)
    assert difference_in_days(noon, "2024-01-01") == 1
    assert difference_in_days("2024-01-01", noon) == 0


def test_instants_are_utc():
    assert to_utc_instant("2024-01-01") == dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
    assert to_utc_instant(dt.datetime(2024, 1, 1, 5)).tzinfo == dt.timezone.utc
    shifted = dt.datetime(2024, 1, 1, 2, tzinfo=dt.timezone(dt.timedelta(hours=2)))
    assert to_utc_instant(shifted) == dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


def test_invalid_date_fails_at_parse():
    with pytest.raises(ValueError):
        evaluate_proximity("2024-01-01", "not-a-date", 3)
