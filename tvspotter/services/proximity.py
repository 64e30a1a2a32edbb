"""Date proximity checks for release milestones."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta, timezone

from tvspotter.services.models import ProximityResult

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def to_utc_instant(value: date | datetime | str) -> datetime:
    """Coerce a date, datetime or ISO string into an aware UTC datetime.

    Plain dates and date-only strings are midnight UTC, naive datetimes are
    read as UTC. Unparseable strings raise ``ValueError``.
    """

    if isinstance(value, str):
        value = datetime.fromisoformat(value) if len(value) > 10 else date.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def difference_in_days(now: date | datetime | str, target: date | datetime | str) -> int:
    """Whole days from ``now`` to ``target``, rounded half-up."""

    delta = to_utc_instant(target) - to_utc_instant(now)
    return math.floor(delta / _ONE_DAY + 0.5)


def evaluate_proximity(
    now: date | datetime | str,
    target: date | datetime | str,
    threshold_days: int,
) -> ProximityResult:
    """Compare a milestone against ``now``.

    ``is_close`` is purely ``difference <= threshold``, so any date in the
    past counts as close; callers separate out the negative case.
    """

    difference = difference_in_days(now, target)
    logger.debug("Proximity of %s to %s: %s days", target, now, difference)
    return ProximityResult(difference_days=difference, is_close=difference <= threshold_days)
