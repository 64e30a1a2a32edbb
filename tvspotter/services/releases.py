"""Release checks for tracked shows and movies.

Each check pulls fresh metadata, measures how far the next milestone is from
now, queues a calendar reminder when it is close (or has just passed) and
returns the record to persist with its encoded status.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable

from tvspotter.core.config import get_settings
from tvspotter.services import status as st
from tvspotter.services.models import (
    MISSING_RELEASE_DATE,
    ReleaseQuery,
    TrackedMovie,
    TrackedRecord,
    TrackedShow,
)
from tvspotter.services.notifier import NotificationDispatcher
from tvspotter.services.proximity import evaluate_proximity
from tvspotter.services.tmdb import ReleaseDateEntry, ReleaseType, TMDbClient, TMDbPayloadError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_episode_label(season: int, episode: int) -> str:
    return f"S{season:02d}E{episode:02d}"


def release_day(entry: ReleaseDateEntry) -> str:
    """Cut an upstream timestamp such as ``2021-06-16T00:00:00.000Z`` to its date."""

    raw = entry.release_date
    return raw[: raw.rindex("T")] if "T" in raw else raw


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


class ReleaseChecker:
    """Evaluates tracked items against the upstream feed."""

    def __init__(
        self,
        tmdb: TMDbClient,
        dispatcher: NotificationDispatcher,
        *,
        clock: Callable[[], datetime] | None = None,
        regions: list[str] | None = None,
    ) -> None:
        self.tmdb = tmdb
        self.dispatcher = dispatcher
        self.clock = clock or utc_now
        self.regions = regions or get_settings().release_regions

    async def check(self, query: ReleaseQuery) -> TrackedRecord:
        if query.kind == "tv":
            return await self.check_tv(query.external_id, query.threshold_days)
        if query.kind == "movie":
            return await self.check_movie(query.external_id, query.threshold_days)
        raise ValueError(f"Unknown media kind: {query.kind}")

    def _classify(
        self,
        *,
        title: str,
        milestone_date: str,
        threshold_days: int,
        now: datetime,
        milestone: str | None,
        expedited: bool,
    ) -> str:
        """Turn one milestone into its raw status, queueing a reminder if due.

        Past milestones still count as close, so they are split off first and
        reminded for today instead of the original date.
        """

        proximity = evaluate_proximity(now, milestone_date, threshold_days)
        if proximity.is_close and proximity.difference_days < 0:
            raw = st.format_status(st.ALREADY_RELEASED, milestone=milestone)
            self.dispatcher.notify(title, raw, now.date().isoformat(), expedited)
        elif proximity.is_close:
            raw = st.format_status(st.CLOSE, proximity.difference_days, milestone=milestone)
            self.dispatcher.notify(title, raw, milestone_date, expedited)
        else:
            raw = st.format_status(st.NONE, proximity.difference_days, milestone=milestone)
        logger.info("%s: %s", title, raw)
        return raw

    async def check_tv(
        self,
        external_id: int | str,
        threshold_days: int,
        expedited: bool = True,
    ) -> TrackedShow:
        details = await self.tmdb.get_show_details(external_id)
        record = TrackedShow(
            external_id=str(details.id),
            name=details.name,
            original_name=details.original_name,
            first_release=_parse_date(details.first_air_date),
            next_episode_date=None,
            next_episode="",
            poster_url=self.tmdb.image_url(details.poster_path),
            backdrop_url=self.tmdb.image_url(details.backdrop_path),
            status=st.ENDED,
            status_code=st.encode_status("tv", st.ENDED),
        )
        if not details.in_production:
            logger.info("%s: %s", details.name, st.ENDED)
            return record

        episode = details.next_episode_to_air
        if episode is None:
            raise TMDbPayloadError(f"Show {details.id} is in production but has no next episode")

        label = format_episode_label(episode.season_number, episode.episode_number)
        raw = self._classify(
            title=f"{details.name} [{label}]",
            milestone_date=episode.air_date,
            threshold_days=threshold_days,
            now=self.clock(),
            milestone=None,
            expedited=expedited,
        )
        record.next_episode = label
        record.next_episode_date = _parse_date(episode.air_date)
        record.status = raw
        record.status_code = st.encode_status("tv", raw)
        return record

    async def check_movie(
        self,
        external_id: int | str,
        threshold_days: int,
        expedited: bool = True,
    ) -> TrackedMovie:
        details = await self.tmdb.get_movie_details(external_id)
        releases = await self.tmdb.get_movie_release_dates(external_id)
        region = releases.for_regions(self.regions)

        theatrical = region.first_of(ReleaseType.THEATRICAL)
        digital_physical = region.first_of(ReleaseType.PHYSICAL, ReleaseType.DIGITAL)

        now = self.clock()
        # Shared on purpose: a digital/physical outcome replaces the theatrical one.
        raw = ""
        theatrical_day = digital_day = None
        if theatrical is not None:
            theatrical_day = release_day(theatrical)
            raw = self._classify(
                title=details.title,
                milestone_date=theatrical_day,
                threshold_days=threshold_days,
                now=now,
                milestone=st.THEATRICAL,
                expedited=expedited,
            )
        if digital_physical is not None:
            digital_day = release_day(digital_physical)
            raw = self._classify(
                title=details.title,
                milestone_date=digital_day,
                threshold_days=threshold_days,
                now=now,
                milestone=st.DIGITAL_PHYSICAL,
                expedited=expedited,
            )

        return TrackedMovie(
            external_id=str(details.id),
            name=details.title,
            original_name=details.original_title,
            first_release=_parse_date(details.release_date),
            theatrical_release=_parse_date(theatrical_day) or MISSING_RELEASE_DATE,
            digital_physical_release=_parse_date(digital_day) or MISSING_RELEASE_DATE,
            poster_url=self.tmdb.image_url(details.poster_path),
            backdrop_url=self.tmdb.image_url(details.backdrop_path),
            status=raw,
            status_code=st.encode_status("movie", raw),
        )
