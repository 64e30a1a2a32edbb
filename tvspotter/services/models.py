"""Shared dataclasses for service layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

MediaKind = Literal["tv", "movie"]

# Stored in place of a milestone the upstream feed does not know about.
MISSING_RELEASE_DATE = date(1, 1, 1)


@dataclass(slots=True, frozen=True)
class ProximityResult:
    """Signed day distance to a milestone and whether it is within threshold."""

    difference_days: int
    is_close: bool


@dataclass(slots=True, frozen=True)
class ReleaseQuery:
    """One title to evaluate and how close its milestone has to be."""

    external_id: str
    kind: MediaKind
    threshold_days: int


@dataclass(slots=True, frozen=True)
class DecodedStatus:
    """A status code split back into its base category and day magnitude."""

    base: int
    magnitude: int | None
    kind: MediaKind
    milestone: str | None
    category: str


@dataclass(slots=True)
class TrackedShow:
    """Evaluation result for a tv show, ready to be persisted."""

    external_id: str
    name: str
    original_name: str | None
    first_release: date | None
    next_episode_date: date | None
    next_episode: str
    poster_url: str | None
    backdrop_url: str | None
    status: str
    status_code: int

    kind: MediaKind = field(default="tv", init=False)


@dataclass(slots=True)
class TrackedMovie:
    """Evaluation result for a movie, ready to be persisted."""

    external_id: str
    name: str
    original_name: str | None
    first_release: date | None
    theatrical_release: date
    digital_physical_release: date
    poster_url: str | None
    backdrop_url: str | None
    status: str
    status_code: int

    kind: MediaKind = field(default="movie", init=False)


TrackedRecord = TrackedShow | TrackedMovie


@dataclass(slots=True)
class SearchItem:
    """A search or listing hit normalised across movies and shows."""

    external_id: str
    name: str | None
    original_name: str | None
    first_release: str | None
    poster_url: str | None
    backdrop_url: str | None


@dataclass(slots=True)
class SearchPage:
    result_count: int
    pages: int
    items: list[SearchItem] = field(default_factory=list)
