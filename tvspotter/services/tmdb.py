"""Thin async wrapper around the TMDb API for release metadata."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from tvspotter.core.config import get_settings
from tvspotter.services.models import MediaKind, SearchItem, SearchPage


logger = logging.getLogger(__name__)


class TMDbError(Exception):
    """Base exception for TMDb-related failures."""


class TMDbNotFound(TMDbError):
    """Raised when TMDb has no entry for the requested id."""


class TMDbPayloadError(TMDbError):
    """Raised when a TMDb response lacks fields the release checks rely on."""


class TMDbNoRegionalRelease(TMDbError):
    """Raised when a movie has no release dates in any of the tracked regions."""


class ReleaseType(IntEnum):
    PREMIERE = 1
    THEATRICAL_LIMITED = 2
    THEATRICAL = 3
    DIGITAL = 4
    PHYSICAL = 5
    TV = 6


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class NextEpisode(_Payload):
    air_date: str
    season_number: int
    episode_number: int


class ShowDetails(_Payload):
    id: int
    name: str
    original_name: str | None = None
    first_air_date: str | None = None
    in_production: bool
    next_episode_to_air: NextEpisode | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None


class MovieDetails(_Payload):
    id: int
    title: str
    original_title: str | None = None
    release_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None


class ReleaseDateEntry(_Payload):
    release_date: str
    type: int
    certification: str | None = None
    note: str | None = None


class RegionReleases(_Payload):
    iso_3166_1: str
    release_dates: list[ReleaseDateEntry]

    def first_of(self, *types: ReleaseType) -> ReleaseDateEntry | None:
        """Return the first entry of the first release type that has any."""
        for release_type in types:
            for entry in self.release_dates:
                if entry.type == release_type:
                    return entry
        return None


class ReleaseDatesPayload(_Payload):
    id: int | None = None
    results: list[RegionReleases]

    def for_regions(self, regions: list[str]) -> RegionReleases:
        """Pick the first region (in preference order) with any entries."""
        for region in regions:
            matching = [entry for entry in self.results if entry.iso_3166_1 == region]
            if matching:
                return matching[0]
        raise TMDbNoRegionalRelease(
            f"No release information available for regions {', '.join(regions)}"
        )


_PayloadT = TypeVar("_PayloadT", bound=BaseModel)


class TMDbClient:
    """Async TMDb HTTP client using API key auth."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        language: str | None = None,
        image_base: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key or settings.tmdb_api_key
        self.base_url = (base_url or settings.tmdb_base_url).rstrip("/")
        self.language = language or settings.tmdb_language
        self.image_base = (image_base or settings.tmdb_image_base).rstrip("/")
        self.timeout = settings.tmdb_timeout
        self._transport = transport

    async def _request(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        if not self.api_key:
            raise TMDbError("TMDB_API_KEY is not configured")
        url = f"{self.base_url}{path}"
        query: dict[str, Any] = {"api_key": self.api_key, "language": self.language}
        if params:
            query.update({k: v for k, v in params.items() if v is not None})
        logger.debug("TMDb request: %s", path)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(url, params=query)
            except httpx.RequestError as exc:
                raise TMDbError(f"TMDb request failed: {exc}") from exc
            if response.status_code == httpx.codes.NOT_FOUND:
                raise TMDbNotFound(f"TMDb has no resource at {path}")
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise TMDbError(str(exc)) from exc
        return response.json()

    async def _fetch(self, path: str, model: type[_PayloadT], **params: Any) -> _PayloadT:
        payload = await self._request(path, params=params)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise TMDbPayloadError(f"Unexpected TMDb payload for {path}: {exc}") from exc

    async def search(self, kind: MediaKind, query: str, page: int = 1) -> SearchPage:
        """Search TMDb for movies or tv shows."""

        payload = await self._request(
            f"/search/{kind}",
            params={"query": query, "page": page, "include_adult": "true"},
        )
        return self._to_page(payload)

    async def get_show_details(self, external_id: int | str) -> ShowDetails:
        return await self._fetch(f"/tv/{external_id}", ShowDetails)

    async def get_movie_details(self, external_id: int | str) -> MovieDetails:
        return await self._fetch(f"/movie/{external_id}", MovieDetails)

    async def get_movie_release_dates(self, external_id: int | str) -> ReleaseDatesPayload:
        """Release dates per region; see ``ReleaseType`` for the type codes."""
        return await self._fetch(f"/movie/{external_id}/release_dates", ReleaseDatesPayload)

    async def get_shows_on_the_air(self) -> SearchPage:
        """Shows with an episode airing in the next 7 days."""
        return self._to_page(await self._request("/tv/on_the_air", params={"page": 1}))

    async def get_shows_airing_today(self) -> SearchPage:
        return self._to_page(
            await self._request("/tv/airing_today", params={"page": 1, "timezone": "DE"})
        )

    async def get_upcoming_movies(self) -> SearchPage:
        return self._to_page(await self._request("/movie/upcoming", params={"page": 1}))

    def image_url(self, path: str | None, width: int | str = "original") -> str | None:
        if not path:
            return None
        if width == "original":
            return f"{self.image_base}/original{path}"
        return f"{self.image_base}/w{width}{path}"

    def to_search_item(
        self,
        item: dict[str, Any],
        *,
        poster_width: int | str = "original",
        backdrop_width: int | str = "original",
    ) -> SearchItem:
        """Normalise a movie or show result; shows use name/first_air_date."""

        return SearchItem(
            external_id=str(item.get("id")),
            name=item.get("name") or item.get("title"),
            original_name=item.get("original_name") or item.get("original_title"),
            first_release=item.get("first_air_date") or item.get("release_date"),
            poster_url=self.image_url(item.get("poster_path"), poster_width),
            backdrop_url=self.image_url(item.get("backdrop_path"), backdrop_width),
        )

    def _to_page(self, payload: dict[str, Any]) -> SearchPage:
        results = payload.get("results", [])
        return SearchPage(
            result_count=payload.get("total_results", len(results)),
            pages=payload.get("total_pages", 1),
            items=[self.to_search_item(result) for result in results],
        )
