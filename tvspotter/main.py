"""FastAPI entrypoint wiring the release checker, calendar and tracking store."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from tvspotter.core.config import get_settings
from tvspotter.db import TrackingRepository, get_session, init_models
from tvspotter.services.caldav import CalDAVClient, CalendarSession
from tvspotter.services.models import MediaKind, ReleaseQuery, SearchPage
from tvspotter.services.notifier import NotificationDispatcher
from tvspotter.services.releases import ReleaseChecker
from tvspotter.services.status import decode_status
from tvspotter.services.tmdb import TMDbClient, TMDbError, TMDbNoRegionalRelease, TMDbNotFound

logger = logging.getLogger(__name__)


def _log_connect_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Calendar connection failed: %s", task.exception())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, then build the checker around a connecting calendar."""

    init_models()
    calendar = CalendarSession(CalDAVClient())
    # Reminders queued before this finishes wait on the session's ready signal.
    connect = asyncio.create_task(calendar.connect(), name="calendar-connect")
    connect.add_done_callback(_log_connect_failure)
    dispatcher = NotificationDispatcher(calendar)
    app.state.checker = ReleaseChecker(TMDbClient(), dispatcher)
    try:
        yield
    finally:
        connect.cancel()
        calendar.abandon()
        failures = await dispatcher.drain()
        if failures:
            logger.warning("%s calendar notifications failed during this run", len(failures))
        await calendar.close()


app = FastAPI(title="TVspotter", lifespan=lifespan)
repo = TrackingRepository()


@app.exception_handler(OperationalError)
async def _storage_unavailable(_: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Storage unavailable: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Tracking storage is unavailable."},
    )


class TrackedResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: MediaKind
    external_id: str
    name: str
    original_name: str | None = None
    first_release: date | None = None
    next_episode: str | None = None
    next_episode_date: date | None = None
    theatrical_release: date | None = None
    digital_physical_release: date | None = None
    poster_url: str | None = None
    backdrop_url: str | None = None
    status: str
    status_code: int
    category: str | None = None
    milestone: str | None = None
    days: int | None = None


class TrackedStateResponse(BaseModel):
    external_id: str
    kind: MediaKind
    tracked: bool


class RefreshFailure(BaseModel):
    kind: MediaKind
    external_id: str
    detail: str


class RefreshResponse(BaseModel):
    refreshed: list[TrackedResponse]
    failed: list[RefreshFailure]


def get_checker(request: Request) -> ReleaseChecker:
    return request.app.state.checker


def _threshold(threshold: int | None) -> int:
    return get_settings().default_threshold_days if threshold is None else threshold


def _to_response(record: object) -> TrackedResponse:
    response = TrackedResponse.model_validate(record)
    decoded = decode_status(response.status_code)
    if decoded is not None:
        response.category = decoded.category
        response.milestone = decoded.milestone
        response.days = decoded.magnitude
    return response


def _tmdb_http_error(exc: TMDbError) -> HTTPException:
    if isinstance(exc, TMDbNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No such title on TMDb.")
    if isinstance(exc, TMDbNoRegionalRelease):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Fetching release information from TMDb failed.",
    )


@app.post("/{kind}/{external_id}/check", response_model=TrackedResponse)
async def check_release(
    kind: MediaKind,
    external_id: str,
    threshold: int | None = None,
    session: Session = Depends(get_session),
    checker: ReleaseChecker = Depends(get_checker),
) -> TrackedResponse:
    """Evaluate one title, schedule reminders if due and store the result."""

    try:
        record = await checker.check(ReleaseQuery(external_id, kind, _threshold(threshold)))
    except TMDbError as exc:
        raise _tmdb_http_error(exc) from exc
    await run_in_threadpool(repo.upsert, session, kind, record)
    return _to_response(record)


@app.post("/tracked/refresh", response_model=RefreshResponse)
async def refresh_tracked(
    threshold: int | None = None,
    session: Session = Depends(get_session),
    checker: ReleaseChecker = Depends(get_checker),
) -> RefreshResponse:
    """Re-evaluate every tracked title one after another."""

    refreshed: list[TrackedResponse] = []
    failed: list[RefreshFailure] = []
    for kind in ("tv", "movie"):
        rows = await run_in_threadpool(repo.list_all, session, kind)
        for row in rows:
            try:
                record = await checker.check(ReleaseQuery(row.external_id, kind, _threshold(threshold)))
            except TMDbError as exc:
                logger.warning("Refreshing %s %s failed: %s", kind, row.external_id, exc)
                failed.append(RefreshFailure(kind=kind, external_id=row.external_id, detail=str(exc)))
                continue
            await run_in_threadpool(repo.upsert, session, kind, record)
            refreshed.append(_to_response(record))
    return RefreshResponse(refreshed=refreshed, failed=failed)


@app.get("/tracked/{kind}", response_model=list[TrackedResponse])
def list_tracked(
    kind: MediaKind,
    order_by: str = "name",
    descending: bool = False,
    session: Session = Depends(get_session),
) -> list[TrackedResponse]:
    try:
        rows = repo.list_all(session, kind, order_by=order_by, descending=descending)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return [_to_response(row) for row in rows]


@app.get("/tracked/{kind}/{external_id}", response_model=TrackedStateResponse)
def get_tracked_state(
    kind: MediaKind,
    external_id: str,
    session: Session = Depends(get_session),
) -> TrackedStateResponse:
    return TrackedStateResponse(
        external_id=external_id,
        kind=kind,
        tracked=repo.is_tracked(session, external_id, kind),
    )


@app.delete("/tracked/{kind}/{external_id}", status_code=status.HTTP_204_NO_CONTENT)
def untrack(
    kind: MediaKind,
    external_id: str,
    session: Session = Depends(get_session),
) -> None:
    if not repo.delete(session, external_id, kind):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not tracked.")


@app.get("/search/{kind}", response_model=SearchPage)
async def search(
    kind: MediaKind,
    query: str,
    page: int = 1,
    checker: ReleaseChecker = Depends(get_checker),
) -> SearchPage:
    if not query.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="query must not be empty",
        )
    try:
        return await checker.tmdb.search(kind, query.strip(), page)
    except TMDbError as exc:
        raise _tmdb_http_error(exc) from exc


@app.get("/tv/on-the-air", response_model=SearchPage)
async def shows_on_the_air(checker: ReleaseChecker = Depends(get_checker)) -> SearchPage:
    try:
        return await checker.tmdb.get_shows_on_the_air()
    except TMDbError as exc:
        raise _tmdb_http_error(exc) from exc


@app.get("/tv/airing-today", response_model=SearchPage)
async def shows_airing_today(checker: ReleaseChecker = Depends(get_checker)) -> SearchPage:
    try:
        return await checker.tmdb.get_shows_airing_today()
    except TMDbError as exc:
        raise _tmdb_http_error(exc) from exc


@app.get("/movie/upcoming", response_model=SearchPage)
async def upcoming_movies(checker: ReleaseChecker = Depends(get_checker)) -> SearchPage:
    try:
        return await checker.tmdb.get_upcoming_movies()
    except TMDbError as exc:
        raise _tmdb_http_error(exc) from exc
