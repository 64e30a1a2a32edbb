import datetime as dt
import os
from typing import Any, Callable

os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tvspotter.core.config import get_settings
from tvspotter.models import Base
from tvspotter.services.caldav import CalendarHandle, CalendarObject
from tvspotter.services.tmdb import TMDbClient

NOW = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


@pytest.fixture(autouse=True)
def reset_env(monkeypatch):
    monkeypatch.setenv("TMDB_API_KEY", "test-key")
    monkeypatch.delenv("CALDAV_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


def make_tmdb(routes: dict[str, Any], seen: list[httpx.Request] | None = None) -> TMDbClient:
    """TMDb client whose HTTP layer answers from ``routes`` (path -> JSON or status)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        path = request.url.path.removeprefix("/3")
        payload = routes.get(path)
        if payload is None:
            return httpx.Response(404, json={"status_message": "not found"})
        if isinstance(payload, int):
            return httpx.Response(payload, json={})
        return httpx.Response(200, json=payload)

    return TMDbClient(
        api_key="test-key",
        base_url="https://api.themoviedb.org/3",
        image_base="https://image.tmdb.org/t/p",
        transport=httpx.MockTransport(handler),
    )


class RecordingDispatcher:
    def __init__(self):
        self.calls = []

    def notify(self, title, description, date, expedited=True):
        self.calls.append((title, description, date, expedited))


class FakeCalendarClient:
    """In-memory stand-in for the CalDAV client."""

    def __init__(
        self,
        calendars: list[CalendarHandle],
        server_objects: list[CalendarObject] | None = None,
        create_status: int = 201,
    ):
        self.calendars = calendars
        self.server_objects = list(server_objects or [])
        self.create_status = create_status
        self.created: list[tuple[str, str]] = []
        self.syncs = 0

    async def list_calendars(self):
        return self.calendars

    async def sync_calendar(self, handle):
        self.syncs += 1
        return CalendarHandle(url=handle.url, display_name=handle.display_name, objects=list(self.server_objects))

    async def create_event(self, handle, *, data, filename):
        self.created.append((filename, data))
        if self.create_status == 201:
            self.server_objects.append(CalendarObject(href=f"{handle.url}{filename}", calendar_data=data))
        return httpx.Response(self.create_status)

    async def close(self):
        pass


@pytest.fixture
def recording_dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def fixed_clock() -> Callable[[], dt.datetime]:
    return lambda: NOW
