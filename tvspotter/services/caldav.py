"""Minimal CalDAV client for the reminder calendar.

Only what the notifier needs: find the calendar, pull its events and put a
new all-day event with an alarm.
"""

from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from urllib.parse import urljoin

import httpx

from tvspotter.core.config import get_settings

logger = logging.getLogger(__name__)

DAV_NS = "DAV:"
CALDAV_NS = "urn:ietf:params:xml:ns:caldav"
_NS = {"d": DAV_NS, "c": CALDAV_NS}

REQUEST_TIMEOUT = 30  # seconds

_PRINCIPAL_BODY = """<?xml version="1.0" encoding="utf-8"?>
<d:propfind xmlns:d="DAV:"><d:prop><d:current-user-principal/></d:prop></d:propfind>"""

_HOME_SET_BODY = """<?xml version="1.0" encoding="utf-8"?>
<d:propfind xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav">
<d:prop><c:calendar-home-set/></d:prop></d:propfind>"""

_CALENDARS_BODY = """<?xml version="1.0" encoding="utf-8"?>
<d:propfind xmlns:d="DAV:"><d:prop><d:displayname/><d:resourcetype/></d:prop></d:propfind>"""

_EVENTS_BODY = """<?xml version="1.0" encoding="utf-8"?>
<c:calendar-query xmlns:d="DAV:" xmlns:c="urn:ietf:params:xml:ns:caldav">
<d:prop><d:getetag/><c:calendar-data/></d:prop>
<c:filter><c:comp-filter name="VCALENDAR"><c:comp-filter name="VEVENT"/></c:comp-filter></c:filter>
</c:calendar-query>"""


class CalendarError(Exception):
    """Base exception for calendar failures."""


class CalendarNotFound(CalendarError):
    """Raised when the account has no calendar with the configured name."""


class CalendarNotReady(CalendarError):
    """Raised when the calendar connection does not come up in time."""


@dataclass(slots=True)
class CalendarObject:
    href: str
    calendar_data: str


@dataclass(slots=True)
class CalendarHandle:
    """A calendar collection and the events last fetched from it."""

    url: str
    display_name: str | None
    objects: list[CalendarObject] = field(default_factory=list)


def ical_date(iso_date: str) -> str:
    """``2024-01-31`` -> ``20240131``."""
    return iso_date.replace("-", "")


def build_event_ics(uid: str, summary: str, description: str, start: str, end: str) -> str:
    """Render an all-day VEVENT with a display alarm one hour before start."""

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//tvspotter//EN",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"SUMMARY:{summary}",
        f"DESCRIPTION:{description}",
        f"DTSTART;VALUE=DATE:{ical_date(start)}",
        f"DTEND;VALUE=DATE:{ical_date(end)}",
        "BEGIN:VALARM",
        "TRIGGER;VALUE=DURATION:-PT1H",
        "ACTION:DISPLAY",
        f"DESCRIPTION:{summary}",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


class CalDAVClient:
    """CalDAV account client using HTTP basic auth."""

    def __init__(
        self,
        server_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.server_url = server_url or settings.caldav_url
        auth = httpx.BasicAuth(
            username or settings.caldav_username or "",
            password or settings.caldav_password or "",
        )
        self._client = httpx.AsyncClient(
            auth=auth,
            timeout=httpx.Timeout(REQUEST_TIMEOUT),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _xml_request(self, method: str, url: str, body: str, depth: str) -> ET.Element:
        response = await self._client.request(
            method,
            url,
            content=body.encode("utf-8"),
            headers={"Depth": depth, "Content-Type": "application/xml; charset=utf-8"},
        )
        if response.status_code != 207:
            raise CalendarError(f"{method} {url} returned {response.status_code}")
        return ET.fromstring(response.content)

    def _href(self, root: ET.Element, path: str) -> str:
        node = root.find(path, _NS)
        if node is None or not (node.text or "").strip():
            raise CalendarError(f"CalDAV response is missing {path}")
        return urljoin(self.server_url, node.text.strip())

    async def discover(self) -> list[CalendarHandle]:
        """Walk principal -> calendar home -> calendar collections."""

        if not self.server_url:
            raise CalendarError("CALDAV_URL is not configured")
        root = await self._xml_request("PROPFIND", self.server_url, _PRINCIPAL_BODY, "0")
        principal = self._href(root, ".//d:current-user-principal/d:href")

        root = await self._xml_request("PROPFIND", principal, _HOME_SET_BODY, "0")
        home = self._href(root, ".//c:calendar-home-set/d:href")

        root = await self._xml_request("PROPFIND", home, _CALENDARS_BODY, "1")
        calendars = []
        for response in root.findall("d:response", _NS):
            if response.find(".//d:resourcetype/c:calendar", _NS) is None:
                continue
            href = response.findtext("d:href", default="", namespaces=_NS).strip()
            name = response.findtext(".//d:displayname", default=None, namespaces=_NS)
            calendars.append(CalendarHandle(url=urljoin(self.server_url, href), display_name=name))
        logger.debug("Discovered %s calendars under %s", len(calendars), home)
        return calendars

    async def list_calendars(self) -> list[CalendarHandle]:
        return await self.discover()

    async def sync_calendar(self, handle: CalendarHandle) -> CalendarHandle:
        """Fetch every VEVENT of ``handle`` into a fresh handle."""

        root = await self._xml_request("REPORT", handle.url, _EVENTS_BODY, "1")
        objects = []
        for response in root.findall("d:response", _NS):
            data = response.findtext(".//c:calendar-data", default=None, namespaces=_NS)
            if data is None:
                continue
            href = response.findtext("d:href", default="", namespaces=_NS).strip()
            objects.append(CalendarObject(href=urljoin(self.server_url, href), calendar_data=data))
        return CalendarHandle(url=handle.url, display_name=handle.display_name, objects=objects)

    async def create_event(self, handle: CalendarHandle, *, data: str, filename: str) -> httpx.Response:
        """PUT a new calendar object; the caller inspects the status code."""

        url = urljoin(handle.url if handle.url.endswith("/") else f"{handle.url}/", filename)
        return await self._client.put(
            url,
            content=data.encode("utf-8"),
            headers={"Content-Type": "text/calendar; charset=utf-8", "If-None-Match": "*"},
        )


class CalendarSession:
    """Owns the reminder calendar handle and signals when it is usable.

    ``connect`` settles the session once the named calendar has been found
    and its events loaded, or once finding it has failed. ``resync`` swaps in
    a freshly fetched handle unless a later sync already landed; readers
    always see whichever handle was current when they looked.
    """

    def __init__(self, client: CalDAVClient, calendar_name: str | None = None) -> None:
        self.client = client
        self.calendar_name = calendar_name or get_settings().caldav_calendar_name
        self.handle: CalendarHandle | None = None
        self._settled = asyncio.Event()
        self._failure: BaseException | None = None
        self._syncs_started = 0
        self._sync_applied = 0

    @property
    def is_ready(self) -> bool:
        return self._settled.is_set() and self.handle is not None

    async def connect(self) -> CalendarHandle:
        try:
            calendars = await self.client.list_calendars()
            for calendar in calendars:
                if calendar.display_name == self.calendar_name:
                    self.handle = await self.client.sync_calendar(calendar)
                    logger.info("Calendar %r ready (%s events)", self.calendar_name, len(self.handle.objects))
                    return self.handle
            raise CalendarNotFound(f"No calendar named {self.calendar_name!r}")
        except BaseException as exc:
            self._failure = exc
            raise
        finally:
            self._settled.set()

    def abandon(self) -> None:
        """Release anyone still waiting for a connection that will not come."""

        if not self._settled.is_set():
            self._failure = CalendarNotReady(f"Calendar {self.calendar_name!r} was abandoned before connecting")
            self._settled.set()

    async def wait_ready(self, timeout: float | None = None) -> CalendarHandle:
        if timeout is None:
            timeout = get_settings().calendar_ready_timeout
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError as exc:
            raise CalendarNotReady(f"Calendar {self.calendar_name!r} not ready after {timeout}s") from exc
        if self.handle is None:
            raise CalendarNotReady(f"Calendar {self.calendar_name!r} failed to connect") from self._failure
        return self.handle

    async def resync(self) -> CalendarHandle:
        if self.handle is None:
            raise CalendarNotReady(f"Calendar {self.calendar_name!r} is not connected")
        self._syncs_started += 1
        ticket = self._syncs_started
        handle = await self.client.sync_calendar(self.handle)
        if ticket > self._sync_applied:
            self._sync_applied = ticket
            self.handle = handle
        return handle

    async def close(self) -> None:
        await self.client.close()
