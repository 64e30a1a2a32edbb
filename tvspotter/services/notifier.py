"""Fire-and-forget calendar reminders with duplicate avoidance."""

from __future__ import annotations

import asyncio
import logging
import uuid

from tvspotter.services.caldav import (
    CalendarError,
    CalendarHandle,
    CalendarNotReady,
    CalendarObject,
    CalendarSession,
    build_event_ics,
    ical_date,
)

logger = logging.getLogger(__name__)


class NotificationCreateFailed(CalendarError):
    """Raised when the calendar server does not confirm a new event."""


def event_exists(handle: CalendarHandle, summary: str, start: str, end: str) -> bool:
    """True if an event mentions ``summary`` and has the same all-day range."""

    start_token = f"DTSTART;VALUE=DATE:{ical_date(start)}"
    end_token = f"DTEND;VALUE=DATE:{ical_date(end)}"
    for obj in handle.objects:
        data = obj.calendar_data
        if summary in data and start_token in data and end_token in data:
            return True
    return False


class NotificationDispatcher:
    """Schedules reminder creation without making the caller wait for it."""

    def __init__(self, session: CalendarSession) -> None:
        self.session = session
        self._pending: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()
        # (title, date) -> file name of events created here and not yet seen in a sync.
        self._created: dict[tuple[str, str], str] = {}

    def notify(
        self,
        title: str,
        description: str,
        date: str,
        expedited: bool = True,
    ) -> asyncio.Task:
        """Queue a reminder for ``date`` (``YYYY-MM-DD``) and return at once.

        With ``expedited`` the task first waits for the calendar session to
        signal readiness; without it the task works on whatever handle the
        session currently holds.
        """

        task = asyncio.get_running_loop().create_task(
            self._dispatch(title, description, date, expedited),
            name=f"notify:{title}:{date}",
        )
        self._pending.add(task)
        task.add_done_callback(self._finished)
        return task

    async def drain(self) -> list[BaseException]:
        """Wait for every queued reminder; returns the failures."""

        failures: list[BaseException] = []
        while self._pending:
            results = await asyncio.gather(*list(self._pending), return_exceptions=True)
            failures.extend(result for result in results if isinstance(result, BaseException))
        return failures

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Calendar notification %s failed: %s", task.get_name(), exc)

    def _forget_synced(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        hrefs = [obj.href for obj in task.result().objects]
        for key, filename in list(self._created.items()):
            if any(href.endswith(filename) for href in hrefs):
                del self._created[key]

    async def _dispatch(self, title: str, description: str, date: str, expedited: bool) -> bool:
        if expedited:
            handle = await self.session.wait_ready()
        else:
            handle = self.session.handle
            if handle is None:
                raise CalendarNotReady("Calendar session has not connected yet")

        resync = asyncio.get_running_loop().create_task(self.session.resync(), name="calendar-resync")
        self._pending.add(resync)
        resync.add_done_callback(self._finished)
        resync.add_done_callback(self._forget_synced)

        async with self._lock:
            if (title, date) in self._created or event_exists(self.session.handle or handle, title, date, date):
                logger.info("Reminder %r on %s already in calendar", title, date)
                return False

            uid = str(uuid.uuid4())
            data = build_event_ics(uid, title, description, date, date)
            response = await self.session.client.create_event(handle, data=data, filename=f"{uid}.ics")
            if response.status_code != 201:
                raise NotificationCreateFailed(
                    f"Could not create event {title!r} on {date}: HTTP {response.status_code}"
                )
            # Seen by later notifies in this run even before the resync lands.
            self._created[(title, date)] = f"{uid}.ics"
            current = self.session.handle or handle
            current.objects.append(CalendarObject(href=f"{handle.url}{uid}.ics", calendar_data=data))
        logger.info("Created reminder %r on %s", title, date)
        return True
