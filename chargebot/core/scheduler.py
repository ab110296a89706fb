# chargebot/core/scheduler.py
from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from chargebot.core.timecore import now_utc

log = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[None]]


class JobHandle:
    """
    One scheduled callback.

    - cancel(): idempotent, no-op once fired
    - invoke(): run now, as if `when` had arrived; the scheduler won't fire it again
    """

    def __init__(self, when: datetime, callback: JobCallback, name: str = "job"):
        self.when = when
        self.name = name
        self._callback = callback
        self._job: Job | None = None
        self.cancelled = False
        self.fired = False

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def _unschedule(self) -> None:
        if self._job is None:
            return
        try:
            self._job.remove()
        except JobLookupError:
            # already handed to the executor, _fire() will see the flags
            pass
        self._job = None

    def cancel(self) -> None:
        if not self.pending:
            return
        self.cancelled = True
        self._unschedule()

    async def invoke(self) -> None:
        self._unschedule()
        self.fired = True
        await self._callback()

    async def _fire(self) -> None:
        if not self.pending:
            return
        self._job = None
        self.fired = True
        await self._callback()

    def __repr__(self) -> str:
        state = "pending" if self.pending else ("cancelled" if self.cancelled else "fired")
        return f"<JobHandle {self.name} at {self.when.isoformat()} {state}>"


class JobScheduler:
    """
    Absolute-instant jobs on an APScheduler AsyncIOScheduler.

    Timer callbacks run one at a time. Jobs due at the same instant fire in the
    order they were scheduled (job ids are a zero-padded counter, which is the
    job store's tie-break). A missed instant still fires, however late.
    """

    def __init__(self, clock: Callable[[], datetime] = now_utc, scheduler: AsyncIOScheduler | None = None):
        self.clock = clock
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._lock = asyncio.Lock()
        self._ids = itertools.count()

    def schedule(self, when: datetime, callback: JobCallback, name: str = "job") -> JobHandle:
        if not self._scheduler.running:
            self._scheduler.start()

        handle = JobHandle(when, callback, name)
        handle._job = self._scheduler.add_job(
            self._run,
            DateTrigger(run_date=when),
            args=[handle],
            id=f"{next(self._ids):012d}",
            name=name,
            misfire_grace_time=None,
        )
        log.debug("scheduled %s at %s", name, when.isoformat())
        return handle

    async def _run(self, handle: JobHandle) -> None:
        async with self._lock:
            try:
                await handle._fire()
            except Exception:
                log.exception("scheduled job %s failed", handle.name)

    async def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
