# medbot/core/scheduler.py
from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, Union
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from medbot.core.logging_utils import kv
from medbot.core.models import (
    BurstRule,
    DailyRule,
    RecurrenceRule,
    SchedulingError,
    WeeklyRule,
)

OnFire = Callable[..., Awaitable[None]]


class JobHandle:
    """Opaque reference to one scheduled job. `stop()` is idempotent."""

    def __init__(self, scheduler: "Scheduler", job_id: str, name: str) -> None:
        self._scheduler = scheduler
        self.job_id = job_id
        self.name = name
        self.stopped = False
        self.fired = 0

    def stop(self) -> None:
        self._scheduler.stop(self)

    def __repr__(self) -> str:
        return f"JobHandle(job_id={self.job_id!r}, stopped={self.stopped}, fired={self.fired})"


class Scheduler:
    """
    Recurring / one-shot / bounded-burst timers on top of APScheduler's AsyncIOScheduler.

    Every job runs through a wrapper that checks the handle first, so once `stop()`
    returns no new invocation of `on_fire` starts (one already in flight may finish).
    """

    def __init__(self, tz: ZoneInfo, scheduler: Optional[AsyncIOScheduler] = None) -> None:
        self.tz = tz
        self.sched = scheduler or AsyncIOScheduler(timezone=tz)
        self.log = logging.getLogger("medbot.scheduler")
        self._seq = itertools.count(1)

    # ---- lifecycle --------------------------------------------------------------------
    def start(self) -> None:
        if not self.sched.running:
            self.sched.start()

    def shutdown(self) -> None:
        if self.sched.running:
            self.sched.shutdown(wait=False)

    @property
    def running(self) -> bool:
        return bool(self.sched.running)

    def job_count(self) -> int:
        return len(self.sched.get_jobs())

    # ---- triggers ---------------------------------------------------------------------
    def trigger_for(self, rule: RecurrenceRule) -> BaseTrigger:
        """Recurrence rule -> APScheduler trigger; malformed rules raise SchedulingError."""
        try:
            if isinstance(rule, DailyRule):
                hh, mm = rule.time
                return CronTrigger(hour=hh, minute=mm, timezone=self.tz)
            if isinstance(rule, WeeklyRule):
                if not rule.days:
                    raise SchedulingError("weekly rule without weekdays")
                hh, mm = rule.time
                dow = ",".join(d.cron_name for d in sorted(rule.days))
                return CronTrigger(day_of_week=dow, hour=hh, minute=mm, timezone=self.tz)
            if isinstance(rule, BurstRule):
                if rule.count < 1 or rule.interval <= timedelta(0):
                    raise SchedulingError(f"invalid burst: {rule!r}")
                return IntervalTrigger(
                    seconds=rule.interval.total_seconds(), timezone=self.tz
                )
        except SchedulingError:
            raise
        except (TypeError, ValueError) as e:
            raise SchedulingError(f"cannot build trigger for {rule!r}: {e}") from e
        raise SchedulingError(f"unsupported rule: {rule!r}")

    # ---- scheduling -------------------------------------------------------------------
    def schedule_recurring(self, rule: RecurrenceRule, on_fire: OnFire, *, name: str) -> JobHandle:
        """Invoke `on_fire()` at every occurrence of a daily/weekly rule until stopped."""
        if isinstance(rule, BurstRule):
            raise SchedulingError("burst rules are scheduled with schedule_burst()")
        trigger = self.trigger_for(rule)
        handle = self._new_handle(name)
        self._add(handle, trigger, self._run, on_fire)
        return handle

    def schedule_once(
        self, delay: Union[timedelta, float], on_fire: OnFire, *, name: str
    ) -> JobHandle:
        """Invoke `on_fire()` exactly once after `delay`."""
        seconds = delay.total_seconds() if isinstance(delay, timedelta) else float(delay)
        if seconds < 0:
            raise SchedulingError(f"negative delay: {seconds}")
        run_date = datetime.now(self.tz) + timedelta(seconds=seconds)
        handle = self._new_handle(name)
        self._add(handle, DateTrigger(run_date=run_date, timezone=self.tz), self._run_once, on_fire)
        return handle

    def schedule_burst(self, rule: BurstRule, on_fire: OnFire, *, name: str) -> JobHandle:
        """
        Invoke `on_fire(n)` every `rule.interval`, n = 1..rule.count; the first firing is
        one interval from now. The job removes itself after the last firing.
        """
        if not isinstance(rule, BurstRule):
            raise SchedulingError(f"not a burst rule: {rule!r}")
        trigger = self.trigger_for(rule)
        handle = self._new_handle(name)
        self._add(handle, trigger, self._run_burst, on_fire, rule.count)
        return handle

    def stop(self, handle: JobHandle) -> None:
        if not handle.stopped:
            handle.stopped = True
            self.log.debug("job.stop " + kv(job_id=handle.job_id, name=handle.name, fired=handle.fired))
        with contextlib.suppress(JobLookupError):
            self.sched.remove_job(handle.job_id)

    # ---- internals --------------------------------------------------------------------
    def _new_handle(self, name: str) -> JobHandle:
        return JobHandle(self, f"{name}#{next(self._seq)}", name)

    def _add(self, handle: JobHandle, trigger: BaseTrigger, func: Callable, *args: Any) -> None:
        try:
            self.sched.add_job(
                func,
                trigger=trigger,
                args=(handle, *args),
                id=handle.job_id,
                name=handle.name,
                replace_existing=True,
                coalesce=True,
                misfire_grace_time=300,
                max_instances=1,
            )
        except (TypeError, ValueError) as e:
            raise SchedulingError(f"cannot add job {handle.job_id!r}: {e}") from e
        self.log.debug("job.add " + kv(job_id=handle.job_id, trigger=str(trigger)))

    async def _run(self, handle: JobHandle, on_fire: OnFire) -> None:
        if handle.stopped:
            return
        handle.fired += 1
        await self._invoke(handle, on_fire)

    async def _run_once(self, handle: JobHandle, on_fire: OnFire) -> None:
        if handle.stopped:
            return
        handle.fired += 1
        handle.stopped = True  # APScheduler drops a fired DateTrigger job on its own
        await self._invoke(handle, on_fire)

    async def _run_burst(self, handle: JobHandle, on_fire: OnFire, count: int) -> None:
        if handle.stopped:
            return
        handle.fired += 1
        n = handle.fired
        if n >= count:
            self.stop(handle)
        await self._invoke(handle, on_fire, n)

    async def _invoke(self, handle: JobHandle, on_fire: OnFire, *args: Any) -> None:
        try:
            await on_fire(*args)
        except asyncio.CancelledError:  # normal shutdown path
            raise
        except Exception:
            self.log.exception("job.fire.error " + kv(job_id=handle.job_id, name=handle.name))


__all__ = ["Scheduler", "JobHandle", "SchedulingError"]
