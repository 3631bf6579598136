# medbot/tests/integration/test_scheduler_jobs.py
import asyncio
from datetime import datetime, timedelta

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from medbot import config as cfg
from medbot.core.models import (
    BurstRule,
    DailyRule,
    SchedulingError,
    TimeOfDay,
    Weekday,
    WeeklyRule,
)
from medbot.core.schedule_resolver import next_occurrence
from medbot.core.scheduler import Scheduler


def test_weekly_trigger_agrees_with_next_occurrence():
    sched = Scheduler(cfg.TZ)
    rule = WeeklyRule(TimeOfDay(8, 30), frozenset({Weekday.MONDAY, Weekday.THURSDAY}))
    trigger = sched.trigger_for(rule)
    assert isinstance(trigger, CronTrigger)

    now = datetime(2024, 5, 1, 10, 0, tzinfo=cfg.TZ)
    assert trigger.get_next_fire_time(None, now) == next_occurrence(rule, now)


def test_daily_trigger_and_burst_trigger():
    sched = Scheduler(cfg.TZ)
    now = datetime(2024, 5, 1, 10, 0, tzinfo=cfg.TZ)
    daily = sched.trigger_for(DailyRule(TimeOfDay(8, 30)))
    assert daily.get_next_fire_time(None, now) == datetime(2024, 5, 2, 8, 30, tzinfo=cfg.TZ)

    burst = sched.trigger_for(BurstRule(timedelta(minutes=106), 9))
    assert isinstance(burst, IntervalTrigger)
    assert burst.interval == timedelta(minutes=106)


@pytest.mark.parametrize(
    "rule",
    [
        WeeklyRule(TimeOfDay(8, 0), frozenset()),
        DailyRule(TimeOfDay(25, 0)),
        BurstRule(timedelta(0), 3),
        BurstRule(timedelta(minutes=5), 0),
    ],
)
def test_malformed_rules_raise_scheduling_error(rule):
    with pytest.raises(SchedulingError):
        Scheduler(cfg.TZ).trigger_for(rule)


def test_recurring_refuses_burst_rules():
    async def noop(): ...

    with pytest.raises(SchedulingError):
        Scheduler(cfg.TZ).schedule_recurring(BurstRule(timedelta(minutes=1), 2), noop, name="x")


@pytest.mark.asyncio
async def test_once_fires_exactly_once():
    sched = Scheduler(cfg.TZ)
    sched.start()
    calls = []

    async def on_fire():
        calls.append(1)

    try:
        handle = sched.schedule_once(0.1, on_fire, name="once")
        await asyncio.sleep(0.6)
        assert calls == [1]
        assert handle.stopped
        assert sched.job_count() == 0
    finally:
        sched.shutdown()


@pytest.mark.asyncio
async def test_stop_before_fire_never_fires():
    sched = Scheduler(cfg.TZ)
    sched.start()
    calls = []

    async def on_fire():
        calls.append(1)

    try:
        handle = sched.schedule_once(timedelta(seconds=0.3), on_fire, name="once")
        handle.stop()
        handle.stop()  # idempotent
        await asyncio.sleep(0.6)
        assert calls == []
        assert sched.job_count() == 0
    finally:
        sched.shutdown()


@pytest.mark.asyncio
async def test_burst_self_terminates_after_count():
    sched = Scheduler(cfg.TZ)
    sched.start()
    seen = []

    async def on_fire(n):
        seen.append(n)

    try:
        handle = sched.schedule_burst(BurstRule(timedelta(seconds=0.2), 3), on_fire, name="burst")
        await asyncio.sleep(1.5)
        assert seen == [1, 2, 3]
        assert handle.stopped
        assert sched.job_count() == 0
    finally:
        sched.shutdown()


@pytest.mark.asyncio
async def test_failing_callback_does_not_kill_recurring_job():
    sched = Scheduler(cfg.TZ)
    sched.start()
    seen = []

    async def on_fire(n):
        seen.append(n)
        raise RuntimeError("boom")

    try:
        sched.schedule_burst(BurstRule(timedelta(seconds=0.2), 2), on_fire, name="burst")
        await asyncio.sleep(1.0)
        assert seen == [1, 2]
    finally:
        sched.shutdown()


@pytest.mark.asyncio
async def test_recurring_stop_means_wrapper_never_calls_back():
    sched = Scheduler(cfg.TZ)
    sched.start()
    calls = []

    async def on_fire():
        calls.append(1)

    try:
        handle = sched.schedule_recurring(DailyRule(TimeOfDay(8, 30)), on_fire, name="med")
        job = sched.sched.get_job(handle.job_id)
        assert job is not None
        assert sched.job_count() == 1

        handle.stop()
        assert sched.job_count() == 0
        # a firing already dispatched by APScheduler still hits the stopped handle
        await job.func(*job.args)
        assert calls == []
    finally:
        sched.shutdown()
