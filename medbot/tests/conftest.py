# medbot/tests/conftest.py
import sys
from datetime import datetime
from pathlib import Path

# This file is at <project_root>/medbot/tests/conftest.py
# Project root is two levels up from here.
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from medbot import config as cfg  # noqa: E402
from medbot.core.models import BurstRule, SchedulingError  # noqa: E402


class FakeAdapter:
    """Records every outbound SendText; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_text(self, out):
        if self.fail:
            raise ConnectionError("gateway down")
        self.sent.append(out)
        return len(self.sent)

    def texts(self, chat_id=None):
        return [o.text for o in self.sent if chat_id is None or o.chat_id == chat_id]

    def last(self):
        return self.sent[-1]

    def clear(self):
        self.sent.clear()


class FakeHandle:
    def __init__(self, kind, name, on_fire, rule=None, delay=None):
        self.kind = kind
        self.name = name
        self.on_fire = on_fire
        self.rule = rule
        self.delay = delay
        self.stopped = False
        self.fired = 0

    def stop(self):
        self.stopped = True

    async def fire(self):
        """Run one firing the way the real scheduler wrappers do."""
        if self.stopped:
            return False
        self.fired += 1
        args = ()
        if self.kind == "once":
            self.stopped = True
        elif self.kind == "burst":
            args = (self.fired,)
            if self.fired >= self.rule.count:
                self.stopped = True
        await self.on_fire(*args)
        return True


class FakeScheduler:
    """Same surface as medbot.core.scheduler.Scheduler; jobs only run via fire()."""

    def __init__(self):
        self.handles = []
        self.fail = False

    def _make(self, kind, name, on_fire, **kw):
        if self.fail:
            raise SchedulingError("scheduler unavailable")
        h = FakeHandle(kind, name, on_fire, **kw)
        self.handles.append(h)
        return h

    def schedule_recurring(self, rule, on_fire, *, name):
        return self._make("recurring", name, on_fire, rule=rule)

    def schedule_once(self, delay, on_fire, *, name):
        return self._make("once", name, on_fire, delay=delay)

    def schedule_burst(self, rule, on_fire, *, name):
        assert isinstance(rule, BurstRule)
        return self._make("burst", name, on_fire, rule=rule)

    def live(self, kind=None):
        return [h for h in self.handles if not h.stopped and (kind is None or h.kind == kind)]


class FixedClock:
    def __init__(self, when: datetime):
        self.tz = when.tzinfo
        self.when = when

    def now(self):
        return self.when


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    # Wednesday
    return FixedClock(datetime(2024, 5, 1, 10, 0, tzinfo=cfg.TZ))


@pytest.fixture
def engine(adapter, scheduler, clock):
    from medbot.core.reminder_engine import ReminderEngine

    return ReminderEngine(config=cfg, adapter=adapter, scheduler=scheduler, clock=clock)
