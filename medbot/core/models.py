# medbot/core/models.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import NamedTuple, Union
from zoneinfo import ZoneInfo


class SchedulingError(ValueError):
    """A recurrence rule could not be turned into a scheduler job."""


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class Weekday(IntEnum):
    """Canonical weekday index: Monday=0 … Sunday=6 (same as date.weekday())."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def cron_name(self) -> str:
        # APScheduler day_of_week names; no numeric Sunday=0/7 ambiguity
        return ("mon", "tue", "wed", "thu", "fri", "sat", "sun")[self.value]


class ReminderKind(str, Enum):
    MEDICINE = "medicine"
    WATER = "water"


class ReminderStatus(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


class TimeOfDay(NamedTuple):
    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


# -------------------------------------------------------------------------------------------------
# Recurrence rules (scheduler-independent)
# -------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class DailyRule:
    time: TimeOfDay


@dataclass(frozen=True)
class WeeklyRule:
    time: TimeOfDay
    days: frozenset[Weekday]


@dataclass(frozen=True)
class BurstRule:
    """Every `interval`, fire exactly `count` times, then expire."""

    interval: timedelta
    count: int


RecurrenceRule = Union[DailyRule, WeeklyRule, BurstRule]


@dataclass
class ReminderSpec:
    """A scheduled reminder as the user sees it."""

    id: int
    chat_id: int
    kind: ReminderKind
    label: str
    rule: RecurrenceRule
    status: ReminderStatus = ReminderStatus.ACTIVE


class Clock:
    """Injectable, testable clock bound to a timezone."""

    def __init__(self, tz: ZoneInfo):
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)
