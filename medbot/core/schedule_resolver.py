# medbot/core/schedule_resolver.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from medbot import config as cfg
from medbot.core.i18n import fmt, weekday_name
from medbot.core.models import (
    BurstRule,
    DailyRule,
    Frequency,
    RecurrenceRule,
    SchedulingError,
    TimeOfDay,
    Weekday,
    WeeklyRule,
)


def resolve_rule(
    frequency: Frequency,
    time_of_day: TimeOfDay,
    days: Iterable[Weekday] = (),
) -> DailyRule | WeeklyRule:
    """Completed wizard draft -> recurrence rule."""
    if frequency == Frequency.DAILY:
        return DailyRule(time_of_day)
    if frequency == Frequency.WEEKLY:
        day_set = frozenset(Weekday(d) for d in days)
        if not day_set:
            raise SchedulingError("weekly reminder needs at least one weekday")
        return WeeklyRule(time_of_day, day_set)
    raise SchedulingError(f"unsupported frequency: {frequency!r}")


def next_occurrence(rule: DailyRule | WeeklyRule, now: datetime) -> datetime:
    """
    First trigger strictly after `now` (in now's timezone).
    A time that has already passed today rolls forward to the next matching day.
    """
    hh, mm = rule.time
    today_at = now.replace(hour=hh, minute=mm, second=0, microsecond=0)
    allowed = None if isinstance(rule, DailyRule) else {int(d) for d in rule.days}
    if allowed is not None and not allowed:
        raise SchedulingError("weekly rule without weekdays")
    for offset in range(8):
        candidate = today_at + timedelta(days=offset)
        if candidate <= now:
            continue
        if allowed is None or candidate.weekday() in allowed:
            return candidate
    raise SchedulingError(f"no occurrence found for {rule!r}")  # pragma: no cover


def sorted_days(days: Iterable[Weekday]) -> list[Weekday]:
    return sorted(Weekday(d) for d in days)


def days_text(days: Iterable[Weekday]) -> str:
    return ", ".join(weekday_name(d) for d in sorted_days(days))


def describe_rule(name: str, rule: DailyRule | WeeklyRule) -> str:
    """Short label used in /list and the delete menu."""
    if isinstance(rule, WeeklyRule):
        return fmt("label_weekly", name=name, days=days_text(rule.days), time=str(rule.time))
    return fmt("label_daily", name=name, time=str(rule.time))


def format_occurrence(dt: datetime) -> str:
    return f"{weekday_name(dt.weekday())} {dt.strftime('%d/%m %H:%M')}"


# -------------------------------------------------------------------------------------------------
# Water intake plan
# -------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class WaterPlan:
    liters: float
    glasses: int
    interval_minutes: int


def water_plan(weight_lb: float, active_minutes: Optional[int] = None) -> WaterPlan:
    """
    Recommended intake from body weight (33 ml per kg):
        liters  = weight_lb * 0.45359237 * 33 / 1000
        glasses = ceil(liters / 0.25)
        interval_minutes = floor(active_minutes / glasses), at least 1
    150 lb -> 2.25 l -> 9 glasses, one every 106 minutes over 960 active minutes.
    """
    if weight_lb <= 0:
        raise SchedulingError(f"weight must be positive, got {weight_lb!r}")
    minutes = cfg.ACTIVE_MINUTES_PER_DAY if active_minutes is None else active_minutes
    liters = weight_lb * cfg.LB_TO_KG * cfg.ML_PER_KG / 1000
    glasses = max(1, math.ceil(liters / cfg.GLASS_LITERS))
    interval = max(1, math.floor(minutes / glasses))
    return WaterPlan(liters=liters, glasses=glasses, interval_minutes=interval)


def burst_rule(plan: WaterPlan) -> BurstRule:
    return BurstRule(interval=timedelta(minutes=plan.interval_minutes), count=plan.glasses)


def describe_water(plan: WaterPlan) -> str:
    return fmt("label_water", glasses=plan.glasses, interval=plan.interval_minutes)


__all__ = [
    "resolve_rule",
    "next_occurrence",
    "describe_rule",
    "days_text",
    "format_occurrence",
    "WaterPlan",
    "water_plan",
    "burst_rule",
    "describe_water",
    "RecurrenceRule",
]
