# medbot/core/session.py
"""
Per-chat intake wizards.

A session is an immutable tagged variant (MedicineIntake | WaterIntake | DeleteFlow).
`advance(session, text)` is a pure transition: it returns the next session (or None when
the wizard ends), the replies to send, and the completed draft when one is ready for
scheduling. Scheduling itself is done by the engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from medbot import config as cfg
from medbot.core.events import RemoveKeyboard, SendText
from medbot.core.i18n import fmt, weekday_name
from medbot.core.keyboards import (
    cancel_keyboard,
    days_keyboard,
    frequency_keyboard,
)
from medbot.core.logging_utils import kv
from medbot.core.models import Frequency, TimeOfDay, Weekday
from medbot.core.validators import (
    is_keyword,
    parse_frequency,
    parse_positive_number,
    parse_time_of_day,
    parse_weekday,
)


class Step(str, Enum):
    AWAITING_NAME = "awaiting_name"
    AWAITING_FREQUENCY = "awaiting_frequency"
    AWAITING_TIME = "awaiting_time"
    AWAITING_DAYS = "awaiting_days"
    AWAITING_HEIGHT = "awaiting_height"
    AWAITING_WEIGHT = "awaiting_weight"
    AWAITING_SELECTION = "awaiting_selection"


@dataclass(frozen=True)
class MedicineIntake:
    chat_id: int
    step: Step = Step.AWAITING_NAME
    medicine_name: str = ""
    frequency: Optional[Frequency] = None
    time_of_day: Optional[TimeOfDay] = None
    days: frozenset[Weekday] = frozenset()


@dataclass(frozen=True)
class WaterIntake:
    chat_id: int
    step: Step = Step.AWAITING_HEIGHT
    height_cm: Optional[float] = None
    weight_lb: Optional[float] = None


@dataclass(frozen=True)
class DeleteFlow:
    """No draft: the selection arrives as a button press."""

    chat_id: int
    step: Step = Step.AWAITING_SELECTION


Session = Union[MedicineIntake, WaterIntake, DeleteFlow]


@dataclass(frozen=True)
class Transition:
    session: Optional[Session]
    outputs: Tuple[SendText, ...] = ()
    completed: Optional[Session] = None
    cancelled: bool = False


def _say(chat_id: int, key: str, keyboard=None, **kwargs) -> SendText:
    return SendText(chat_id, fmt(key, **kwargs), keyboard)


# -------------------------------------------------------------------------------------------------
# Wizard entry points
# -------------------------------------------------------------------------------------------------
def start_medicine(chat_id: int) -> Transition:
    return Transition(
        MedicineIntake(chat_id),
        (_say(chat_id, "ask_medicine_name", cancel_keyboard()),),
    )


def start_water(chat_id: int) -> Transition:
    return Transition(
        WaterIntake(chat_id),
        (_say(chat_id, "ask_height", cancel_keyboard()),),
    )


def start_delete(chat_id: int) -> DeleteFlow:
    return DeleteFlow(chat_id)


# -------------------------------------------------------------------------------------------------
# Transitions
# -------------------------------------------------------------------------------------------------
def advance(session: Session, text: str) -> Transition:
    """(current session, input) -> Transition. Never mutates `session`."""
    if is_keyword(text, cfg.CANCEL_KEYWORDS):
        key = "delete_cancelled" if isinstance(session, DeleteFlow) else "cancelled"
        return Transition(
            None,
            (_say(session.chat_id, key, RemoveKeyboard()),),
            cancelled=True,
        )

    if isinstance(session, MedicineIntake):
        return _advance_medicine(session, text)
    if isinstance(session, WaterIntake):
        return _advance_water(session, text)
    if isinstance(session, DeleteFlow):
        return Transition(session, (_say(session.chat_id, "delete_use_buttons"),))
    raise TypeError(f"unknown session type: {type(session).__name__}")


def _advance_medicine(s: MedicineIntake, text: str) -> Transition:
    chat_id = s.chat_id

    if s.step == Step.AWAITING_NAME:
        name = (text or "").strip()
        if not name:
            return Transition(s, (_say(chat_id, "empty_medicine_name", cancel_keyboard()),))
        return Transition(
            replace(s, medicine_name=name, step=Step.AWAITING_FREQUENCY),
            (_say(chat_id, "ask_frequency", frequency_keyboard(), name=name),),
        )

    if s.step == Step.AWAITING_FREQUENCY:
        frequency = parse_frequency(text)
        if frequency is None:
            return Transition(s, (_say(chat_id, "invalid_frequency", frequency_keyboard()),))
        return Transition(
            replace(s, frequency=frequency, step=Step.AWAITING_TIME),
            (_say(chat_id, "ask_time", cancel_keyboard()),),
        )

    if s.step == Step.AWAITING_TIME:
        tod = parse_time_of_day(text)
        if tod is None:
            return Transition(s, (_say(chat_id, "invalid_time", cancel_keyboard()),))
        nxt = replace(s, time_of_day=tod)
        if s.frequency == Frequency.WEEKLY:
            return Transition(
                replace(nxt, step=Step.AWAITING_DAYS),
                (_say(chat_id, "ask_days", days_keyboard()),),
            )
        return Transition(None, completed=nxt)

    if s.step == Step.AWAITING_DAYS:
        if is_keyword(text, [cfg.DONE_KEYWORD]):
            if not s.days:
                return Transition(s, (_say(chat_id, "days_required", days_keyboard()),))
            return Transition(None, completed=s)
        day = parse_weekday(text)
        if day is None:
            return Transition(s, (_say(chat_id, "invalid_day", days_keyboard()),))
        if day in s.days:
            return Transition(
                s, (_say(chat_id, "day_repeated", days_keyboard(), day=weekday_name(day)),)
            )
        return Transition(
            replace(s, days=s.days | {day}),
            (_say(chat_id, "day_added", days_keyboard(), day=weekday_name(day)),),
        )

    raise ValueError(f"medicine wizard in foreign step: {s.step}")


def _advance_water(s: WaterIntake, text: str) -> Transition:
    chat_id = s.chat_id

    if s.step == Step.AWAITING_HEIGHT:
        height = parse_positive_number(text, upper=cfg.MAX_HEIGHT_CM)
        if height is None:
            return Transition(s, (_say(chat_id, "invalid_height", cancel_keyboard()),))
        return Transition(
            replace(s, height_cm=height, step=Step.AWAITING_WEIGHT),
            (_say(chat_id, "ask_weight", cancel_keyboard()),),
        )

    if s.step == Step.AWAITING_WEIGHT:
        weight = parse_positive_number(text, upper=cfg.MAX_WEIGHT_LB)
        if weight is None:
            return Transition(s, (_say(chat_id, "invalid_weight", cancel_keyboard()),))
        return Transition(None, completed=replace(s, weight_lb=weight))

    raise ValueError(f"water wizard in foreign step: {s.step}")


# -------------------------------------------------------------------------------------------------
# Registry
# -------------------------------------------------------------------------------------------------
class SessionRegistry:
    """Owns the per-chat sessions: at most one session per chat."""

    def __init__(self) -> None:
        self._sessions: Dict[int, Session] = {}
        self.log = logging.getLogger("medbot.sessions")

    def get(self, chat_id: int) -> Optional[Session]:
        return self._sessions.get(chat_id)

    def start(self, session: Session) -> Optional[Session]:
        """Install `session`, discarding (and returning) any unfinished one."""
        previous = self._sessions.get(session.chat_id)
        self._sessions[session.chat_id] = session
        if previous is not None:
            self.log.info(
                "session.superseded "
                + kv(
                    chat_id=session.chat_id,
                    old=type(previous).__name__,
                    new=type(session).__name__,
                )
            )
        return previous

    def apply(self, chat_id: int, transition: Transition) -> None:
        if transition.session is None:
            self.end(chat_id)
        else:
            self._sessions[chat_id] = transition.session

    def end(self, chat_id: int) -> Optional[Session]:
        return self._sessions.pop(chat_id, None)

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = [
    "Step",
    "MedicineIntake",
    "WaterIntake",
    "DeleteFlow",
    "Session",
    "Transition",
    "SessionRegistry",
    "advance",
    "start_medicine",
    "start_water",
    "start_delete",
]
