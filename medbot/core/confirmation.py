# medbot/core/confirmation.py
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from medbot.core.events import SendText
from medbot.core.i18n import fmt
from medbot.core.keyboards import confirm_keyboard
from medbot.core.logging_utils import kv
from medbot.core.models import Clock


class ConfirmationOutcome(str, Enum):
    TAKEN = "taken"
    NOT_TAKEN = "not_taken"
    STALE = "stale"


@dataclass
class PendingConfirmation:
    chat_id: int
    medicine_label: str
    armed_at: datetime
    token: int
    timeout_handle: Any = None
    reminder_id: Optional[int] = None


class ConfirmationTracker:
    """
    Follow-up after a medicine reminder fires: one pending yes/no per chat.

    arm() supersedes (and stops the timer of) any earlier pending confirmation for
    the same chat, so only the most recent timeout can ever fire. A stopped timer
    never reaches _on_timeout.
    """

    def __init__(
        self,
        *,
        scheduler: Any,
        messenger: Any,
        clock: Clock,
        window_seconds: float = 60,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.scheduler = scheduler
        self.messenger = messenger
        self.clock = clock
        self.window_seconds = window_seconds
        self.log = logger or logging.getLogger("medbot.confirmation")
        self._pending: Dict[int, PendingConfirmation] = {}
        self._tokens = itertools.count(1)

    def pending(self, chat_id: int) -> Optional[PendingConfirmation]:
        return self._pending.get(chat_id)

    async def notify_and_arm(
        self,
        chat_id: int,
        medicine_label: str,
        *,
        reminder_id: Optional[int] = None,
        still_active: Optional[Callable[[], bool]] = None,
    ) -> Optional[PendingConfirmation]:
        """
        Send the due notification (with yes/no buttons), then arm the timeout.
        `still_active` is checked after the send: a reminder removed meanwhile is not armed.
        """
        token = next(self._tokens)
        await self.messenger.send(
            SendText(chat_id, fmt("medicine_due", name=medicine_label), confirm_keyboard(token))
        )
        if still_active is not None and not still_active():
            self.log.info(
                "confirm.arm.skip " + kv(chat_id=chat_id, reminder_id=reminder_id, reason="removed")
            )
            return None
        return self.arm(chat_id, medicine_label, token=token, reminder_id=reminder_id)

    def arm(
        self,
        chat_id: int,
        medicine_label: str,
        *,
        token: Optional[int] = None,
        reminder_id: Optional[int] = None,
    ) -> PendingConfirmation:
        self.cancel(chat_id)
        tok = next(self._tokens) if token is None else token
        pending = PendingConfirmation(
            chat_id=chat_id,
            medicine_label=medicine_label,
            armed_at=self.clock.now(),
            token=tok,
            reminder_id=reminder_id,
        )

        async def _timeout() -> None:
            await self._on_timeout(chat_id, tok)

        pending.timeout_handle = self.scheduler.schedule_once(
            self.window_seconds, _timeout, name=f"confirm:{chat_id}"
        )
        self._pending[chat_id] = pending
        self.log.info(
            "confirm.arm " + kv(chat_id=chat_id, token=tok, window_s=self.window_seconds)
        )
        return pending

    def cancel(self, chat_id: int) -> bool:
        pending = self._pending.pop(chat_id, None)
        if pending is None:
            return False
        if pending.timeout_handle is not None:
            pending.timeout_handle.stop()
        self.log.debug("confirm.cancel " + kv(chat_id=chat_id, token=pending.token))
        return True

    def cancel_for_reminder(self, chat_id: int, reminder_id: int) -> bool:
        """Drop the pending confirmation only if it was raised by `reminder_id`."""
        pending = self._pending.get(chat_id)
        if pending is None or pending.reminder_id != reminder_id:
            return False
        return self.cancel(chat_id)

    def cancel_all(self) -> int:
        chat_ids = list(self._pending)
        for chat_id in chat_ids:
            self.cancel(chat_id)
        return len(chat_ids)

    async def resolve(self, chat_id: int, token: int, taken: bool) -> ConfirmationOutcome:
        pending = self._pending.get(chat_id)
        if pending is None or pending.token != token:
            self.log.info("confirm.stale " + kv(chat_id=chat_id, token=token))
            return ConfirmationOutcome.STALE
        self.cancel(chat_id)
        outcome = ConfirmationOutcome.TAKEN if taken else ConfirmationOutcome.NOT_TAKEN
        self.log.info(
            "confirm.answer "
            + kv(chat_id=chat_id, token=token, label=pending.medicine_label, outcome=outcome.value)
        )
        key = "confirm_taken_ack" if taken else "confirm_not_taken_ack"
        await self.messenger.send(SendText(chat_id, fmt(key)))
        return outcome

    async def _on_timeout(self, chat_id: int, token: int) -> None:
        pending = self._pending.get(chat_id)
        if pending is None or pending.token != token:
            return
        del self._pending[chat_id]
        self.log.info(
            "confirm.timeout " + kv(chat_id=chat_id, token=token, label=pending.medicine_label)
        )
        await self.messenger.send(
            SendText(chat_id, fmt("confirm_timeout", name=pending.medicine_label))
        )

    def __len__(self) -> int:
        return len(self._pending)


__all__ = ["ConfirmationTracker", "ConfirmationOutcome", "PendingConfirmation"]
