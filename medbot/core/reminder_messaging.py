# medbot/core/reminder_messaging.py
from __future__ import annotations

from typing import Any, Iterable, Optional

from medbot.core.events import KeyboardSpec, SendText
from medbot.core.i18n import fmt
from medbot.core.logging_utils import kv


class ReminderMessenger:
    """
    Outbound side of the core.

    Sends are fire-and-forget: a gateway failure is logged and reported as False,
    it never propagates into wizard/store/tracker state changes.
    """

    def __init__(self, adapter: Any, log: Any) -> None:
        self.adapter = adapter
        self.log = log

    async def send(self, out: SendText) -> bool:
        if self.adapter is None:
            self.log.warning("msg.out.drop " + kv(chat_id=out.chat_id, reason="no adapter"))
            return False
        try:
            await self.adapter.send_text(out)
            return True
        except Exception as e:
            self.log.warning(
                "msg.out.fail " + kv(chat_id=out.chat_id, err=f"{type(e).__name__}: {e}")
            )
            return False

    async def send_all(self, outs: Iterable[SendText]) -> None:
        for out in outs:
            await self.send(out)

    async def send_template(
        self,
        chat_id: int,
        key: str,
        keyboard: Optional[KeyboardSpec] = None,
        **kwargs: Any,
    ) -> bool:
        """Resolve an i18n template by key and send it."""
        return await self.send(SendText(chat_id, fmt(key, **kwargs), keyboard))
