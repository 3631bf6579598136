# medbot/core/reminder_store.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from medbot.core.logging_utils import kv
from medbot.core.models import ReminderSpec, ReminderStatus


class Removal(str, Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RemovalResult:
    outcome: Removal
    spec: Optional[ReminderSpec] = None

    @property
    def ok(self) -> bool:
        return self.outcome == Removal.REMOVED


@dataclass
class StoredReminder:
    spec: ReminderSpec
    handle: Any  # JobHandle-like: must provide stop()


class ReminderStore:
    """
    Owns the per-chat registry of active reminders.

    Ids are monotonic per chat and never reused, so a deletion menu built from
    `list_for()` still points at the same reminders when a button comes back.
    """

    def __init__(self) -> None:
        self._by_chat: Dict[int, Dict[int, StoredReminder]] = {}
        self._next_id: Dict[int, int] = {}
        self.log = logging.getLogger("medbot.store")

    def allocate_id(self, chat_id: int) -> int:
        rid = self._next_id.get(chat_id, 1)
        self._next_id[chat_id] = rid + 1
        return rid

    def add(self, spec: ReminderSpec, handle: Any) -> int:
        entries = self._by_chat.setdefault(spec.chat_id, {})
        if spec.id in entries:
            raise ValueError(f"duplicate reminder id {spec.id} for chat {spec.chat_id}")
        # keep allocate_id ahead of externally chosen ids
        self._next_id[spec.chat_id] = max(self._next_id.get(spec.chat_id, 1), spec.id + 1)
        entries[spec.id] = StoredReminder(spec, handle)
        self.log.info(
            "store.add " + kv(chat_id=spec.chat_id, reminder_id=spec.id, label=spec.label)
        )
        return spec.id

    def get(self, chat_id: int, index: int) -> Optional[ReminderSpec]:
        entry = self._by_chat.get(chat_id, {}).get(index)
        return entry.spec if entry else None

    def list_for(self, chat_id: int) -> List[Tuple[int, str]]:
        entries = self._by_chat.get(chat_id, {})
        return [(rid, entries[rid].spec.label) for rid in sorted(entries)]

    def remove(self, chat_id: int, index: int) -> RemovalResult:
        """Stop the job, then drop the entry. Unknown chat/index -> NOT_FOUND, never raises."""
        entries = self._by_chat.get(chat_id)
        if not entries or index not in entries:
            self.log.info("store.remove.miss " + kv(chat_id=chat_id, index=index))
            return RemovalResult(Removal.NOT_FOUND)
        entry = entries[index]
        entry.handle.stop()
        entry.spec.status = ReminderStatus.STOPPED
        del entries[index]
        if not entries:
            del self._by_chat[chat_id]
        self.log.info("store.remove " + kv(chat_id=chat_id, reminder_id=index))
        return RemovalResult(Removal.REMOVED, entry.spec)

    def expire(self, chat_id: int, index: int) -> bool:
        """Self-terminated jobs (finished bursts) leave the registry here."""
        return self.remove(chat_id, index).ok

    def chats(self) -> Iterable[int]:
        return list(self._by_chat)

    def stop_all(self) -> int:
        n = 0
        for chat_id in self.chats():
            for rid, _ in self.list_for(chat_id):
                if self.remove(chat_id, rid).ok:
                    n += 1
        return n

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_chat.values())


__all__ = ["ReminderStore", "Removal", "RemovalResult", "StoredReminder"]
