# medbot/core/events.py
"""
Gateway-neutral inbound events and outbound messages.

The Telegram adapter converts aiogram updates into TextReceived/ButtonPressed
and renders SendText (with its keyboard spec) back into aiogram calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class TextReceived:
    chat_id: int
    text: str


@dataclass(frozen=True)
class ButtonPressed:
    chat_id: int
    data: str


# ---- keyboard specs ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReplyKeyboard:
    """Option buttons that send their label back as plain text."""

    rows: Tuple[Tuple[str, ...], ...]
    one_time: bool = True


@dataclass(frozen=True)
class InlineButton:
    text: str
    data: str  # opaque callback payload


@dataclass(frozen=True)
class InlineKeyboard:
    rows: Tuple[Tuple[InlineButton, ...], ...]


@dataclass(frozen=True)
class RemoveKeyboard:
    pass


KeyboardSpec = Union[ReplyKeyboard, InlineKeyboard, RemoveKeyboard]


@dataclass(frozen=True)
class SendText:
    chat_id: int
    text: str
    keyboard: Optional[KeyboardSpec] = None
