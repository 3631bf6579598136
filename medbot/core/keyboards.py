# medbot/core/keyboards.py
from __future__ import annotations

from typing import Iterable, Tuple

from medbot.core.events import InlineButton, InlineKeyboard, ReplyKeyboard
from medbot.core.i18n import MESSAGES, WEEKDAY_NAMES

# Callback payload prefixes (adapter routes everything; engine parses)
CB_TAKEN = "med:yes"
CB_NOT_TAKEN = "med:no"
CB_DELETE = "del"
CB_DELETE_CANCEL = "del:cancel"


def cancel_keyboard() -> ReplyKeyboard:
    return ReplyKeyboard(rows=((MESSAGES["btn_cancel"],),))


def frequency_keyboard() -> ReplyKeyboard:
    return ReplyKeyboard(
        rows=(
            (MESSAGES["btn_daily"],),
            (MESSAGES["btn_weekly"],),
            (MESSAGES["btn_cancel"],),
        )
    )


def days_keyboard() -> ReplyKeyboard:
    """Weekdays two per row, then Listo and Cancelar."""
    names = list(WEEKDAY_NAMES)
    rows: list[Tuple[str, ...]] = [tuple(names[i : i + 2]) for i in range(0, len(names), 2)]
    rows.append((MESSAGES["btn_done"],))
    rows.append((MESSAGES["btn_cancel"],))
    return ReplyKeyboard(rows=tuple(rows), one_time=False)


def confirm_keyboard(token: int) -> InlineKeyboard:
    return InlineKeyboard(
        rows=(
            (
                InlineButton(MESSAGES["btn_taken"], f"{CB_TAKEN}:{token}"),
                InlineButton(MESSAGES["btn_not_taken"], f"{CB_NOT_TAKEN}:{token}"),
            ),
        )
    )


def delete_menu_keyboard(entries: Iterable[Tuple[int, str]]) -> InlineKeyboard:
    """One button per reminder; payload carries the stable reminder id."""
    rows = [
        (InlineButton(f"{index}. {label}", f"{CB_DELETE}:{index}"),)
        for index, label in entries
    ]
    rows.append((InlineButton(MESSAGES["btn_delete_cancel"], CB_DELETE_CANCEL),))
    return InlineKeyboard(rows=tuple(rows))
