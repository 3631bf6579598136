# medbot/core/validators.py
from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Optional

from medbot.core.i18n import MESSAGES, WEEKDAY_NAMES
from medbot.core.models import Frequency, TimeOfDay, Weekday

# 24h clock, two-digit hours and minutes
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
# Optional unit suffix after a number ("165 cm", "150 lb", "150 libras")
_NUMBER_RE = re.compile(
    r"^\s*(?P<num>\d+(?:[.,]\d+)?)\s*(?:cm|cms|lb|lbs|libras?)?\s*$",
    re.IGNORECASE | re.UNICODE,
)


def _fold(text: str) -> str:
    """Lowercase and strip accents: 'Miércoles' -> 'miercoles'."""
    decomposed = unicodedata.normalize("NFKD", text.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


_WEEKDAYS_BY_NAME = {_fold(name): Weekday(i) for i, name in enumerate(WEEKDAY_NAMES)}
_FREQUENCIES_BY_LABEL = {
    _fold(MESSAGES["btn_daily"]): Frequency.DAILY,
    _fold(MESSAGES["btn_weekly"]): Frequency.WEEKLY,
}


def parse_time_of_day(text: str | None) -> Optional[TimeOfDay]:
    """'08:30' -> TimeOfDay(8, 30); anything else (including '8:30') -> None."""
    m = _TIME_RE.match((text or "").strip())
    if not m:
        return None
    return TimeOfDay(int(m.group(1)), int(m.group(2)))


def parse_weekday(text: str | None) -> Optional[Weekday]:
    return _WEEKDAYS_BY_NAME.get(_fold(text or ""))


def parse_frequency(text: str | None) -> Optional[Frequency]:
    return _FREQUENCIES_BY_LABEL.get(_fold(text or ""))


def parse_positive_number(text: str | None, *, upper: float | None = None) -> Optional[float]:
    """
    One positive number, dot or comma decimal, unit suffix optional.
    Returns None for non-numeric, zero/negative or above `upper`.
    """
    m = _NUMBER_RE.match(text or "")
    if not m:
        return None
    try:
        value = float(m.group("num").replace(",", "."))
    except ValueError:
        return None
    if value <= 0:
        return None
    if upper is not None and value > upper:
        return None
    return value


def is_keyword(text: str | None, keywords: Iterable[str]) -> bool:
    folded = _fold(text or "")
    return any(folded == _fold(k) for k in keywords)


__all__ = [
    "parse_time_of_day",
    "parse_weekday",
    "parse_frequency",
    "parse_positive_number",
    "is_keyword",
]
