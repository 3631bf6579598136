# medbot/core/config_validation.py
from __future__ import annotations

from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def _positive(cfg: Any, name: str) -> float:
    value = getattr(cfg, name, None)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{name} must be a positive number, got {value!r}")
    return value


def validate_config(cfg: Any) -> None:
    """Validate runtime configuration before starting the bot."""
    tz_name = getattr(cfg, "TIMEZONE", None)
    if not isinstance(tz_name, str) or not tz_name.strip():
        raise ValueError("TIMEZONE must be a non-empty IANA timezone name")
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"TIMEZONE {tz_name!r} is not a known timezone") from e

    _positive(cfg, "CONFIRM_WINDOW_S")
    _positive(cfg, "ACTIVE_MINUTES_PER_DAY")
    _positive(cfg, "LB_TO_KG")
    _positive(cfg, "ML_PER_KG")
    glass = _positive(cfg, "GLASS_LITERS")
    if glass > 2:
        raise ValueError(f"GLASS_LITERS looks wrong: {glass!r}")
    _positive(cfg, "MAX_HEIGHT_CM")
    _positive(cfg, "MAX_WEIGHT_LB")

    keywords = getattr(cfg, "CANCEL_KEYWORDS", None)
    if not isinstance(keywords, list) or not keywords or not all(
        isinstance(k, str) and k.strip() for k in keywords
    ):
        raise ValueError("CANCEL_KEYWORDS must be a non-empty list of strings")

    done = getattr(cfg, "DONE_KEYWORD", None)
    if not isinstance(done, str) or not done.strip():
        raise ValueError("DONE_KEYWORD must be a non-empty string")
    if done.strip().lower() in {k.strip().lower() for k in keywords}:
        raise ValueError("DONE_KEYWORD must differ from the cancel keywords")

    if not getattr(cfg, "AUDIT_LOG_FILE", None):
        raise ValueError("AUDIT_LOG_FILE must be set")
