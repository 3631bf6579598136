"""
Runtime configuration for MedBot.
All scheduling happens in one fixed timezone (America/El_Salvador by default).
Reminders and wizard sessions live in memory only: a restart drops them.
"""

from __future__ import annotations

import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Supports running with either `.env` present or purely env-driven.
load_dotenv(override=False)

# --------------------------------------------------------------------------------------
# Core bot settings
# --------------------------------------------------------------------------------------
# IMPORTANT: no hardcoded token in repo; provide via env or explicit override
BOT_TOKEN: str | None = None
TIMEZONE = os.getenv("MEDBOT_TIMEZONE", "").strip() or "America/El_Salvador"
TZ = ZoneInfo(TIMEZONE)

# --------------------------------------------------------------------------------------
# Confirmation window after a medicine reminder fires
# --------------------------------------------------------------------------------------
CONFIRM_WINDOW_S = int(os.getenv("MEDBOT_CONFIRM_WINDOW_S", "60").strip() or "60")

# --------------------------------------------------------------------------------------
# Water intake plan
#   liters  = weight_lb * LB_TO_KG * ML_PER_KG / 1000
#   glasses = ceil(liters / GLASS_LITERS)
#   interval_minutes = floor(ACTIVE_MINUTES_PER_DAY / glasses)
# --------------------------------------------------------------------------------------
LB_TO_KG = 0.45359237
ML_PER_KG = 33
GLASS_LITERS = 0.25
ACTIVE_MINUTES_PER_DAY = int(
    os.getenv("MEDBOT_ACTIVE_MINUTES", "960").strip() or "960"
)  # 16 waking hours

# Plausibility limits for the water wizard
MAX_HEIGHT_CM = 300
MAX_WEIGHT_LB = 1000

# --------------------------------------------------------------------------------------
# Wizard keywords (case-insensitive)
# --------------------------------------------------------------------------------------
CANCEL_KEYWORDS = ["cancelar", "/cancel"]
DONE_KEYWORD = "listo"

# --------------------------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------------------------
AUDIT_LOG_FILE = os.getenv("MEDBOT_AUDIT_LOG", "").strip() or "medbot/logs/audit.log"


def get_bot_token() -> str:
    token = BOT_TOKEN or os.getenv("BOT_TOKEN")
    if not token:
        raise RuntimeError(
            "Bot token is not set. Set env var BOT_TOKEN or override BOT_TOKEN in config.py."
        )
    return token
