# medbot/app.py
from __future__ import annotations

import sys
from pathlib import Path
import asyncio
import logging

# --------------------------------------------------------------------------------------
# Ensure project root is in sys.path so "import medbot.*" always works
# --------------------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from medbot import config as cfg  # noqa: E402
from medbot.adapters.telegram_adapter import TelegramAdapter  # noqa: E402
from medbot.core.config_validation import validate_config  # noqa: E402
from medbot.core.logging_utils import kv, setup_logging  # noqa: E402
from medbot.core.reminder_engine import ReminderEngine  # noqa: E402
from medbot.core.scheduler import Scheduler  # noqa: E402


async def main() -> None:
    setup_logging(cfg)
    log = logging.getLogger("medbot.app")

    validate_config(cfg)
    token = cfg.get_bot_token()

    scheduler = Scheduler(cfg.TZ)

    # Break constructor cycle: adapter needs engine, engine needs adapter
    adapter = TelegramAdapter(bot_token=token, engine=None)
    engine = ReminderEngine(config=cfg, adapter=adapter, scheduler=scheduler)
    adapter.attach_engine(engine)

    # Reminders only exist once users create them; starting the scheduler early is safe
    scheduler.start()
    await adapter.register_commands()
    log.info("startup.ready " + kv(timezone=cfg.TIMEZONE, commands=engine.commands))

    try:
        await adapter.run_polling()
    finally:
        engine.shutdown()
        scheduler.shutdown()
        await adapter.close()
        log.info("shutdown.done")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
