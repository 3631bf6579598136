# medbot/adapters/telegram_adapter.py
from __future__ import annotations

import contextlib
import logging
from typing import Any, Optional

from aiogram import Bot, Dispatcher, F
from aiogram.types import (
    BotCommand,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    Message,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
)

from medbot.core.events import (
    ButtonPressed,
    InlineKeyboard,
    KeyboardSpec,
    RemoveKeyboard,
    ReplyKeyboard,
    SendText,
    TextReceived,
)
from medbot.core.logging_utils import kv

BOT_COMMANDS = [
    ("remind", "Programar un recordatorio de medicina"),
    ("water", "Plan de hidratación"),
    ("list", "Ver tus recordatorios"),
    ("delete", "Eliminar un recordatorio"),
    ("cancel", "Cancelar la operación actual"),
    ("help", "Ayuda"),
]


class TelegramAdapter:
    """
    Aiogram 3.x adapter.

    • One message handler (all text, commands included) and one callback handler;
      routing happens in the engine, so the adapter stays thin.
    • Keyboard specs from the core are rendered here into aiogram markup.
    """

    def __init__(self, bot_token: str, engine: Any) -> None:
        self.bot = Bot(token=bot_token)
        self.dp = Dispatcher()
        self.engine = engine
        self.log = logging.getLogger("medbot.adapter")

        self.dp.message.register(self.on_message, F.text)
        self.dp.callback_query.register(self.on_callback)

    def attach_engine(self, engine: Any) -> None:
        self.engine = engine

    # ------------------------------------------------------------------------------
    # Keyboards
    # ------------------------------------------------------------------------------
    @staticmethod
    def render_keyboard(spec: Optional[KeyboardSpec]) -> Any | None:
        if spec is None:
            return None
        if isinstance(spec, RemoveKeyboard):
            return ReplyKeyboardRemove(remove_keyboard=True)
        if isinstance(spec, ReplyKeyboard):
            return ReplyKeyboardMarkup(
                keyboard=[[KeyboardButton(text=label) for label in row] for row in spec.rows],
                resize_keyboard=True,
                one_time_keyboard=spec.one_time,
            )
        if isinstance(spec, InlineKeyboard):
            return InlineKeyboardMarkup(
                inline_keyboard=[
                    [InlineKeyboardButton(text=b.text, callback_data=b.data) for b in row]
                    for row in spec.rows
                ]
            )
        raise TypeError(f"unknown keyboard spec: {type(spec).__name__}")

    # ------------------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------------------
    async def on_message(self, message: Message) -> None:
        chat_id = message.chat.id
        text = message.text or ""
        self.log.info("msg.in " + kv(chat_id=chat_id, text=text))
        if self.engine is None:
            self.log.warning("msg.in.ignored " + kv(reason="no engine attached"))
            return
        await self.engine.on_text(TextReceived(chat_id=chat_id, text=text))

    async def on_callback(self, callback: CallbackQuery) -> None:
        chat_id = callback.message.chat.id if callback.message else 0
        data = callback.data or ""
        self.log.info("cb.in " + kv(chat_id=chat_id, data=data))

        toast: Optional[str] = None
        if self.engine is not None and chat_id:
            toast = await self.engine.on_button(ButtonPressed(chat_id=chat_id, data=data))

        # Acknowledge the callback to clear the Telegram spinner
        with contextlib.suppress(Exception):
            if toast:
                await callback.answer(toast, show_alert=False)
            else:
                await callback.answer()

    # ------------------------------------------------------------------------------
    # Outbound messaging (used by ReminderMessenger)
    # ------------------------------------------------------------------------------
    async def send_text(self, out: SendText) -> int:
        self.log.info("msg.out " + kv(chat_id=out.chat_id, text=out.text))
        msg = await self.bot.send_message(
            chat_id=out.chat_id,
            text=out.text,
            reply_markup=self.render_keyboard(out.keyboard),
        )
        return msg.message_id

    async def register_commands(self) -> None:
        try:
            await self.bot.set_my_commands(
                [BotCommand(command=c, description=d) for c, d in BOT_COMMANDS]
            )
        except Exception as e:
            self.log.warning("commands.register.fail " + kv(err=str(e)))

    async def run_polling(self) -> None:
        self.log.debug("polling.run")
        await self.bot.delete_webhook(drop_pending_updates=True)
        await self.dp.start_polling(self.bot)

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            await self.bot.session.close()


__all__ = ["TelegramAdapter", "BOT_COMMANDS"]
