# medbot/core/reminder_engine.py
from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from zoneinfo import ZoneInfo

from medbot.core.confirmation import ConfirmationOutcome, ConfirmationTracker
from medbot.core.events import ButtonPressed, RemoveKeyboard, SendText, TextReceived
from medbot.core.i18n import fmt
from medbot.core.keyboards import (
    CB_DELETE,
    CB_DELETE_CANCEL,
    CB_NOT_TAKEN,
    CB_TAKEN,
    delete_menu_keyboard,
)
from medbot.core.logging_utils import kv
from medbot.core.models import (
    Clock,
    Frequency,
    ReminderKind,
    ReminderSpec,
    SchedulingError,
)
from medbot.core.reminder_messaging import ReminderMessenger
from medbot.core.reminder_store import ReminderStore
from medbot.core.schedule_resolver import (
    burst_rule,
    days_text,
    describe_rule,
    describe_water,
    format_occurrence,
    next_occurrence,
    resolve_rule,
    water_plan,
)
from medbot.core.session import (
    DeleteFlow,
    MedicineIntake,
    Session,
    SessionRegistry,
    WaterIntake,
    advance,
    start_delete,
    start_medicine,
    start_water,
)


def _num(value: Optional[float]) -> str:
    """150.0 -> '150', 72.5 -> '72.5'."""
    if value is None:
        return "?"
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


class ReminderEngine:
    """
    Single dispatcher for the core.

    The adapter forwards every text message to on_text() and every button press to
    on_button(); commands, wizard steps and callback payloads are routed here.
    State (sessions, store, tracker) is always updated before anything is sent.
    """

    def __init__(
        self,
        config: Any,
        adapter: Any | None,
        scheduler: Any,
        clock: Optional[Clock] = None,
    ):
        self.cfg = config
        self.adapter = adapter
        tz = getattr(config, "TZ", None) or ZoneInfo(
            getattr(config, "TIMEZONE", "America/El_Salvador")
        )
        self.clock = clock or Clock(tz)
        self.scheduler = scheduler
        self.log = logging.getLogger("medbot.engine")

        self.messenger = ReminderMessenger(adapter=self.adapter, log=self.log)
        self.sessions = SessionRegistry()
        self.store = ReminderStore()
        self.tracker = ConfirmationTracker(
            scheduler=self.scheduler,
            messenger=self.messenger,
            clock=self.clock,
            window_seconds=getattr(config, "CONFIRM_WINDOW_S", 60),
        )

        self._commands: Dict[str, Callable[[int], Awaitable[None]]] = {
            "/start": self._cmd_help,
            "/help": self._cmd_help,
            "/remind": self._cmd_remind,
            "/water": self._cmd_water,
            "/list": self._cmd_list,
            "/delete": self._cmd_delete,
            "/cancel": self._cmd_cancel,
        }

    @property
    def commands(self) -> list[str]:
        return list(self._commands)

    # ---- inbound text -----------------------------------------------------------------
    async def on_text(self, event: TextReceived) -> None:
        chat_id = event.chat_id
        text = (event.text or "").strip()
        self.log.info("msg.engine.in " + kv(chat_id=chat_id, text=text))

        if text.startswith("/"):
            cmd = text.split()[0].split("@")[0].lower()
            handler = self._commands.get(cmd)
            if handler is None:
                # unknown commands never become wizard input; the session stays as is
                self.log.info("msg.engine.unknown_cmd " + kv(chat_id=chat_id, cmd=cmd))
                await self.messenger.send_template(chat_id, "unknown_input")
                return
            await handler(chat_id)
            return

        session = self.sessions.get(chat_id)
        if session is None:
            await self.messenger.send_template(chat_id, "unknown_input")
            return

        await self._step(session, text)

    async def _step(self, session: Session, text: str) -> None:
        chat_id = session.chat_id
        transition = advance(session, text)
        self.sessions.apply(chat_id, transition)
        self.log.debug(
            "session.step "
            + kv(
                chat_id=chat_id,
                kind=type(session).__name__,
                step=session.step.value,
                next=transition.session.step.value if transition.session else None,
                completed=transition.completed is not None,
                cancelled=transition.cancelled,
            )
        )
        await self.messenger.send_all(transition.outputs)
        if transition.completed is not None:
            await self._finalize(transition.completed)

    # ---- commands ---------------------------------------------------------------------
    async def _cmd_help(self, chat_id: int) -> None:
        await self.messenger.send_template(chat_id, "help_text")

    async def _cmd_remind(self, chat_id: int) -> None:
        transition = start_medicine(chat_id)
        self.sessions.start(transition.session)
        await self.messenger.send_all(transition.outputs)

    async def _cmd_water(self, chat_id: int) -> None:
        transition = start_water(chat_id)
        self.sessions.start(transition.session)
        await self.messenger.send_all(transition.outputs)

    async def _cmd_list(self, chat_id: int) -> None:
        entries = self.store.list_for(chat_id)
        if not entries:
            await self.messenger.send_template(chat_id, "no_reminders")
            return
        lines = [fmt("list_header")]
        lines += [fmt("list_item", index=index, label=label) for index, label in entries]
        await self.messenger.send(SendText(chat_id, "\n".join(lines)))

    async def _cmd_delete(self, chat_id: int) -> None:
        entries = self.store.list_for(chat_id)
        if not entries:
            self.sessions.end(chat_id)
            await self.messenger.send_template(chat_id, "no_reminders", RemoveKeyboard())
            return
        self.sessions.start(start_delete(chat_id))
        await self.messenger.send_template(
            chat_id, "delete_menu", delete_menu_keyboard(entries)
        )

    async def _cmd_cancel(self, chat_id: int) -> None:
        session = self.sessions.end(chat_id)
        if session is None:
            await self.messenger.send_template(chat_id, "nothing_to_cancel", RemoveKeyboard())
            return
        self.log.info("session.cancel " + kv(chat_id=chat_id, kind=type(session).__name__))
        key = "delete_cancelled" if isinstance(session, DeleteFlow) else "cancelled"
        await self.messenger.send_template(chat_id, key, RemoveKeyboard())

    # ---- finalize ---------------------------------------------------------------------
    async def _finalize(self, session: Session) -> None:
        if isinstance(session, MedicineIntake):
            await self._finalize_medicine(session)
        elif isinstance(session, WaterIntake):
            await self._finalize_water(session)
        else:
            self.log.error("finalize.unexpected " + kv(kind=type(session).__name__))

    async def _finalize_medicine(self, s: MedicineIntake) -> None:
        chat_id = s.chat_id
        try:
            rule = resolve_rule(s.frequency, s.time_of_day, s.days)
            rid = self.store.allocate_id(chat_id)
            handle = self.scheduler.schedule_recurring(
                rule,
                functools.partial(self._fire_medicine, chat_id, rid, s.medicine_name),
                name=f"med:{chat_id}:{rid}",
            )
        except SchedulingError:
            self.log.exception(
                "schedule.fail " + kv(chat_id=chat_id, name=s.medicine_name, time=str(s.time_of_day))
            )
            await self.messenger.send_template(chat_id, "schedule_failed", RemoveKeyboard())
            return

        spec = ReminderSpec(
            id=rid,
            chat_id=chat_id,
            kind=ReminderKind.MEDICINE,
            label=describe_rule(s.medicine_name, rule),
            rule=rule,
        )
        self.store.add(spec, handle)

        nxt = format_occurrence(next_occurrence(rule, self.clock.now()))
        if s.frequency == Frequency.WEEKLY:
            text = fmt(
                "medicine_scheduled_weekly",
                name=s.medicine_name,
                days=days_text(s.days),
                time=str(s.time_of_day),
                next=nxt,
            )
        else:
            text = fmt(
                "medicine_scheduled_daily",
                name=s.medicine_name,
                time=str(s.time_of_day),
                next=nxt,
            )
        await self.messenger.send(SendText(chat_id, text, RemoveKeyboard()))

    async def _finalize_water(self, s: WaterIntake) -> None:
        chat_id = s.chat_id
        try:
            plan = water_plan(s.weight_lb, getattr(self.cfg, "ACTIVE_MINUTES_PER_DAY", None))
            rule = burst_rule(plan)
            rid = self.store.allocate_id(chat_id)
            handle = self.scheduler.schedule_burst(
                rule,
                functools.partial(self._fire_water, chat_id, rid, plan.glasses),
                name=f"water:{chat_id}:{rid}",
            )
        except SchedulingError:
            self.log.exception("schedule.fail " + kv(chat_id=chat_id, weight_lb=s.weight_lb))
            await self.messenger.send_template(chat_id, "schedule_failed", RemoveKeyboard())
            return

        spec = ReminderSpec(
            id=rid,
            chat_id=chat_id,
            kind=ReminderKind.WATER,
            label=describe_water(plan),
            rule=rule,
        )
        self.store.add(spec, handle)
        await self.messenger.send_template(
            chat_id,
            "water_scheduled",
            RemoveKeyboard(),
            height=_num(s.height_cm),
            weight=_num(s.weight_lb),
            liters=f"{plan.liters:.2f}",
            glasses=plan.glasses,
            interval=plan.interval_minutes,
        )

    # ---- jobs -------------------------------------------------------------------------
    async def _fire_medicine(self, chat_id: int, reminder_id: int, name: str) -> None:
        if self.store.get(chat_id, reminder_id) is None:
            self.log.debug(
                "job.fire.skip " + kv(chat_id=chat_id, reminder_id=reminder_id, reason="removed")
            )
            return
        self.log.info("job.fire.medicine " + kv(chat_id=chat_id, reminder_id=reminder_id))
        await self.tracker.notify_and_arm(
            chat_id,
            name,
            reminder_id=reminder_id,
            still_active=lambda: self.store.get(chat_id, reminder_id) is not None,
        )

    async def _fire_water(self, chat_id: int, reminder_id: int, total: int, n: int) -> None:
        if self.store.get(chat_id, reminder_id) is None:
            self.log.debug(
                "job.fire.skip " + kv(chat_id=chat_id, reminder_id=reminder_id, reason="removed")
            )
            return
        self.log.info("job.fire.water " + kv(chat_id=chat_id, reminder_id=reminder_id, n=n, total=total))
        text = fmt("water_due", n=n, total=total)
        if n >= total:
            self.store.expire(chat_id, reminder_id)
            text = f"{text}\n{fmt('water_finished')}"
        await self.messenger.send(SendText(chat_id, text))

    # ---- inbound buttons --------------------------------------------------------------
    async def on_button(self, event: ButtonPressed) -> Optional[str]:
        """
        Route a callback payload. Returns an optional short toast for the gateway
        to show on the pressed button.
        """
        chat_id = event.chat_id
        data = event.data or ""
        self.log.info("cb.engine.in " + kv(chat_id=chat_id, data=data))

        if data.startswith(CB_TAKEN + ":") or data.startswith(CB_NOT_TAKEN + ":"):
            return await self._on_confirmation_button(chat_id, data)
        if data == CB_DELETE_CANCEL or data.startswith(CB_DELETE + ":"):
            return await self._on_delete_button(chat_id, data)

        self.log.debug("cb.engine.unknown " + kv(chat_id=chat_id, data=data))
        return None

    async def _on_confirmation_button(self, chat_id: int, data: str) -> Optional[str]:
        prefix, _, token_s = data.rpartition(":")
        try:
            token = int(token_s)
        except ValueError:
            return fmt("cb_not_pending")
        outcome = await self.tracker.resolve(chat_id, token, taken=(prefix == CB_TAKEN))
        if outcome == ConfirmationOutcome.STALE:
            return fmt("cb_not_pending")
        return None

    async def _on_delete_button(self, chat_id: int, data: str) -> Optional[str]:
        if not isinstance(self.sessions.get(chat_id), DeleteFlow):
            return fmt("cb_menu_expired")
        self.sessions.end(chat_id)

        if data == CB_DELETE_CANCEL:
            await self.messenger.send_template(chat_id, "delete_cancelled")
            return None

        try:
            index = int(data.split(":", 1)[1])
        except ValueError:
            index = -1
        result = self.store.remove(chat_id, index)
        if result.ok:
            self.tracker.cancel_for_reminder(chat_id, index)
            await self.messenger.send_template(chat_id, "deleted", label=result.spec.label)
        else:
            await self.messenger.send_template(chat_id, "invalid_selection")
        return None

    # ---- shutdown ---------------------------------------------------------------------
    def shutdown(self) -> None:
        stopped = self.store.stop_all()
        pending = self.tracker.cancel_all()
        self.log.info("engine.shutdown " + kv(stopped_jobs=stopped, pending_confirmations=pending))


__all__ = ["ReminderEngine"]
