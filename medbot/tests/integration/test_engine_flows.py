# medbot/tests/integration/test_engine_flows.py
from datetime import timedelta

import pytest

from medbot import config as cfg
from medbot.core.events import ButtonPressed, InlineKeyboard, RemoveKeyboard, TextReceived
from medbot.core.i18n import fmt
from medbot.core.models import BurstRule, DailyRule, TimeOfDay, Weekday, WeeklyRule
from medbot.core.session import MedicineIntake, WaterIntake

CHAT = 100


async def say(engine, *texts, chat_id=CHAT):
    for text in texts:
        await engine.on_text(TextReceived(chat_id, text))


async def press(engine, data, chat_id=CHAT):
    return await engine.on_button(ButtonPressed(chat_id, data))


def payloads(out):
    assert isinstance(out.keyboard, InlineKeyboard)
    return [b.data for row in out.keyboard.rows for b in row]


@pytest.mark.asyncio
async def test_daily_medicine_end_to_end(engine, adapter, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")

    (job,) = scheduler.live("recurring")
    assert job.rule == DailyRule(TimeOfDay(8, 30))
    confirmation = adapter.last()
    assert confirmation.text == fmt(
        "medicine_scheduled_daily", name="Aspirin", time="08:30", next="Jueves 02/05 08:30"
    )
    assert isinstance(confirmation.keyboard, RemoveKeyboard)
    assert engine.sessions.get(CHAT) is None
    assert engine.store.list_for(CHAT) == [(1, "Aspirin — diaria a las 08:30")]

    adapter.clear()
    await job.fire()
    (notice,) = adapter.sent
    assert notice.text == fmt("medicine_due", name="Aspirin")
    yes, no = payloads(notice)
    assert yes.startswith("med:yes:") and no.startswith("med:no:")

    assert await press(engine, yes) is None
    assert adapter.last().text == fmt("confirm_taken_ack")
    assert scheduler.live("once") == []

    # a second tap on the same button is stale
    assert await press(engine, yes) == fmt("cb_not_pending")


@pytest.mark.asyncio
async def test_unanswered_reminder_times_out(engine, adapter, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    await scheduler.live("recurring")[0].fire()
    (timer,) = scheduler.live("once")
    assert timer.delay == cfg.CONFIRM_WINDOW_S

    adapter.clear()
    await timer.fire()
    assert adapter.texts() == [fmt("confirm_timeout", name="Aspirin")]


@pytest.mark.asyncio
async def test_refire_before_answer_supersedes_confirmation(engine, adapter, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    job = scheduler.live("recurring")[0]
    await job.fire()
    old_yes = payloads(adapter.last())[0]
    await job.fire()
    new_no = payloads(adapter.last())[1]

    assert len(scheduler.live("once")) == 1
    assert await press(engine, old_yes) == fmt("cb_not_pending")
    assert await press(engine, new_no) is None
    assert adapter.last().text == fmt("confirm_not_taken_ack")


@pytest.mark.asyncio
async def test_weekly_medicine_with_repeated_day(engine, adapter, scheduler):
    await say(engine, "/remind", "Vitamina D", "X veces a la semana", "09:00")
    await say(engine, "Listo")
    assert adapter.last().text == fmt("days_required")
    assert scheduler.handles == []

    await say(engine, "Lunes", "Jueves", "Lunes")
    assert adapter.last().text == fmt("day_repeated", day="Lunes")
    await say(engine, "Listo")

    (job,) = scheduler.live("recurring")
    assert job.rule == WeeklyRule(
        TimeOfDay(9, 0), frozenset({Weekday.MONDAY, Weekday.THURSDAY})
    )
    assert "Lunes, Jueves" in adapter.last().text


@pytest.mark.asyncio
async def test_water_burst_runs_to_completion(engine, adapter, scheduler):
    await say(engine, "/water", "170", "150")

    (burst,) = scheduler.live("burst")
    assert burst.rule == BurstRule(timedelta(minutes=106), 9)
    assert adapter.last().text == fmt(
        "water_scheduled", height="170", weight="150", liters="2.25", glasses=9, interval=106
    )
    assert len(engine.store) == 1

    adapter.clear()
    while await burst.fire():
        pass

    texts = adapter.texts()
    assert len(texts) == 9
    assert texts[0] == fmt("water_due", n=1, total=9)
    assert texts[-1].startswith(fmt("water_due", n=9, total=9))
    assert fmt("water_finished") in texts[-1]
    assert len(engine.store) == 0


@pytest.mark.asyncio
async def test_delete_flow(engine, adapter, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    await say(engine, "/remind", "Ibuprofeno", "Diaria", "20:00")
    aspirin_job, ibu_job = scheduler.live("recurring")

    await say(engine, "/delete")
    menu = adapter.last()
    assert menu.text == fmt("delete_menu")
    assert payloads(menu) == ["del:1", "del:2", "del:cancel"]

    assert await press(engine, "del:1") is None
    assert adapter.last().text == fmt("deleted", label="Aspirin — diaria a las 08:30")
    assert aspirin_job.stopped and not ibu_job.stopped
    assert await aspirin_job.fire() is False

    # menu is single-use
    assert await press(engine, "del:2") == fmt("cb_menu_expired")
    assert engine.store.list_for(CHAT) == [(2, "Ibuprofeno — diaria a las 20:00")]

    await say(engine, "/list")
    assert adapter.last().text == "\n".join(
        [fmt("list_header"), fmt("list_item", index=2, label="Ibuprofeno — diaria a las 20:00")]
    )


@pytest.mark.asyncio
async def test_delete_menu_stale_id_and_cancel(engine, adapter):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    await say(engine, "/delete")
    assert await press(engine, "del:9") is None
    assert adapter.last().text == fmt("invalid_selection")
    assert len(engine.store) == 1

    await say(engine, "/delete")
    await say(engine, "texto")
    assert adapter.last().text == fmt("delete_use_buttons")
    await press(engine, "del:cancel")
    assert adapter.last().text == fmt("delete_cancelled")
    assert len(engine.store) == 1


@pytest.mark.asyncio
async def test_list_and_delete_when_empty(engine, adapter):
    await say(engine, "/list")
    assert adapter.last().text == fmt("no_reminders")
    await say(engine, "/delete")
    assert adapter.last().text == fmt("no_reminders")
    assert engine.sessions.get(CHAT) is None


@pytest.mark.asyncio
async def test_scheduling_failure_reports_and_keeps_store_clean(engine, adapter, scheduler):
    scheduler.fail = True
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    assert adapter.last().text == fmt("schedule_failed")
    assert len(engine.store) == 0
    assert engine.sessions.get(CHAT) is None


@pytest.mark.asyncio
async def test_gateway_failure_does_not_corrupt_state(engine, adapter, scheduler):
    adapter.fail = True

    await say(engine, "/remind", "Aspirin")
    assert isinstance(engine.sessions.get(CHAT), MedicineIntake)
    await say(engine, "Diaria", "08:30")
    assert len(engine.store) == 1

    await scheduler.live("recurring")[0].fire()
    assert engine.tracker.pending(CHAT) is not None


@pytest.mark.asyncio
async def test_cancel_command_and_keyword(engine, adapter, scheduler):
    await say(engine, "/cancel")
    assert adapter.last().text == fmt("nothing_to_cancel")

    await say(engine, "/remind", "Aspirin", "/cancel")
    assert adapter.last().text == fmt("cancelled")
    assert engine.sessions.get(CHAT) is None

    await say(engine, "/water", "Cancelar")
    assert adapter.last().text == fmt("cancelled")
    assert scheduler.handles == []


@pytest.mark.asyncio
async def test_new_command_supersedes_unfinished_wizard(engine, adapter):
    await say(engine, "/remind", "Aspirin")
    await say(engine, "/water")
    assert isinstance(engine.sessions.get(CHAT), WaterIntake)
    assert adapter.last().text == fmt("ask_height")


@pytest.mark.asyncio
async def test_text_without_session_and_help(engine, adapter):
    await say(engine, "hola")
    assert adapter.last().text == fmt("unknown_input")
    await say(engine, "/start")
    assert adapter.last().text == fmt("help_text")
    await say(engine, "/HELP@medbot")
    assert adapter.last().text == fmt("help_text")


@pytest.mark.asyncio
async def test_chats_are_isolated(engine, adapter, scheduler):
    await say(engine, "/remind", "Aspirin", chat_id=1)
    await say(engine, "/remind", "Losartan", chat_id=2)
    await say(engine, "Diaria", "08:30", chat_id=1)
    await say(engine, "Diaria", "21:00", chat_id=2)

    assert engine.store.list_for(1) == [(1, "Aspirin — diaria a las 08:30")]
    assert engine.store.list_for(2) == [(1, "Losartan — diaria a las 21:00")]
    assert await press(engine, "del:1", chat_id=2) == fmt("cb_menu_expired")


@pytest.mark.asyncio
async def test_shutdown_stops_everything(engine, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    await say(engine, "/water", "170", "150")
    await scheduler.live("recurring")[0].fire()
    engine.shutdown()
    assert scheduler.live() == []
    assert len(engine.store) == 0
    assert len(engine.tracker) == 0


@pytest.mark.asyncio
async def test_deleting_reminder_drops_its_pending_confirmation(engine, adapter, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    await scheduler.live("recurring")[0].fire()
    (timer,) = scheduler.live("once")
    assert engine.tracker.pending(CHAT).reminder_id == 1

    await say(engine, "/delete")
    await press(engine, "del:1")
    assert engine.tracker.pending(CHAT) is None
    assert timer.stopped

    adapter.clear()
    await timer.fire()
    assert adapter.texts() == []


@pytest.mark.asyncio
async def test_deleting_other_reminder_keeps_pending_confirmation(engine, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    await say(engine, "/remind", "Ibuprofeno", "Diaria", "20:00")
    await scheduler.live("recurring")[0].fire()

    await say(engine, "/delete")
    await press(engine, "del:2")
    assert engine.tracker.pending(CHAT).reminder_id == 1
    assert len(scheduler.live("once")) == 1


@pytest.mark.asyncio
async def test_reminder_removed_during_notification_is_not_armed(engine, adapter, scheduler):
    await say(engine, "/remind", "Aspirin", "Diaria", "08:30")
    job = scheduler.live("recurring")[0]

    send = adapter.send_text

    async def send_then_remove(out):
        engine.store.remove(CHAT, 1)
        return await send(out)

    adapter.send_text = send_then_remove
    await job.fire()

    assert adapter.last().text == fmt("medicine_due", name="Aspirin")
    assert engine.tracker.pending(CHAT) is None
    assert scheduler.live("once") == []


@pytest.mark.asyncio
async def test_unknown_command_is_not_wizard_input(engine, adapter):
    await say(engine, "/remind", "/foo")
    assert adapter.last().text == fmt("unknown_input")
    session = engine.sessions.get(CHAT)
    assert isinstance(session, MedicineIntake)
    assert session.medicine_name == ""

    await say(engine, "Aspirin", "Diaria", "08:30")
    assert engine.store.list_for(CHAT) == [(1, "Aspirin — diaria a las 08:30")]

    await say(engine, "/foo")
    assert adapter.last().text == fmt("unknown_input")
