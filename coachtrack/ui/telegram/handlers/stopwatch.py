from __future__ import annotations

import logging
from typing import Any

from aiogram import F, Router
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from coachtrack.domain.common.errors import CoachtrackError, StaleSessionConflict
from coachtrack.domain.common.time import fmt_hms, fmt_total
from coachtrack.domain.stopwatch.day_boundary import MIDNIGHT_WARNING, ROLLOVER
from coachtrack.domain.stopwatch.models import IDLE, PAUSED, RUNNING, Rollover, StopwatchSnapshot
from coachtrack.ui.telegram.keyboards.mainmenu import STOPWATCH
from coachtrack.ui.telegram.keyboards.stopwatch import CB_PREFIX, stopwatch_kb
from coachtrack.ui.telegram.stopwatch_registry import StopwatchRegistry

logger = logging.getLogger(__name__)

router = Router()

STATE_LABELS = {
    IDLE: "Hazır",
    RUNNING: "Çalışıyor",
    PAUSED: "Duraklatıldı",
}

WARNING_TEXT = "⚠️ Gece yarısına az kaldı! Kronometre gece yarısında otomatik olarak bölünecek."


def render_panel(snap: StopwatchSnapshot) -> str:
    text = (
        "⏱ <b>Kronometre</b>\n\n"
        f"<code>{fmt_hms(snap.elapsed_seconds)}</code>\n"
        f"Durum: {STATE_LABELS.get(snap.state_label, snap.state_label)}\n"
    )
    if snap.today_total_seconds > 0:
        text += f"Bugünkü toplam: <b>{fmt_total(snap.today_total_seconds)}</b>\n"
    if snap.warning_active:
        text += f"\n{WARNING_TEXT}\n"
    return text


def notification_text(kind: str, payload: Any) -> str:
    if kind == ROLLOVER and isinstance(payload, Rollover):
        return (
            "🌙 Otomatik kayıt yapıldı: "
            f"{payload.session_date} için {fmt_total(payload.duration_seconds)}.\n"
            "Kronometre yeni gün için devam ediyor."
        )
    if kind == MIDNIGHT_WARNING:
        return f"{WARNING_TEXT}\n(Kalan süre: {payload} dakika)"
    return str(payload)


async def _edit_panel(message: Message, snap: StopwatchSnapshot) -> None:
    try:
        await message.edit_text(render_panel(snap), reply_markup=stopwatch_kb(snap.state_label))
    except TelegramBadRequest as e:
        # refreshing a paused stopwatch yields the same text
        if "message is not modified" not in str(e):
            raise


@router.message(Command(commands=["sw", "kronometre"]))
@router.message(F.text == STOPWATCH)
async def sw_panel(message: Message, registry: StopwatchRegistry):
    try:
        service = await registry.get(message.from_user.id)
    except StaleSessionConflict as e:
        await message.answer(e.user_message)
        service = await registry.get(message.from_user.id)
    except CoachtrackError as e:
        await message.answer(e.user_message)
        return

    snap = service.snapshot()
    await message.answer(render_panel(snap), reply_markup=stopwatch_kb(snap.state_label))


@router.callback_query(F.data.startswith(f"{CB_PREFIX}:"))
async def sw_callbacks(cb: CallbackQuery, registry: StopwatchRegistry):
    action = (cb.data or "").split(":", 1)[1]
    user_id = cb.from_user.id
    notice = None

    try:
        service = await registry.get(user_id)
        before = service.snapshot()

        if action == "start":
            snap = await service.start()
        elif action == "pause":
            snap = await service.pause()
        elif action == "resume":
            snap = await service.resume()
        elif action == "stop":
            snap = await service.stop()
            if before.is_active and before.elapsed_seconds > 0:
                notice = "Çalışma kaydedildi!"
        elif action == "refresh":
            snap = await service.rehydrate()
        else:
            await cb.answer()
            return
    except CoachtrackError as e:
        logger.warning("stopwatch %s failed for user %s: %s", action, user_id, e)
        await cb.answer(e.user_message, show_alert=True)
        if isinstance(e, StaleSessionConflict) and cb.message:
            service = await registry.get(user_id)
            await _edit_panel(cb.message, service.snapshot())
        return

    await cb.answer(notice or "")
    if cb.message:
        await _edit_panel(cb.message, snap)


@router.message(Command("logout"))
async def cmd_logout(message: Message, registry: StopwatchRegistry):
    registry.sign_out(message.from_user.id)
    await message.answer("Oturum kapatıldı. Kronometre kaydı saklanıyor; tekrar açmak için /sw.")
