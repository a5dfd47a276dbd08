from __future__ import annotations

from aiogram.utils.keyboard import InlineKeyboardBuilder

from coachtrack.domain.stopwatch.models import IDLE, PAUSED

CB_PREFIX = "sw"


def stopwatch_kb(state: str):
    kb = InlineKeyboardBuilder()
    if state == IDLE:
        kb.button(text="▶️ Başlat", callback_data=f"{CB_PREFIX}:start")
    elif state == PAUSED:
        kb.button(text="▶️ Devam Et", callback_data=f"{CB_PREFIX}:resume")
        kb.button(text="⏹ Durdur & Kaydet", callback_data=f"{CB_PREFIX}:stop")
    else:
        kb.button(text="⏸ Duraklat", callback_data=f"{CB_PREFIX}:pause")
        kb.button(text="⏹ Durdur & Kaydet", callback_data=f"{CB_PREFIX}:stop")
    kb.button(text="🔄 Yenile", callback_data=f"{CB_PREFIX}:refresh")
    kb.adjust(2 if state != IDLE else 1, 1)
    return kb.as_markup()
