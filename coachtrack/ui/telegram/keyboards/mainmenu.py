from __future__ import annotations

from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

STOPWATCH = "Kronometre"
WEEK = "Haftam"
STUDENTS = "Öğrencilerim"


def main_menu_kb(is_coach: bool = False) -> ReplyKeyboardMarkup:
    rows = [[KeyboardButton(text=STOPWATCH), KeyboardButton(text=WEEK)]]
    if is_coach:
        rows.append([KeyboardButton(text=STUDENTS)])
    return ReplyKeyboardMarkup(keyboard=rows, resize_keyboard=True)
