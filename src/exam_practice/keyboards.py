from __future__ import annotations
from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from .validation import CHECK_CALLBACK_PREFIX

def kb_check(question_id: str) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="✔ Check", callback_data=f"{CHECK_CALLBACK_PREFIX}{question_id}")
    b.adjust(1)
    return b.as_markup()

def kb_check_all() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="📝 Check all answers", callback_data="check_all")
    b.adjust(1)
    return b.as_markup()
