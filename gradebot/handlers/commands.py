"""
Chat commands:
/start, /help, /settings, /subject, /grade, /language, /ocr_lang

Per-chat grading settings live in the FSM context data and are read by the
homework handler for every photo.
"""

from aiogram import Router, types
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.fsm.context import FSMContext

from ..config import (
    DEFAULT_GRADE_LEVEL,
    DEFAULT_SUBJECT,
    DEFAULT_TARGET_LANGUAGE,
    OCR_LANGUAGE,
)
from ..models import CorrectionContext
from ..services.ocr import LANGUAGE_CODES
from ..services.prompts import LANGUAGE_NAMES

router = Router(name="commands")


async def load_settings(state: FSMContext) -> tuple[CorrectionContext, str]:
    """Return (correction context, OCR language tag) for this chat."""
    data = await state.get_data()
    context = CorrectionContext(
        subject=data.get("subject", DEFAULT_SUBJECT),
        grade_level=data.get("grade_level", DEFAULT_GRADE_LEVEL),
        target_language=data.get("target_language", DEFAULT_TARGET_LANGUAGE),
    )
    return context, data.get("ocr_language", OCR_LANGUAGE)


@router.message(CommandStart())
async def start_cmd(m: types.Message):
    await m.reply(
        "Hi! Send me a photo of a homework page and I'll read it and correct it.\n\n"
        "Tips:\n"
        "• Shoot the page flat, in good light\n"
        "• One page per photo, images up to 10 MB\n"
        "• /settings shows what I'm grading against"
    )


@router.message(Command("help"))
async def help_cmd(m: types.Message):
    await m.reply(
        "/settings - show current grading settings\n"
        "/subject <name> - e.g. /subject math\n"
        "/grade <level> - e.g. /grade primary 3\n"
        "/language <code> - feedback language: " + ", ".join(LANGUAGE_NAMES) + "\n"
        "/ocr_lang <tag> - page language: " + ", ".join(LANGUAGE_CODES) + "\n\n"
        "Then just send a photo (or an image file)."
    )


@router.message(Command("settings"))
async def settings_cmd(m: types.Message, state: FSMContext):
    context, ocr_language = await load_settings(state)
    await m.reply(
        f"Subject: {context.subject}\n"
        f"Grade level: {context.grade_level}\n"
        f"Feedback language: {context.target_language}\n"
        f"Page language (OCR): {ocr_language}"
    )


@router.message(Command("subject"))
async def subject_cmd(m: types.Message, command: CommandObject, state: FSMContext):
    value = (command.args or "").strip()
    if not value:
        await m.reply("Usage: /subject <name>  (e.g. /subject math)")
        return
    await state.update_data(subject=value)
    await m.reply(f"✅ Subject set to {value}")


@router.message(Command("grade"))
async def grade_cmd(m: types.Message, command: CommandObject, state: FSMContext):
    value = (command.args or "").strip()
    if not value:
        await m.reply("Usage: /grade <level>  (e.g. /grade primary 3)")
        return
    await state.update_data(grade_level=value)
    await m.reply(f"✅ Grade level set to {value}")


@router.message(Command("language"))
async def language_cmd(m: types.Message, command: CommandObject, state: FSMContext):
    value = (command.args or "").strip()
    if value not in LANGUAGE_NAMES:
        await m.reply("Usage: /language <code>\nOne of: " + ", ".join(LANGUAGE_NAMES))
        return
    await state.update_data(target_language=value)
    await m.reply(f"✅ Feedback language set to {LANGUAGE_NAMES[value]}")


@router.message(Command("ocr_lang"))
async def ocr_lang_cmd(m: types.Message, command: CommandObject, state: FSMContext):
    value = (command.args or "").strip()
    if value not in LANGUAGE_CODES:
        await m.reply("Usage: /ocr_lang <tag>\nOne of: " + ", ".join(LANGUAGE_CODES))
        return
    await state.update_data(ocr_language=value)
    await m.reply(f"✅ Page language set to {value}")
