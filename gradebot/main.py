"""
Application entrypoint: builds the grading pipeline, wires together the
dispatcher, routers and middleware, and registers Telegram slash commands.
"""

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.types import BotCommand
# NOTE: We intentionally do NOT import ParseMode; model output is sent as plain text.

from .config import (
    CORRECTION_ENDPOINT_URL,
    CORRECTION_MODELS,
    CORRECTION_TRANSPORT,
    OCR_MODE,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    TELEGRAM_BOT_TOKEN,
)
from .handlers import commands, homework
from .middleware.errors import ErrorMiddleware
from .middleware.logging import setup_logging
from .services.correction import CorrectionClient
from .services.local_ocr import TesseractProvider
from .services.ocr import OCREngine, OCRProvider
from .services.pipeline import Pipeline
from .services.transport import HttpTransport, InferenceTransport, OpenAITransport
from .services.vision import VisionProvider

log = logging.getLogger(__name__)


def build_providers(mode: str = OCR_MODE, api_key: str = OPENAI_API_KEY) -> list[OCRProvider]:
    """OCR providers in fallback order for the configured OCR_MODE."""
    providers: list[OCRProvider] = []
    if mode in ("local", "hybrid"):
        providers.append(TesseractProvider())
    if mode in ("hybrid", "openai"):
        if api_key:
            providers.append(VisionProvider(api_key=api_key, base_url=OPENAI_BASE_URL))
        else:
            log.warning("OCR_MODE=%s but OPENAI_API_KEY is missing; vision fallback disabled", mode)
    if not providers:
        raise SystemExit(f"No OCR provider available for OCR_MODE={mode!r}")
    return providers


def build_transport(kind: str = CORRECTION_TRANSPORT) -> InferenceTransport:
    if kind == "http":
        return HttpTransport(CORRECTION_ENDPOINT_URL)
    if kind == "openai":
        if not OPENAI_API_KEY:
            raise SystemExit("CORRECTION_TRANSPORT=openai needs OPENAI_API_KEY")
        return OpenAITransport(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL)
    raise SystemExit(f"Unknown CORRECTION_TRANSPORT {kind!r} (use 'openai' or 'http')")


def build_pipeline(transport: InferenceTransport) -> Pipeline:
    engine = OCREngine(build_providers())
    corrector = CorrectionClient(transport, CORRECTION_MODELS)
    return Pipeline(engine, corrector)


async def setup_bot_commands(bot: Bot) -> None:
    """Register the bot's slash commands so they appear when you type "/"."""
    cmds = [
        BotCommand(command="start",    description="Start & see tips"),
        BotCommand(command="help",     description="How to use the bot"),
        BotCommand(command="settings", description="Show grading settings"),
        BotCommand(command="subject",  description="Set the subject"),
        BotCommand(command="grade",    description="Set the grade level"),
        BotCommand(command="language", description="Set the feedback language"),
        BotCommand(command="ocr_lang", description="Set the page language"),
    ]
    await bot.set_my_commands(cmds)


async def main() -> None:
    # Fail fast if there is no bot token configured
    if not TELEGRAM_BOT_TOKEN:
        raise SystemExit("TELEGRAM_BOT_TOKEN is not set")

    setup_logging()

    transport = build_transport()
    pipeline = build_pipeline(transport)
    log.info(
        "Pipeline ready: OCR=%s, models=%s via %s",
        [p.name for p in pipeline.engine.providers], CORRECTION_MODELS, transport.provider,
    )

    # Create bot and dispatcher (disable parse mode so "<...>" text won't break)
    bot = Bot(
        token=TELEGRAM_BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=None)
    )
    # Handlers receive the pipeline as a keyword argument
    dp = Dispatcher(pipeline=pipeline)

    # Register global error middleware for messages
    dp.message.middleware(ErrorMiddleware())

    # Attach feature routers
    dp.include_router(commands.router)
    dp.include_router(homework.router)

    await setup_bot_commands(bot)

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await transport.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
