"""
Receive a homework photo, run the pipeline, and reply with the correction.
"""

import asyncio
import logging
from typing import Optional

from aiogram import F, Router, types
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.fsm.context import FSMContext

from ..config import COMPLETION_DELAY_SEC, MAX_IMAGE_BYTES
from ..errors import (
    AllModelsExhaustedError,
    CorrectionError,
    DecodeError,
    ExtractionQualityError,
    InputValidationError,
)
from ..models import ImageAsset, PipelineStatus
from ..services.formatting import format_correction, format_status
from ..services.pipeline import Pipeline, check_upload
from .commands import load_settings

router = Router(name="homework")

log = logging.getLogger(__name__)


class StatusMessage:
    """
    Mirrors pipeline status into one Telegram message.
    Edits when the stage, provider, model or attempt changes, strictly in order.
    A failed edit is logged and never blocks the ones after it.
    """

    def __init__(self, message: types.Message):
        self.message = message
        self._last_key: Optional[tuple] = None
        self._pending: Optional[asyncio.Task] = None

    def __call__(self, status: PipelineStatus) -> None:
        key = (status.stage, status.provider, status.current_model, status.attempt)
        if key == self._last_key:
            return
        self._last_key = key
        self._pending = asyncio.create_task(self._edit(self._pending, format_status(status)))

    async def _edit(self, previous: Optional[asyncio.Task], text: str) -> None:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            await self.message.edit_text(text)
        except TelegramBadRequest as e:
            # "message is not modified" and friends
            log.debug("Status edit skipped: %s", e.message)
        except TelegramAPIError as e:
            log.warning("Status edit failed: %s", e)

    async def flush(self) -> None:
        if self._pending is not None:
            await asyncio.wait([self._pending])


def _pick_file(m: types.Message) -> Optional[tuple[str, str, int, str]]:
    """(file_id, mime_type, size, name) of the image in the message, if any."""
    if m.photo:
        p = m.photo[-1]
        return p.file_id, "image/jpeg", p.file_size or 0, f"{p.file_unique_id}.jpg"
    if m.document:
        d = m.document
        return d.file_id, d.mime_type or "", d.file_size or 0, d.file_name or "document"
    return None


@router.message(F.photo | F.document)
async def on_homework(m: types.Message, bot, state: FSMContext, pipeline: Pipeline) -> None:
    """
    Accepts photos (compressed) or image documents (original).
    Size and type are checked before anything is downloaded.
    """
    picked = _pick_file(m)
    if picked is None:
        await m.reply("Please send an image (photo or image document).")
        return
    file_id, mime_type, size, name = picked

    try:
        check_upload(mime_type, size, name, MAX_IMAGE_BYTES)
    except InputValidationError:
        if not mime_type.startswith("image/"):
            await m.reply("Please send an image file.")
        else:
            await m.reply(f"Images must be at most {MAX_IMAGE_BYTES // (1024 * 1024)} MB.")
        return

    fobj = await bot.get_file(file_id)
    b = await bot.download_file(fobj.file_path)
    image_bytes = b.read() if hasattr(b, "read") else b.getvalue()
    asset = ImageAsset.from_bytes(image_bytes, mime_type, name)

    context, ocr_language = await load_settings(state)
    status_msg = StatusMessage(await m.reply(format_status(PipelineStatus())))

    try:
        result = await pipeline.run(asset, ocr_language, context, on_status=status_msg)
    except InputValidationError as e:
        await m.reply(f"⚠️ {e}")
        return
    except DecodeError:
        await m.reply("⚠️ I couldn't open that image. Please send a JPEG or PNG photo.")
        return
    except ExtractionQualityError as e:
        await m.reply(f"📷 {e}\nTip: flat page, good light, no shadows.")
        return
    except AllModelsExhaustedError as e:
        log.error("Correction failed after %s: %s", e.attempted_models, e.last_error)
        await m.reply("😵 The correction service is unavailable right now. Please try again later.")
        return
    except CorrectionError as e:
        await m.reply(f"😵 Correction failed: {e}")
        return
    finally:
        await status_msg.flush()

    # Let the 100% status show before the answer lands
    await asyncio.sleep(COMPLETION_DELAY_SEC or 0)
    await m.reply(format_correction(result))
