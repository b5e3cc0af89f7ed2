"""
OpenAI Vision OCR provider: JSON output + per-instance request throttling.
Used as the fallback when Tesseract is not confident enough.
"""

import asyncio
import base64
import json
import logging
import time
from typing import Optional

from openai import OpenAI, OpenAIError

from ..config import OPENAI_MAX_RPM, OPENAI_VISION_MODEL
from ..errors import OCRProviderError
from ..models import PreprocessedImage, RecognizedText
from .normalize import clean_ocr_text
from .ocr import OCRProvider

log = logging.getLogger(__name__)

# Engine code -> human language names for the prompt
_LANGUAGE_NAMES = {
    "chi_tra": "Traditional Chinese",
    "chi_sim": "Simplified Chinese",
    "eng": "English",
}

SYSTEM_PROMPT = (
    "You are an OCR engine for photographed homework pages.\n"
    'Return JSON with keys: "text" (the transcription, keep line breaks, do not fix mistakes) '
    'and "confidence" (0..1, how legible the page was). '
    "Return ONLY JSON."
)


def _to_data_url(image: PreprocessedImage) -> str:
    b64 = base64.b64encode(image.data).decode("ascii")
    return f"data:{image.mime_type};base64,{b64}"


def _strip_code_fences(text: str) -> str:
    t = text.strip()
    if t.startswith("```"):
        nl = t.find("\n")
        if nl != -1: t = t[nl + 1 :]
        if t.endswith("```"): t = t[:-3]
    return t.strip()


def _language_hint(language_code: str) -> str:
    names = [_LANGUAGE_NAMES.get(part, part) for part in language_code.split("+")]
    return " and ".join(names)


def parse_vision_reply(content: str) -> RecognizedText:
    """Parse the model's JSON reply. Raises OCRProviderError on anything unusable."""
    try:
        data = json.loads(_strip_code_fences(content or ""))
    except json.JSONDecodeError as e:
        raise OCRProviderError(f"Vision reply is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise OCRProviderError("Vision reply is not a JSON object")

    try:
        conf = float(data.get("confidence") or 0.0)
    except (TypeError, ValueError):
        conf = 0.0
    text = data.get("text") if isinstance(data.get("text"), str) else ""
    return RecognizedText(text=clean_ocr_text(text), confidence_percent=conf * 100.0)


class VisionProvider(OCRProvider):
    """OpenAI Chat Completions with an image input, run in the default executor."""

    name = "openai-vision"

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_VISION_MODEL,
        base_url: Optional[str] = None,
        max_rpm: float = OPENAI_MAX_RPM,
    ):
        self.client = OpenAI(api_key=api_key, base_url=base_url)
        self.model = model or "gpt-4o-mini"
        self.min_interval = (60.0 / max_rpm) if max_rpm > 0 else 0.0
        self._lock = asyncio.Lock()
        self._last_call_ts = 0.0

    async def _throttle_once(self) -> None:
        async with self._lock:
            wait = max(0.0, self.min_interval - (time.monotonic() - self._last_call_ts))
            if wait > 0:
                log.info("Vision throttle: sleeping %.1fs", wait)
                await asyncio.sleep(wait)
            self._last_call_ts = time.monotonic()

    async def recognize(
        self,
        image: PreprocessedImage,
        language_code: str,
        options: Optional[dict] = None,
    ) -> RecognizedText:
        await self._throttle_once()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._recognize_sync, image, language_code)

    def _recognize_sync(self, image: PreprocessedImage, language_code: str) -> RecognizedText:
        try:
            chat = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "text",
                                "text": f"Transcribe this page. Expected language: {_language_hint(language_code)}.",
                            },
                            {"type": "image_url", "image_url": {"url": _to_data_url(image)}},
                        ],
                    },
                ],
                temperature=0.0,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise OCRProviderError(f"Vision request failed: {e}") from e

        content = (chat.choices[0].message.content or "").strip()
        result = parse_vision_reply(content)
        log.debug("Vision OCR: %d chars, confidence %.1f", len(result.text), result.confidence_percent)
        return result
