"""
Local OCR using Tesseract (no network, no waiting).
Reads the whole page as one block and reports the mean word confidence.
"""

import asyncio
import io
from typing import Optional

import pytesseract
from PIL import Image

from ..config import TESSERACT_CMD
from ..errors import OCRProviderError
from ..models import BoundingBox, PreprocessedImage, RecognizedText
from .normalize import clean_ocr_text
from .ocr import DEFAULT_OPTIONS, OCRProvider

# Allow explicit tesseract path (Windows)
if TESSERACT_CMD:
    pytesseract.pytesseract.tesseract_cmd = TESSERACT_CMD


def _tesseract_config(options: dict) -> str:
    psm = options.get("segmentation_mode", DEFAULT_OPTIONS["segmentation_mode"])
    oem = options.get("engine_mode", DEFAULT_OPTIONS["engine_mode"])
    return f"--psm {psm} --oem {oem}"


def collect_words(data: dict) -> RecognizedText:
    """
    Turn pytesseract.image_to_data(..., output_type=DICT) into RecognizedText.
    Words are re-joined line by line; entries with conf < 0 are layout rows, not words.
    """
    lines: dict[tuple[int, int, int], list[str]] = {}
    confs: list[float] = []
    boxes: list[BoundingBox] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            conf = -1.0
        if not word or conf < 0:
            continue

        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        lines.setdefault(key, []).append(word)
        confs.append(conf)

        left, top = int(data["left"][i]), int(data["top"][i])
        boxes.append(BoundingBox(
            x0=left,
            y0=top,
            x1=left + int(data["width"][i]),
            y1=top + int(data["height"][i]),
        ))

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    mean_conf = sum(confs) / len(confs) if confs else 0.0
    return RecognizedText(text=clean_ocr_text(text), confidence_percent=mean_conf, words=boxes)


class TesseractProvider(OCRProvider):
    """Tesseract via pytesseract, run in the default executor."""

    name = "tesseract"

    async def recognize(
        self,
        image: PreprocessedImage,
        language_code: str,
        options: Optional[dict] = None,
    ) -> RecognizedText:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._recognize_sync, image.data, language_code, options or {}
        )

    def _recognize_sync(self, image_bytes: bytes, language_code: str, options: dict) -> RecognizedText:
        try:
            img = Image.open(io.BytesIO(image_bytes))
        except Exception as e:
            raise OCRProviderError(f"Tesseract could not open image: {e}") from e

        try:
            data = pytesseract.image_to_data(
                img,
                lang=language_code,
                config=_tesseract_config(options),
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            raise OCRProviderError(f"Tesseract OCR failed: {e}") from e
        finally:
            img.close()

        return collect_words(data)
