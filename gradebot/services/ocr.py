"""
OCR extraction engine: try providers in order, keep the first confident result.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from ..config import OCR_ACCEPT_THRESHOLD, OCR_LANGUAGE
from ..errors import AllProvidersFailedError
from ..models import ImageAsset, OCRResult, PreprocessedImage, RecognizedText
from .preprocess import preprocess

log = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "chi_tra+eng"

# Requested tag -> Tesseract language code
LANGUAGE_CODES = {
    "chi_tra+eng": "chi_tra+eng",
    "chi_sim+eng": "chi_sim+eng",
    "eng": "eng",
    "chi_tra": "chi_tra",
    "chi_sim": "chi_sim",
}

# Tesseract: 6 = assume a single uniform block of text, 1 = LSTM engine only
DEFAULT_OPTIONS = {"segmentation_mode": 6, "engine_mode": 1}

ProviderCallback = Callable[[str, int, int], None]


def resolve_language(tag: str | None) -> str:
    """Map a requested language tag to an engine code; unknown tags get the default."""
    return LANGUAGE_CODES.get((tag or "").strip(), DEFAULT_LANGUAGE)


class OCRProvider(ABC):
    """
    A pluggable text recogniser. Implementations may raise on any failure;
    the engine treats that as "try the next provider".
    """

    name: str = "provider"

    @abstractmethod
    async def recognize(
        self,
        image: PreprocessedImage,
        language_code: str,
        options: Optional[dict] = None,
    ) -> RecognizedText:
        ...

    async def release(self) -> None:
        """Free anything held for the last recognize() call. Called after every attempt."""
        return None


class OCREngine:
    """
    Ordered, first-acceptable provider fallback.

    A result is accepted when confidence_percent / 100 is strictly greater
    than the threshold; anything at or below it counts as a miss.
    """

    def __init__(
        self,
        providers: Sequence[OCRProvider],
        threshold: float = OCR_ACCEPT_THRESHOLD,
        options: Optional[dict] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not providers:
            raise ValueError("OCREngine needs at least one provider")
        self.providers = list(providers)
        self.threshold = threshold
        self.options = {**DEFAULT_OPTIONS, **(options or {})}
        self._clock = clock

    async def extract(
        self,
        image: PreprocessedImage,
        language: str = OCR_LANGUAGE,
        on_provider: Optional[ProviderCallback] = None,
    ) -> OCRResult:
        """
        Run providers in order until one is confident enough.
        on_provider(name, index, total) fires before each attempt.
        Raises AllProvidersFailedError when none qualifies.
        """
        return await self._extract(image, language, on_provider, self._clock())

    async def process_image(
        self,
        asset: ImageAsset,
        language: str = OCR_LANGUAGE,
        on_provider: Optional[ProviderCallback] = None,
    ) -> OCRResult:
        """Preprocess + extract in one call; the timing covers both."""
        started = self._clock()
        loop = asyncio.get_running_loop()
        prepared = await loop.run_in_executor(None, preprocess, asset)
        return await self._extract(prepared, language, on_provider, started)

    async def _extract(
        self,
        image: PreprocessedImage,
        language: str,
        on_provider: Optional[ProviderCallback],
        started: float,
    ) -> OCRResult:
        code = resolve_language(language)
        failures: list[str] = []
        total = len(self.providers)

        for index, provider in enumerate(self.providers):
            _notify(on_provider, provider.name, index, total)
            try:
                raw = await provider.recognize(image, code, dict(self.options))
            except Exception as e:
                log.warning("OCR provider %s failed: %s", provider.name, e)
                failures.append(f"{provider.name}: {e}")
                continue
            finally:
                await _release(provider)

            confidence = min(max(raw.confidence_percent / 100.0, 0.0), 1.0)
            if confidence > self.threshold:
                elapsed_ms = int(round((self._clock() - started) * 1000))
                log.info(
                    "OCR accepted from %s (confidence %.2f, %d chars, %d ms)",
                    provider.name, confidence, len(raw.text), elapsed_ms,
                )
                return OCRResult(
                    text=raw.text,
                    confidence=confidence,
                    bounding_boxes=raw.words,
                    language=code,
                    provider=provider.name,
                    processing_time_ms=elapsed_ms,
                )

            log.info(
                "OCR provider %s below threshold (%.2f <= %.2f)",
                provider.name, confidence, self.threshold,
            )
            failures.append(f"{provider.name}: confidence {confidence:.2f}")

        raise AllProvidersFailedError(failures)


async def _release(provider: OCRProvider) -> None:
    try:
        await provider.release()
    except Exception:
        log.exception("OCR provider %s failed to release resources", provider.name)


def _notify(callback: Optional[Callable[..., None]], *args) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        log.exception("OCR progress observer raised; ignoring")
