"""
Pipeline orchestrator: Preprocess -> Extract -> Correct.

Every run builds its own PipelineStatus and hands copies of it to the
on_status listener, so one Pipeline can serve several chats at once.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from ..config import MAX_IMAGE_BYTES, OCR_LANGUAGE
from ..errors import EmptyExtractionError, InputValidationError
from ..models import (
    CorrectionContext,
    ImageAsset,
    PipelineResult,
    PipelineStatus,
    PreprocessedImage,
    Stage,
)
from .correction import CorrectionClient
from .normalize import is_blank
from .ocr import OCREngine
from .preprocess import preprocess

log = logging.getLogger(__name__)

StatusCallback = Callable[[PipelineStatus], None]

# Progress at the start of each stage
STAGE_PROGRESS = {
    Stage.IDLE: 0,
    Stage.PREPROCESSING: 0,
    Stage.EXTRACTING: 25,
    Stage.CORRECTING: 75,
    Stage.COMPLETED: 100,
}
# Correction-stage interpolation stops short of 100; only COMPLETED reaches it.
_CORRECTING_SPAN = 24


def check_upload(mime_type: str | None, size: int, name: str = "image", max_bytes: int = MAX_IMAGE_BYTES) -> None:
    """Reject non-images and anything over max_bytes (max_bytes itself is fine)."""
    if not (mime_type or "").lower().startswith("image/"):
        raise InputValidationError(f"{name!r} is not an image ({mime_type or 'unknown type'})")
    if size > max_bytes:
        raise InputValidationError(f"{name!r} is {size} bytes; the limit is {max_bytes} bytes")


def validate_image(asset: ImageAsset, max_bytes: int = MAX_IMAGE_BYTES) -> None:
    check_upload(asset.mime_type, max(asset.size, len(asset.data)), asset.name, max_bytes)


class StatusTracker:
    """
    Owns the PipelineStatus of a single run. Progress only moves forward
    until the run fails, at which point it drops back to 0.
    """

    def __init__(self, listener: Optional[StatusCallback] = None):
        self.status = PipelineStatus()
        self._listener = listener

    def _publish(self) -> None:
        if self._listener is None:
            return
        try:
            self._listener(self.status.model_copy())
        except Exception:
            log.exception("Pipeline status listener raised; ignoring")

    def _advance(self, progress: float) -> None:
        self.status.progress = max(self.status.progress, min(int(progress), 100))

    def start(self) -> None:
        self.status = PipelineStatus(is_loading=True)
        self._publish()

    def enter(self, stage: Stage) -> None:
        self.status.stage = stage
        self._advance(STAGE_PROGRESS[stage])
        self._publish()

    def provider(self, name: str, index: int, total: int) -> None:
        self.status.provider = name
        self._advance(STAGE_PROGRESS[Stage.EXTRACTING] + 50 * index / max(total, 1))
        self._publish()

    def attempt(self, model: str, attempt: int) -> None:
        self.status.current_model = model
        self.status.attempt = attempt
        self._publish()

    def correction_progress(self, percent: int) -> None:
        self._advance(STAGE_PROGRESS[Stage.CORRECTING] + _CORRECTING_SPAN * percent / 100)
        self._publish()

    def complete(self) -> None:
        self.status.stage = Stage.COMPLETED
        self.status.is_loading = False
        self.status.current_model = ""
        self.status.attempt = 0
        self._advance(STAGE_PROGRESS[Stage.COMPLETED])
        self._publish()

    def fail(self, error: BaseException) -> None:
        self.status = PipelineStatus(
            stage=Stage.FAILED,
            failed_stage=self.status.stage,
            is_loading=False,
            progress=0,
            error=str(error) or type(error).__name__,
        )
        self._publish()


class Pipeline:
    def __init__(
        self,
        engine: OCREngine,
        corrector: CorrectionClient,
        max_image_bytes: int = MAX_IMAGE_BYTES,
        preprocessor: Callable[[ImageAsset], PreprocessedImage] = preprocess,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.corrector = corrector
        self.max_image_bytes = max_image_bytes
        self._preprocess = preprocessor
        self._clock = clock

    async def run(
        self,
        image: ImageAsset,
        language: str = OCR_LANGUAGE,
        context: Optional[CorrectionContext] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> PipelineResult:
        """
        Grade one photographed page.

        Raises the first error any stage surfaces (see gradebot.errors);
        on_status sees a final FAILED status before the error propagates.
        """
        tracker = StatusTracker(on_status)
        tracker.start()
        started = self._clock()
        context = context or CorrectionContext()

        try:
            tracker.enter(Stage.PREPROCESSING)
            validate_image(image, self.max_image_bytes)
            loop = asyncio.get_running_loop()
            prepared = await loop.run_in_executor(None, self._preprocess, image)

            tracker.enter(Stage.EXTRACTING)
            ocr_result = await self.engine.extract(prepared, language, on_provider=tracker.provider)
            if is_blank(ocr_result.text):
                raise EmptyExtractionError()

            tracker.enter(Stage.CORRECTING)
            correction = await self.corrector.correct(
                ocr_result.text,
                context,
                on_attempt=tracker.attempt,
                on_progress=tracker.correction_progress,
            )
        except Exception as e:
            log.warning("Pipeline failed during %s: %s", tracker.status.stage.value, e)
            tracker.fail(e)
            raise

        result = PipelineResult(
            correction=correction,
            ocr_result=ocr_result,
            processing_time_ms=int(round((self._clock() - started) * 1000)),
        )
        tracker.complete()
        return result
