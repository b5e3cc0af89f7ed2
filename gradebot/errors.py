"""
Error taxonomy for the extraction-and-correction pipeline.

Only the leaves are raised; handlers catch the branches:
  InputValidationError      -> bad upload or empty prompt, never retried
  DecodeError               -> unreadable image, never retried
  ExtractionQualityError    -> ask the user to retake the photo
  CorrectionError           -> correction service trouble
"""

from typing import Optional


class GradebotError(Exception):
    """Base for every error the pipeline surfaces."""


class InputValidationError(GradebotError):
    pass


class DecodeError(GradebotError):
    pass


class ExtractionQualityError(GradebotError):
    """The photo could not be turned into usable text."""

    default_message = "Document unreadable, please retake the photo."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class AllProvidersFailedError(ExtractionQualityError):
    def __init__(self, failures: Optional[list[str]] = None):
        self.failures = list(failures or [])
        detail = "; ".join(self.failures)
        msg = "All OCR providers failed"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class EmptyExtractionError(ExtractionQualityError):
    default_message = "No text found in the image, please make sure the photo is clear."


class OCRProviderError(GradebotError):
    """Raised by a single OCR provider; the engine moves on to the next one."""


class CorrectionError(GradebotError):
    pass


class TransportError(CorrectionError):
    """The request never produced an HTTP response."""


class RequestTimeoutError(CorrectionError):
    def __init__(self, model: str, timeout: float):
        self.model = model
        self.timeout = timeout
        super().__init__(f"{model} did not answer within {timeout:g}s")


class ModelAttemptError(CorrectionError):
    """A model answered, but not with a usable result."""

    def __init__(self, model: str, status_code: int, message: str):
        self.model = model
        self.status_code = status_code
        super().__init__(f"{model}: {message}")


class AllModelsExhaustedError(CorrectionError):
    def __init__(self, attempted_models: list[str], last_error: Optional[Exception]):
        self.attempted_models = list(attempted_models)
        self.last_error = last_error
        tried = ", ".join(self.attempted_models) or "none"
        super().__init__(f"All correction models failed (tried: {tried}). Last error: {last_error}")


class UsageMismatchWarning(UserWarning):
    """total_tokens does not equal input_tokens + output_tokens."""
