"""
Typed models used across services.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import (
    DEFAULT_GRADE_LEVEL,
    DEFAULT_SUBJECT,
    DEFAULT_TARGET_LANGUAGE,
)


class ImageAsset(BaseModel):
    """
    An uploaded image as received from the user.
    """
    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime_type: str
    size: int
    name: str = "image"

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str, name: str = "image") -> "ImageAsset":
        return cls(data=data, mime_type=mime_type, size=len(data), name=name)


class PreprocessedImage(ImageAsset):
    """
    Resized and enhanced copy of an ImageAsset, ready for OCR.
    """
    width: int
    height: int


class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    x0: int
    y0: int
    x1: int
    y1: int


class RecognizedText(BaseModel):
    """
    What a single OCR provider returns before the engine judges it.
    """
    text: str = ""
    confidence_percent: float = 0.0
    words: list[BoundingBox] = Field(default_factory=list)


class OCRResult(BaseModel):
    """
    An accepted OCR result. confidence is in [0, 1].
    """
    model_config = ConfigDict(frozen=True)

    text: str
    confidence: float
    bounding_boxes: list[BoundingBox] = Field(default_factory=list)
    language: str
    provider: str
    processing_time_ms: int = 0


class CorrectionContext(BaseModel):
    """
    Grading context plus request tunables, supplied per request.
    timeout is in seconds; None means "use the client default".
    """
    subject: str = DEFAULT_SUBJECT
    grade_level: str = DEFAULT_GRADE_LEVEL
    target_language: str = DEFAULT_TARGET_LANGUAGE
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    timeout: Optional[float] = Field(default=None, gt=0)


class RequestConfig(BaseModel):
    """
    Request parameters in the shape the inference endpoint expects.
    """
    model_config = ConfigDict(populate_by_name=True)

    system_prompt: str = Field(alias="systemPrompt", min_length=1)
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")
    temperature: Optional[float] = None
    timeout: Optional[float] = None


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    input_tokens: int = Field(default=0, alias="inputTokens", ge=0)
    output_tokens: int = Field(default=0, alias="outputTokens", ge=0)
    total_tokens: int = Field(default=0, alias="totalTokens", ge=0)


class CorrectionResult(BaseModel):
    """
    The structured response from the correction model. latency is in ms.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: str
    usage: Usage = Field(default_factory=Usage)
    model: str
    provider: str
    latency: float = 0.0


class PipelineResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    correction: CorrectionResult
    ocr_result: OCRResult
    processing_time_ms: int


class Stage(str, Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    EXTRACTING = "extracting"
    CORRECTING = "correcting"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStatus(BaseModel):
    """
    Progress of one pipeline run as seen by observers.
    error is None while nothing has gone wrong, and a non-empty message otherwise.
    """
    stage: Stage = Stage.IDLE
    failed_stage: Optional[Stage] = None
    is_loading: bool = False
    provider: str = ""
    current_model: str = ""
    attempt: int = 0
    progress: int = Field(default=0, ge=0, le=100)
    error: Optional[str] = None
