from gradebot.models import (
    CorrectionResult,
    OCRResult,
    PipelineResult,
    PipelineStatus,
    Stage,
    Usage,
)
from gradebot.services.formatting import MAX_MESSAGE_LEN, format_correction, format_status


def _result(content="3 + 4 = 7, not 8.", text="3 + 4 = 8"):
    return PipelineResult(
        correction=CorrectionResult(
            content=content,
            usage=Usage(input_tokens=10, output_tokens=5, total_tokens=15),
            model="model-a",
            provider="openrouter",
            latency=120,
        ),
        ocr_result=OCRResult(text=text, confidence=0.82, language="eng", provider="tesseract"),
        processing_time_ms=2500,
    )


def test_status_extracting_shows_provider():
    s = PipelineStatus(stage=Stage.EXTRACTING, progress=25, provider="tesseract")
    assert format_status(s) == "🔍 Reading the page… 25%  (tesseract)"


def test_status_correcting_shows_attempt():
    s = PipelineStatus(stage=Stage.CORRECTING, progress=80, current_model="model-b", attempt=2)
    assert "(model-b, attempt 2)" in format_status(s)


def test_status_failed_shows_error():
    s = PipelineStatus(stage=Stage.FAILED, error="boom")
    assert format_status(s).endswith("\nboom")


def test_correction_reply():
    c = format_correction(_result())
    assert "3 + 4 = 8" in c
    assert "confidence 82%" in c
    assert "3 + 4 = 7, not 8." in c
    assert "openrouter/model-a, 15 tokens, 2.5s" in c


def test_correction_reply_fits_telegram():
    c = format_correction(_result(content="x" * 10000, text="y" * 5000))
    assert len(c) <= MAX_MESSAGE_LEN
    assert c.count("…") == 2
