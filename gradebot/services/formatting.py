"""
Reply formatting for the chat front end.

Example status line:
"🔍 Reading the page… 50%  (tesseract)"
"""

from ..models import PipelineResult, PipelineStatus, Stage

STAGE_LABELS = {
    Stage.IDLE: "⏳ Waiting",
    Stage.PREPROCESSING: "🖼 Preparing the image",
    Stage.EXTRACTING: "🔍 Reading the page",
    Stage.CORRECTING: "✏️ Correcting",
    Stage.COMPLETED: "✅ Done",
    Stage.FAILED: "❌ Failed",
}

# Telegram caps messages at 4096 characters
MAX_MESSAGE_LEN = 4096
MAX_OCR_PREVIEW = 1000


def format_status(status: PipelineStatus) -> str:
    line = f"{STAGE_LABELS[status.stage]}… {status.progress}%"
    if status.stage == Stage.EXTRACTING and status.provider:
        line += f"  ({status.provider})"
    elif status.stage == Stage.CORRECTING and status.current_model:
        line += f"  ({status.current_model}, attempt {status.attempt})"
    if status.error is not None:
        line += f"\n{status.error}"
    return line


def format_correction(result: PipelineResult) -> str:
    ocr = result.ocr_result
    c = result.correction
    text = ocr.text if len(ocr.text) <= MAX_OCR_PREVIEW else ocr.text[: MAX_OCR_PREVIEW - 1] + "…"
    header = (
        f"📝 Recognised text ({ocr.provider}, confidence {ocr.confidence:.0%}):\n"
        f"{text}\n\n"
    )
    footer = (
        f"\n\n— {c.provider}/{c.model}, {c.usage.total_tokens} tokens, "
        f"{result.processing_time_ms / 1000:.1f}s"
    )
    body = c.content
    room = MAX_MESSAGE_LEN - len(header) - len(footer)
    if len(body) > room:
        body = body[: max(room - 1, 0)] + "…"
    return header + body + footer
