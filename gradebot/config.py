"""
Central config: loads .env and exposes settings.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int | None = None) -> int | None:
    v = os.getenv(name)
    if v is None or str(v).strip() == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _get_float(name: str, default: float | None = None) -> float | None:
    v = os.getenv(name)
    if v is None or str(v).strip() == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _get_list(name: str, default: list[str]) -> list[str]:
    v = os.getenv(name, "")
    items = [p.strip() for p in v.split(",") if p.strip()]
    return items or list(default)


# ───────────────────────────── Telegram ───────────────────────────── #

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()

# Pause between "done" and posting the correction, so the 100% status is seen.
COMPLETION_DELAY_SEC = _get_float("COMPLETION_DELAY_SEC", 1.0)


# ───────────────────────────── Image intake ───────────────────────────── #

MAX_IMAGE_BYTES = _get_int("MAX_IMAGE_BYTES", 10 * 1024 * 1024)
MAX_IMAGE_WIDTH = _get_int("MAX_IMAGE_WIDTH", 1920)
MAX_IMAGE_HEIGHT = _get_int("MAX_IMAGE_HEIGHT", 1080)
# Decoded pixel cap; keeps a tiny file with huge dimensions out of memory.
MAX_IMAGE_PIXELS = _get_int("MAX_IMAGE_PIXELS", 64_000_000)


# ───────────────────────────── OCR ───────────────────────────── #

# OCR mode:
#   local  : only Tesseract (fast, no network)
#   hybrid : Tesseract first; OpenAI vision if confidence is too low
#   openai : only OpenAI vision
OCR_MODE = os.getenv("OCR_MODE", "hybrid").lower().strip()

# Tesseract path (Windows users set this if tesseract.exe is not in PATH)
TESSERACT_CMD = os.getenv("TESSERACT_CMD", "").strip()

OCR_LANGUAGE = os.getenv("OCR_LANGUAGE", "chi_tra+eng").strip()

# A provider result is accepted only when confidence is strictly above this.
OCR_ACCEPT_THRESHOLD = _get_float("OCR_ACCEPT_THRESHOLD", 0.6)


# ───────────────────────────── OpenAI / correction ───────────────────────────── #

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
# Empty means the SDK default; point at https://openrouter.ai/api/v1 for OpenRouter.
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "").strip() or None
OPENAI_VISION_MODEL = os.getenv("OPENAI_VISION_MODEL", "gpt-4o-mini").strip()
OPENAI_MAX_RPM = _get_float("OPENAI_MAX_RPM", 3.0)

# Transport:
#   openai : call an OpenAI-compatible chat completions API directly
#   http   : POST {prompt, config, model} to CORRECTION_ENDPOINT_URL
CORRECTION_TRANSPORT = os.getenv("CORRECTION_TRANSPORT", "openai").lower().strip()
CORRECTION_ENDPOINT_URL = os.getenv("CORRECTION_ENDPOINT_URL", "http://localhost:3000/api/ai").strip()
CORRECTION_PROVIDER = os.getenv("CORRECTION_PROVIDER", "openrouter").strip()

# Ranked; the first model is tried first, the rest are fallbacks.
CORRECTION_MODELS = _get_list(
    "CORRECTION_MODELS",
    ["openai/gpt-4o-mini", "anthropic/claude-3.5-haiku", "google/gemini-flash-1.5"],
)
CORRECTION_TIMEOUT_SEC = _get_float("CORRECTION_TIMEOUT_SEC", 60.0)
CORRECTION_MAX_TOKENS = _get_int("CORRECTION_MAX_TOKENS")
CORRECTION_TEMPERATURE = _get_float("CORRECTION_TEMPERATURE")


# ───────────────────────────── Grading defaults ───────────────────────────── #

DEFAULT_SUBJECT = os.getenv("DEFAULT_SUBJECT", "math").strip()
DEFAULT_GRADE_LEVEL = os.getenv("DEFAULT_GRADE_LEVEL", "primary school").strip()
DEFAULT_TARGET_LANGUAGE = os.getenv("DEFAULT_TARGET_LANGUAGE", "zh-TW").strip()


# ───────────────────────────── Logging ───────────────────────────── #

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper().strip()
