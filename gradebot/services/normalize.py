"""
Utilities for cleaning raw OCR text before it is graded.
"""

import re

# Three or more newlines (possibly with stray spaces) collapse to one blank line
_BLANK_RUNS = re.compile(r"\n\s*\n(\s*\n)+")


def clean_ocr_text(text: str | None) -> str:
    """
    Tidy OCR output without touching its content:
      - strip trailing/leading spaces on every line
      - collapse runs of blank lines into a single blank line
      - strip the whole block
    Examples:
      - "  3 + 4 = 8  \\n\\n\\n\\n5 - 2 = 3" -> "3 + 4 = 8\\n\\n5 - 2 = 3"
    """
    if not text:
        return ""
    lines = [ln.strip() for ln in text.replace("\r\n", "\n").split("\n")]
    joined = "\n".join(lines)
    return _BLANK_RUNS.sub("\n\n", joined).strip()


def is_blank(text: str | None) -> bool:
    """True for None, empty and whitespace-only text."""
    return not (text or "").strip()
