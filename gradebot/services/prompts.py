"""
Prompts for homework correction.
"""

from ..models import CorrectionContext

# Feedback language code -> name the model understands
LANGUAGE_NAMES = {
    "zh-TW": "Traditional Chinese (Taiwan)",
    "zh-HK": "Traditional Chinese (Hong Kong)",
    "zh-CN": "Simplified Chinese",
    "en": "English",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def build_system_prompt(context: CorrectionContext) -> str:
    return (
        f"You are a patient {context.subject} teacher marking {context.grade_level} homework.\n"
        "The student's work was transcribed by OCR, so expect small recognition errors "
        "and do not mark a mistake that is only an OCR artefact.\n"
        "For every question: restate it, say whether the answer is correct, and if not "
        "explain the mistake and give the correct working.\n"
        "Finish with a short overall comment and a score out of 100.\n"
        f"Write all feedback in {language_name(context.target_language)}."
    )


def build_user_prompt(text: str, context: CorrectionContext) -> str:
    return (
        f"Subject: {context.subject}\n"
        f"Grade level: {context.grade_level}\n"
        "Student work (OCR transcription):\n"
        "-----\n"
        f"{text}\n"
        "-----"
    )
