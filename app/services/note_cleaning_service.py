"""Service for cleaning OCR'd job-site notes using an LLM."""

import logging
from typing import Any
from app.core.exceptions import ValidationError
from app.services.inference_gateway import InferenceGateway, LanguageModelOptions

logger = logging.getLogger(__name__)

NOTE_CLEANING_SYSTEM_PROMPT = (
    "You are assisting Nautilus Builders with job-site notes. "
    "Your job is to transform messy contractor handwriting and OCR errors into clean, "
    "well-organized, professional text.\n\n"
    "CRITICAL RULES:\n"
    "1. Do NOT invent, add, or remove information that is not in the original text.\n"
    "2. Preserve all numbers, measurements, dates, and dollar amounts exactly as written.\n"
    "3. Organize the text into proper paragraphs with correct grammar, spelling, and punctuation.\n"
    "4. Fix all spelling mistakes, duplicate words, and OCR errors.\n"
    "5. Fix contractor shorthand and abbreviations when the meaning is clear.\n"
    "6. Use proper capitalization, punctuation, and sentence structure.\n"
    "7. Group related information into logical paragraphs.\n"
    "8. If a word is unclear or ambiguous, leave it as-is rather than guessing.\n\n"
    "Return ONLY the cleaned, organized text in paragraph form. No explanations, no markdown, no JSON."
)

NOTE_CLEANING_OPTIONS = LanguageModelOptions(
    reasoning_effort="minimal",
    verbosity="low",
    max_completion_tokens=3000,
    temperature=0.4,
)


def get_note_cleaning_prompt(text: str) -> str:
    return (
        "Transform this job-site note into clean, well-organized text with proper grammar, "
        "spelling, and punctuation. Organize it into paragraphs. Keep all numbers, measurements, "
        "and dollar amounts exactly as written:\n\n" + text
    )


async def clean_note(gateway: InferenceGateway, text: Any) -> str:
    """
    Clean up a job-site note.

    Raises:
        ValidationError: If text is not a non-empty string
        ProviderError: If the language-model call fails
    """
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Text is required")

    logger.info(f"Cleaning note of {len(text)} characters")
    cleaned = await gateway.run_language_model(
        NOTE_CLEANING_SYSTEM_PROMPT,
        get_note_cleaning_prompt(text),
        NOTE_CLEANING_OPTIONS,
    )
    return cleaned.strip()
