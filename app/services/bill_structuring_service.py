"""Service for structuring medical bill OCR text using an LLM."""

import json
import logging
import re
from app.core.exceptions import StructuringError, ValidationError
from app.schemas.bills import StructuredBill
from app.services.inference_gateway import InferenceGateway, LanguageModelOptions

logger = logging.getLogger(__name__)

STRUCTURING_SYSTEM_PROMPT = (
    "You are a JSON extraction specialist. Always return valid JSON only, "
    "no markdown, no explanation, no code blocks."
)

STRUCTURING_OPTIONS = LanguageModelOptions(
    reasoning_effort="minimal",
    verbosity="low",
    max_completion_tokens=2000,
)

_CODE_FENCE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)


def get_bill_structuring_prompt(ocr_text: str) -> str:
    """Generate the extraction prompt for a medical bill's OCR text."""

    return f"""You are a medical bill data extraction specialist. Extract structured information from the following OCR text from a medical bill. Return ONLY valid JSON with no additional text.

Required fields to extract:
- patient_name: Full name of the patient
- patient_dob: Date of birth (format: YYYY-MM-DD or null if not found)
- provider_name: Name of the medical provider/facility
- provider_address: Address of the provider
- service_date: Date of service (format: YYYY-MM-DD or null if not found)
- total_amount: Total amount due as a number (null if not found)
- items: Array of line items, each with description (string), amount (number) and optional date (YYYY-MM-DD)
- billing_address: Billing address if different from provider
- account_number: Account or reference number if available

Use null for any field you cannot find. Amounts must be JSON numbers, never strings.

OCR Text:
{ocr_text}

Return valid JSON only:"""


def strip_code_fences(response_text: str) -> str:
    """Remove markdown code fences the model may add despite instructions."""
    return _CODE_FENCE.sub("", response_text).strip()


def parse_structured_bill(response_text: str) -> StructuredBill:
    """
    Parse the language model's reply into a StructuredBill.

    Raises:
        StructuringError: If the reply is not a JSON object
    """
    json_string = strip_code_fences(response_text)

    try:
        parsed_json = json.loads(json_string)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse AI response as JSON: {str(e)}")
        logger.debug(f"Response text: {json_string}")
        raise StructuringError("Failed to parse structured data from AI model")

    if not isinstance(parsed_json, dict):
        logger.error(f"AI response is JSON but not an object: {type(parsed_json).__name__}")
        raise StructuringError("Failed to parse structured data from AI model")

    return StructuredBill.model_validate(parsed_json)


async def structure_bill(gateway: InferenceGateway, ocr_text: str) -> StructuredBill:
    """
    Extract a structured bill record from OCR text.

    Args:
        gateway: Inference gateway used for the language-model call
        ocr_text: Raw OCR text of a medical bill

    Returns:
        StructuredBill with every field the model could find

    Raises:
        ValidationError: If the OCR text is empty
        ProviderError: If the language-model call fails
        StructuringError: If the model output is not a JSON object
    """
    if not ocr_text or not ocr_text.strip():
        raise ValidationError("OCR text is required")

    logger.info(f"Structuring bill from {len(ocr_text)} characters of OCR text")
    response_text = await gateway.run_language_model(
        STRUCTURING_SYSTEM_PROMPT,
        get_bill_structuring_prompt(ocr_text),
        STRUCTURING_OPTIONS,
    )

    structured = parse_structured_bill(response_text)
    item_count = len(structured.items) if structured.items else 0
    logger.info(f"Successfully structured bill with {item_count} items, total: {structured.total_amount}")
    return structured
