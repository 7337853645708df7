"""Question answering restricted to one campaign's stored data."""

import logging
from typing import Any, AsyncIterator, List, Optional
from pydantic import BaseModel
from app.core.exceptions import NotFoundError, ValidationError
from app.schemas.campaigns import CampaignBill, CampaignRecord
from app.services.bill_store import BillStore
from app.services.inference_gateway import InferenceGateway, LanguageModelOptions

logger = logging.getLogger(__name__)

MISSING_FIELD = "[Not in database]"
NOT_AVAILABLE_PHRASE = "This information is not available in the campaign data"
DONE_SENTINEL = "[DONE]"
STREAM_ERROR_MESSAGE = "Failed to get AI response"

CHAT_OPTIONS = LanguageModelOptions(
    reasoning_effort="minimal",
    verbosity="medium",
    max_completion_tokens=1000,
)


class ChatEvent(BaseModel):
    """One event of a chat answer stream: a text chunk, an error, or the end sentinel."""

    text: Optional[str] = None
    error: Optional[str] = None
    done: bool = False


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, dict)) and not value:
        return True
    return False


def _field(value: Any) -> str:
    return MISSING_FIELD if _is_missing(value) else str(value)


def _amount(value: Any) -> str:
    if _is_missing(value):
        return MISSING_FIELD
    try:
        return f"${float(value):,.2f}"
    except (TypeError, ValueError):
        return str(value)


def _flag(value: Optional[bool]) -> str:
    if value is None:
        return MISSING_FIELD
    return "Yes" if value else "No"


def _line_items(items: Optional[List[dict]]) -> str:
    if _is_missing(items):
        return MISSING_FIELD
    lines = []
    for idx, item in enumerate(items, 1):
        lines.append(
            f"  {idx}. Description: {_field(item.get('description'))} | "
            f"Amount: {_amount(item.get('amount'))} | "
            f"Date: {_field(item.get('date'))}"
        )
    return "\n" + "\n".join(lines)


def render_campaign_context(campaign: CampaignRecord) -> str:
    """
    Render every campaign and bill field as a labeled block.

    Missing fields are shown as the literal ``[Not in database]`` placeholder
    so the model never sees an omitted field.
    """
    bill = campaign.medical_bills or CampaignBill()

    return f"""CAMPAIGN INFORMATION:
- Campaign ID: {_field(campaign.id)}
- Goal Amount: {_amount(campaign.goal_amount)}
- Amount Raised: {_amount(campaign.amount_raised)}
- Is Funded: {_flag(campaign.is_funded)}
- Reason for Help: {_field(campaign.reason)}
- Created: {_field(campaign.created_at)}
- Last Updated: {_field(campaign.updated_at)}

MEDICAL BILL INFORMATION:
- Patient Name: {_field(bill.patient_name)}
- Patient DOB: {_field(bill.patient_dob)}
- Provider Name: {_field(bill.provider_name)}
- Provider Address: {_field(bill.provider_address)}
- Service Date: {_field(bill.service_date)}
- Total Amount: {_amount(bill.total_amount)}
- Billing Address: {_field(bill.billing_address)}
- Account Number: {_field(bill.account_number)}
- Line Items: {_line_items(bill.items)}"""


def get_chat_system_prompt(context: str) -> str:
    """Generate the system prompt that confines answers to the rendered context."""

    return f"""You are an assistant that answers questions about one crowdfunding campaign for a medical bill.

CRITICAL RULES:
1. ONLY use the information in the CONTEXT block below. It is the complete database record.
2. DO NOT infer, assume, estimate, or calculate anything, and DO NOT combine fields to derive new facts.
3. A field shown as "{MISSING_FIELD}" does not exist. Never guess its value.
4. For free-text fields such as "Reason for Help", quote the stored text exactly. Do not elaborate, summarize, or explain it.
5. If the question asks for anything not literally present in the CONTEXT, answer exactly: "{NOT_AVAILABLE_PHRASE}"
6. Do not answer general questions unrelated to this campaign.

RESPONSE FORMAT:
- Answer with short labeled lines, one per fact, using the field labels from the CONTEXT (e.g., "Goal Amount: $450.00").
- No speculation, no advice, no additional commentary.

CONTEXT:
{context}"""


def get_chat_user_prompt(question: str) -> str:
    return f"Based only on the campaign and medical bill data provided, answer this question: {question}"


class CampaignChatResponder:
    """Streams grounded answers about a single campaign."""

    def __init__(self, gateway: InferenceGateway, store: BillStore):
        self.gateway = gateway
        self.store = store

    async def load_campaign(self, campaign_id: str) -> CampaignRecord:
        """
        Load a campaign joined with its bill.

        Raises:
            NotFoundError: If the campaign does not exist
        """
        row = await self.store.fetch_campaign_with_bill(campaign_id)
        if not row:
            logger.warning(f"Campaign not found: {campaign_id}")
            raise NotFoundError("Campaign not found")
        return CampaignRecord.model_validate(row)

    async def answer(self, campaign_id: Optional[str], question: Optional[str]) -> AsyncIterator[ChatEvent]:
        """
        Prepare a grounded answer stream for a question about a campaign.

        Validation and the campaign lookup happen here, before any stream is
        returned; the returned iterator never raises.

        Args:
            campaign_id: Campaign to answer about
            question: User question

        Returns:
            Async iterator of ChatEvent, always ending with a done event

        Raises:
            ValidationError: If the campaign id or question is missing
            NotFoundError: If the campaign does not exist
        """
        if not campaign_id or not campaign_id.strip() or not question or not question.strip():
            raise ValidationError("Campaign ID and query are required")

        campaign = await self.load_campaign(campaign_id.strip())
        context = render_campaign_context(campaign)
        logger.info(f"Answering question for campaign {campaign.id}")
        logger.debug(f"Campaign context:\n{context}")

        return self._stream(get_chat_system_prompt(context), get_chat_user_prompt(question.strip()))

    async def _stream(self, system_prompt: str, user_prompt: str) -> AsyncIterator[ChatEvent]:
        chunk_count = 0
        try:
            async for chunk in self.gateway.stream_language_model(system_prompt, user_prompt, CHAT_OPTIONS):
                if chunk:
                    chunk_count += 1
                    yield ChatEvent(text=chunk)
        except Exception as e:
            # Nothing may escape the stream: report the failure as an event instead.
            logger.error(f"AI streaming error after {chunk_count} chunks: {str(e)}", exc_info=True)
            yield ChatEvent(error=STREAM_ERROR_MESSAGE)
        else:
            logger.info(f"✓ Streamed {chunk_count} chunks")
        yield ChatEvent(done=True)
