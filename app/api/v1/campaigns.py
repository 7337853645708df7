"""Crowdfunding campaign API routes."""

import json
import logging
from typing import AsyncIterator, List, Optional
from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from app.api.deps import get_bill_store, get_chat_responder
from app.core.exceptions import AppError
from app.schemas.campaigns import CampaignSummary, ChatRequest
from app.services.bill_store import BillStore
from app.services.campaign_chat_service import CampaignChatResponder, ChatEvent, DONE_SENTINEL
from app.services.persistence_service import list_campaigns

logger = logging.getLogger(__name__)
router = APIRouter(tags=["campaigns"])


def format_sse(event: ChatEvent) -> str:
    """Encode a chat event as one server-sent ``data:`` line."""
    if event.done:
        return f"data: {DONE_SENTINEL}\n\n"
    if event.error is not None:
        return f"data: {json.dumps({'error': event.error})}\n\n"
    return f"data: {json.dumps({'text': event.text})}\n\n"


async def _sse_stream(events: AsyncIterator[ChatEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield format_sse(event)


@router.get("/campaigns", response_model=List[CampaignSummary], status_code=status.HTTP_200_OK)
async def list_campaigns_endpoint(
    is_funded: Optional[bool] = None,
    store: BillStore = Depends(get_bill_store),
) -> List[CampaignSummary]:
    """List crowdfunding campaigns, newest first, optionally filtered by funded state."""
    try:
        return await list_campaigns(store, is_funded)

    except AppError:
        logger.error("AppError raised in list_campaigns_endpoint", exc_info=True)
        raise
    except Exception as e:
        logger.error(f"Unexpected error in list_campaigns_endpoint: {str(e)}", exc_info=True)
        raise AppError(f"Failed to fetch campaigns: {str(e)}")


@router.post("/ask-ai")
async def ask_ai_endpoint(
    body: ChatRequest,
    responder: CampaignChatResponder = Depends(get_chat_responder),
):
    """
    Answer a question about one campaign using only its stored data.

    Streams ``data: {"text": ...}`` events and ends with ``data: [DONE]``.
    A provider failure mid-stream is sent as ``data: {"error": ...}`` before
    ``[DONE]``. Missing input (400) and unknown campaigns (404) are plain JSON
    errors and never start a stream.
    """
    try:
        events = await responder.answer(body.campaign_id, body.query)

    except AppError:
        logger.error("AppError raised in ask_ai_endpoint", exc_info=True)
        raise
    except Exception as e:
        logger.error(f"Unexpected error in ask_ai_endpoint: {str(e)}", exc_info=True)
        raise AppError(f"Failed to process request: {str(e)}")

    return StreamingResponse(
        _sse_stream(events),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
