"""Persistence of structured bills and their crowdfunding campaigns."""

import logging
from typing import List, Optional
from app.core.exceptions import PersistenceError
from app.schemas.bills import MedicalBillRow, SavedBill, StructuredBill
from app.schemas.campaigns import CampaignCreate, CampaignSummary
from app.services.bill_store import BillStore

logger = logging.getLogger(__name__)


async def save_medical_bill(
    store: BillStore,
    raw_ocr_text: str,
    structured: StructuredBill,
    reason: Optional[str] = None,
) -> SavedBill:
    """
    Save a medical bill and, when it has a positive total, its campaign.

    The bill and campaign are separate writes. A failed campaign write is
    logged and does not affect the already committed bill.

    Args:
        store: Bill store to write to
        raw_ocr_text: OCR text the bill was structured from
        structured: Structured record; its fields are flattened onto columns
        reason: User-supplied reason for help, stored on the campaign as-is

    Returns:
        SavedBill with the bill id and the campaign id (None if not created)

    Raises:
        PersistenceError: If the bill write fails
    """
    row = MedicalBillRow.from_structured(raw_ocr_text, structured)
    bill = await store.insert_medical_bill(row.model_dump(mode="json"))

    bill_id = bill.get("id")
    if bill_id is None:
        logger.error(f"Stored bill has no id: {bill}")
        raise PersistenceError("Failed to retrieve created medical bill")
    bill_id = str(bill_id)
    logger.info(f"✓ Medical bill saved with ID: {bill_id}")

    campaign_id = None
    goal_amount = structured.total_amount
    if goal_amount is not None and goal_amount > 0:
        reason = reason.strip() if reason and reason.strip() else None
        campaign = CampaignCreate(medical_bill_id=bill_id, goal_amount=goal_amount, reason=reason)
        logger.info(f"Creating campaign with goal {goal_amount} (reason provided: {reason is not None})")
        try:
            created = await store.insert_campaign(campaign.model_dump(mode="json"))
            campaign_id = str(created["id"]) if created.get("id") is not None else None
            logger.info(f"✓ Crowdfunding campaign created: {campaign_id}")
        except PersistenceError as e:
            # bill is saved, campaign creation is secondary
            logger.error(f"Failed to create crowdfunding campaign for bill {bill_id}: {e.message}")
    else:
        logger.info("No positive total amount; skipping campaign creation")

    return SavedBill(id=bill_id, campaign_id=campaign_id)


async def list_campaigns(store: BillStore, is_funded: Optional[bool] = None) -> List[CampaignSummary]:
    """List campaigns with their bill summaries, newest first."""
    rows = await store.list_campaigns(is_funded)
    logger.info(f"Fetched {len(rows)} campaigns (is_funded={is_funded})")
    return [CampaignSummary.model_validate(row) for row in rows]
