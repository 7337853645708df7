"""Crowdfunding campaign schemas."""

from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CampaignCreate(BaseModel):
    """Row written to the ``crowdfunding_campaigns`` table."""

    medical_bill_id: str = Field(..., description="Owning medical_bills row id")
    goal_amount: float = Field(..., gt=0, description="Bill total at creation time")
    amount_raised: float = Field(default=0, description="Amount raised so far")
    is_funded: bool = Field(default=False, description="Whether the goal has been met")
    reason: Optional[str] = Field(None, description="User-supplied reason for help")


class CampaignBill(BaseModel):
    """Bill fields joined onto a campaign, as stored."""

    model_config = ConfigDict(extra="ignore")

    patient_name: Optional[str] = None
    patient_dob: Optional[str] = None
    provider_name: Optional[str] = None
    provider_address: Optional[str] = None
    service_date: Optional[str] = None
    total_amount: Optional[float] = None
    items: Optional[List[Dict[str, Any]]] = None
    billing_address: Optional[str] = None
    account_number: Optional[str] = None


class CampaignRecord(BaseModel):
    """Campaign row with its joined medical bill."""

    model_config = ConfigDict(extra="ignore")

    id: str
    medical_bill_id: Optional[str] = None
    goal_amount: Optional[float] = None
    amount_raised: Optional[float] = None
    is_funded: Optional[bool] = None
    reason: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    medical_bills: Optional[CampaignBill] = None


class CampaignSummaryBill(BaseModel):
    """Bill fields shown on a campaign card."""

    patient_name: Optional[str] = None
    provider_name: Optional[str] = None
    total_amount: Optional[float] = None
    service_date: Optional[str] = None


class CampaignSummary(BaseModel):
    """Campaign listing entry."""

    model_config = ConfigDict(extra="ignore")

    id: str
    medical_bill_id: str
    goal_amount: float
    amount_raised: float = 0
    is_funded: bool = False
    reason: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    medical_bills: Optional[CampaignSummaryBill] = None


class ChatRequest(BaseModel):
    """Question about one campaign."""

    campaign_id: Optional[str] = Field(None, validation_alias=AliasChoices("campaignId", "campaign_id"))
    query: Optional[str] = None
