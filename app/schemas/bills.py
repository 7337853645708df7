"""Bill schemas for medical bill structuring and persistence."""

import datetime
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from app.utils.currency import parse_currency, parse_iso_date


def _clean_text(value: Any) -> Optional[str]:
    """Normalize a model-produced text value; blanks become None."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


class LineItem(BaseModel):
    """Individual bill line item."""

    description: str = Field(default="", description="Item/service description (e.g., 'ER visit', 'CBC panel')")
    amount: float = Field(default=0.0, description="Charged amount for the item")
    date: Optional[datetime.date] = Field(default=None, description="Date of the item, if printed")

    @field_validator("description", mode="before")
    @classmethod
    def normalize_description(cls, v: Any) -> str:
        return _clean_text(v) or ""

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, v: Any) -> float:
        amount = parse_currency(v)
        return amount if amount is not None else 0.0

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Optional[datetime.date]:
        return parse_iso_date(v)


class StructuredBill(BaseModel):
    """
    Structured record extracted from OCR text by the language model.

    Every field is optional. Amounts are always numbers or None and dates are
    ISO dates or None; keys the model adds beyond the known fields are kept.
    """

    model_config = ConfigDict(extra="allow")

    patient_name: Optional[str] = None
    patient_dob: Optional[datetime.date] = None
    provider_name: Optional[str] = None
    provider_address: Optional[str] = None
    service_date: Optional[datetime.date] = None
    total_amount: Optional[float] = None
    items: Optional[List[LineItem]] = None
    billing_address: Optional[str] = None
    account_number: Optional[str] = None

    @field_validator(
        "patient_name",
        "provider_name",
        "provider_address",
        "billing_address",
        "account_number",
        mode="before",
    )
    @classmethod
    def normalize_text(cls, v: Any) -> Optional[str]:
        return _clean_text(v)

    @field_validator("patient_dob", "service_date", mode="before")
    @classmethod
    def normalize_dates(cls, v: Any) -> Optional[datetime.date]:
        return parse_iso_date(v)

    @field_validator("total_amount", mode="before")
    @classmethod
    def normalize_total(cls, v: Any) -> Optional[float]:
        amount = parse_currency(v)
        if amount is None or amount < 0:
            return None
        return amount

    @field_validator("items", mode="before")
    @classmethod
    def normalize_items(cls, v: Any) -> Optional[List[Any]]:
        if not isinstance(v, list):
            return None
        return [item for item in v if isinstance(item, dict)]

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready dict of the fields the model actually returned."""
        return self.model_dump(mode="json", exclude_unset=True)


class MedicalBillRow(BaseModel):
    """Row written to the ``medical_bills`` table."""

    raw_ocr_text: str
    structured_data: Dict[str, Any] = Field(default_factory=dict)
    patient_name: Optional[str] = None
    patient_dob: Optional[datetime.date] = None
    provider_name: Optional[str] = None
    provider_address: Optional[str] = None
    service_date: Optional[datetime.date] = None
    total_amount: Optional[float] = None
    items: Optional[List[LineItem]] = None
    billing_address: Optional[str] = None
    account_number: Optional[str] = None

    @classmethod
    def from_structured(cls, raw_ocr_text: str, structured: StructuredBill) -> "MedicalBillRow":
        """Flatten a structured record onto the top-level columns."""
        return cls(
            raw_ocr_text=raw_ocr_text,
            structured_data=structured.to_record(),
            patient_name=structured.patient_name,
            patient_dob=structured.patient_dob,
            provider_name=structured.provider_name,
            provider_address=structured.provider_address,
            service_date=structured.service_date,
            total_amount=structured.total_amount,
            items=structured.items,
            billing_address=structured.billing_address,
            account_number=structured.account_number,
        )


class SavedBill(BaseModel):
    """Identifiers of the records written for one bill."""

    id: str = Field(..., description="medical_bills row id")
    campaign_id: Optional[str] = Field(None, description="crowdfunding_campaigns row id, when one was created")


class StructureBillRequest(BaseModel):
    """Request body for structuring previously extracted OCR text."""

    ocr_text: Optional[str] = Field(None, validation_alias=AliasChoices("ocrText", "ocr_text"))


class StructureBillResponse(BaseModel):
    """Structured bill response."""

    structured: Dict[str, Any]
