"""OCR request/response schemas."""

from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, Field, field_validator
from app.schemas.bills import SavedBill

DEFAULT_TASK_TYPE = "Free OCR"
DEFAULT_RESOLUTION_SIZE = "Gundam (Recommended)"


class OCRRequest(BaseModel):
    """Image submitted for OCR, with optional enrichment switches."""

    image: Optional[str] = Field(None, description="Image as a base64 data URL")
    task_type: Optional[str] = Field(
        DEFAULT_TASK_TYPE,
        validation_alias=AliasChoices("taskType", "task_type"),
        description="OCR task (e.g., 'Free OCR', 'Convert to Markdown')",
    )
    resolution_size: Optional[str] = Field(
        DEFAULT_RESOLUTION_SIZE,
        validation_alias=AliasChoices("resolutionSize", "resolution_size"),
        description="OCR resolution preset",
    )
    reason: Optional[str] = Field(None, description="User-supplied reason for help")
    structure: bool = Field(default=True, description="Run bill structuring after OCR")
    save: bool = Field(default=True, description="Persist the structured bill")

    @field_validator("task_type", mode="before")
    @classmethod
    def default_task_type(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) and v.strip() else DEFAULT_TASK_TYPE

    @field_validator("resolution_size", mode="before")
    @classmethod
    def default_resolution_size(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) and v.strip() else DEFAULT_RESOLUTION_SIZE

    @field_validator("reason", mode="before")
    @classmethod
    def normalize_reason(cls, v: Any) -> Optional[str]:
        """Handle empty strings, non-strings and None."""
        if isinstance(v, str) and v.strip():
            return v.strip()
        return None


class OCRMeta(BaseModel):
    """Request context echoed back to the client."""

    reason: Optional[str] = None


class OCRResponse(BaseModel):
    """Pipeline result: OCR text plus whatever enrichment succeeded."""

    result: str
    structured: Optional[Dict[str, Any]] = None
    saved: Optional[SavedBill] = None
    meta: OCRMeta = Field(default_factory=OCRMeta)
    warnings: List[str] = Field(default_factory=list)
