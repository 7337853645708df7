"""This file contains the schemas for the application."""
from app.schemas.bills import (
    LineItem,
    StructuredBill,
    MedicalBillRow,
    SavedBill,
    StructureBillRequest,
    StructureBillResponse,
)
from app.schemas.campaigns import (
    CampaignCreate,
    CampaignBill,
    CampaignRecord,
    CampaignSummary,
    CampaignSummaryBill,
    ChatRequest,
)
from app.schemas.ocr import OCRRequest, OCRMeta, OCRResponse
from app.schemas.notes import CleanNoteRequest, CleanNoteResponse
from app.schemas.gate import UploadGateRequest, UploadGateResponse

__all__ = [
    "LineItem",
    "StructuredBill",
    "MedicalBillRow",
    "SavedBill",
    "StructureBillRequest",
    "StructureBillResponse",
    "CampaignCreate",
    "CampaignBill",
    "CampaignRecord",
    "CampaignSummary",
    "CampaignSummaryBill",
    "ChatRequest",
    "OCRRequest",
    "OCRMeta",
    "OCRResponse",
    "CleanNoteRequest",
    "CleanNoteResponse",
    "UploadGateRequest",
    "UploadGateResponse",
]
