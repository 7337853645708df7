"""
Shared pytest fixtures: fake inference gateway, in-memory bill store, FastAPI TestClient.
"""
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_bill_store, get_gateway
from app.main import app
from app.services.bill_store import BillStore
from app.services.inference_gateway import InferenceGateway, LanguageModelOptions
from app.utils.image_codec import encode_image

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"fake-image-body"
SAMPLE_OCR_TEXT = "Total: $450.00\nPatient: Jane Doe"
SAMPLE_STRUCTURED_JSON = '{"patient_name": "Jane Doe", "total_amount": 450, "items": []}'
CAMPAIGN_ID = "3f2b8c1e-7d4a-4e8b-9a51-2c6d0e9f1a77"


class FakeGateway(InferenceGateway):
    """Inference gateway returning canned text and recording every call."""

    def __init__(self):
        self.ocr_text = SAMPLE_OCR_TEXT
        self.ocr_error: Optional[Exception] = None
        self.lm_response = SAMPLE_STRUCTURED_JSON
        self.lm_error: Optional[Exception] = None
        self.stream_chunks: List[str] = ["Goal Amount: ", "$450.00"]
        self.stream_error: Optional[Exception] = None
        self.ocr_calls: List[tuple] = []
        self.lm_calls: List[tuple] = []
        self.stream_calls: List[tuple] = []

    async def run_ocr(self, image_bytes: bytes, task_type: str, resolution_size: str) -> str:
        self.ocr_calls.append((image_bytes, task_type, resolution_size))
        if self.ocr_error:
            raise self.ocr_error
        return self.ocr_text

    async def run_language_model(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LanguageModelOptions] = None,
    ) -> str:
        self.lm_calls.append((system_prompt, user_prompt, options))
        if self.lm_error:
            raise self.lm_error
        return self.lm_response

    async def stream_language_model(
        self,
        system_prompt: str,
        user_prompt: str,
        options: Optional[LanguageModelOptions] = None,
    ) -> AsyncIterator[str]:
        self.stream_calls.append((system_prompt, user_prompt, options))
        for chunk in self.stream_chunks:
            yield chunk
        if self.stream_error:
            raise self.stream_error


class FakeBillStore(BillStore):
    """In-memory bill store."""

    def __init__(self):
        self.bills: List[Dict[str, Any]] = []
        self.campaigns: List[Dict[str, Any]] = []
        self.campaign_rows: Dict[str, Dict[str, Any]] = {}
        self.bill_error: Optional[Exception] = None
        self.campaign_error: Optional[Exception] = None

    async def insert_medical_bill(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.bill_error:
            raise self.bill_error
        stored = {"id": f"bill-{len(self.bills) + 1}", **row}
        self.bills.append(stored)
        return stored

    async def insert_campaign(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.campaign_error:
            raise self.campaign_error
        stored = {"id": f"campaign-{len(self.campaigns) + 1}", **row}
        self.campaigns.append(stored)
        return stored

    async def fetch_campaign_with_bill(self, campaign_id: str) -> Optional[Dict[str, Any]]:
        return self.campaign_rows.get(campaign_id)

    async def list_campaigns(self, is_funded: Optional[bool] = None) -> List[Dict[str, Any]]:
        rows = list(self.campaign_rows.values())
        if is_funded is not None:
            rows = [row for row in rows if row["is_funded"] == is_funded]
        return rows


def make_campaign_row(**overrides: Any) -> Dict[str, Any]:
    row = {
        "id": CAMPAIGN_ID,
        "medical_bill_id": "bill-1",
        "goal_amount": 450,
        "amount_raised": 0,
        "is_funded": False,
        "reason": None,
        "created_at": "2026-10-01T12:00:00+00:00",
        "updated_at": "2026-10-01T12:00:00+00:00",
        "medical_bills": {
            "patient_name": "Jane Doe",
            "patient_dob": None,
            "provider_name": "St. Mary's Hospital",
            "provider_address": None,
            "service_date": "2026-09-14",
            "total_amount": 450,
            "items": [{"description": "ER visit", "amount": 450, "date": "2026-09-14"}],
            "billing_address": None,
            "account_number": None,
        },
    }
    row.update(overrides)
    return row


@pytest.fixture()
def image_data_url() -> str:
    return encode_image(PNG_BYTES)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def store() -> FakeBillStore:
    return FakeBillStore()


@pytest.fixture()
def client(gateway, store):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_bill_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
