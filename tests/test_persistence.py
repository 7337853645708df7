"""
Tests for saving bills and campaigns, and for the Supabase store wrapper.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from supabase import PostgrestAPIError

from app.core.exceptions import PersistenceError
from app.schemas.bills import StructuredBill
from app.services.bill_store import SupabaseBillStore
from app.services.persistence_service import list_campaigns, save_medical_bill

from conftest import CAMPAIGN_ID, make_campaign_row

OCR_TEXT = "Total: $450.00\nPatient: Jane Doe"


class TestSaveMedicalBill:
    @pytest.mark.asyncio
    async def test_bill_and_campaign_from_example(self, store):
        structured = StructuredBill.model_validate({"patient_name": "Jane Doe", "total_amount": 450, "items": []})

        saved = await save_medical_bill(store, OCR_TEXT, structured, "Lost my job last month")

        assert saved.id == "bill-1"
        assert saved.campaign_id == "campaign-1"
        bill = store.bills[0]
        assert bill["raw_ocr_text"] == OCR_TEXT
        assert bill["total_amount"] == 450
        assert bill["patient_name"] == "Jane Doe"
        campaign = store.campaigns[0]
        assert campaign == {
            "id": "campaign-1",
            "medical_bill_id": "bill-1",
            "goal_amount": 450,
            "amount_raised": 0,
            "is_funded": False,
            "reason": "Lost my job last month",
        }

    @pytest.mark.asyncio
    async def test_flattened_columns_mirror_structured_record(self, store):
        structured = StructuredBill.model_validate(
            {
                "patient_name": "Jane Doe",
                "service_date": "2026-09-14",
                "total_amount": 120.5,
                "items": [{"description": "Lab panel", "amount": 120.5, "date": "2026-09-14"}],
                "account_number": "AC-991",
            }
        )

        await save_medical_bill(store, OCR_TEXT, structured)

        bill = store.bills[0]
        assert bill["patient_name"] == "Jane Doe"
        assert bill["service_date"] == "2026-09-14"
        assert bill["total_amount"] == 120.5
        assert bill["items"] == [{"description": "Lab panel", "amount": 120.5, "date": "2026-09-14"}]
        assert bill["account_number"] == "AC-991"
        for missing in ("patient_dob", "provider_name", "provider_address", "billing_address"):
            assert bill[missing] is None
        assert bill["structured_data"] == structured.to_record()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total", [None, 0, "unknown", float("inf"), float("nan"), "1e999"])
    async def test_no_campaign_without_positive_total(self, store, total):
        structured = StructuredBill.model_validate({"patient_name": "Jane Doe", "total_amount": total})

        saved = await save_medical_bill(store, OCR_TEXT, structured, "reason")

        assert saved.id == "bill-1"
        assert saved.campaign_id is None
        assert store.campaigns == []

    @pytest.mark.asyncio
    async def test_blank_reason_stored_as_null(self, store):
        structured = StructuredBill.model_validate({"total_amount": 99})

        await save_medical_bill(store, OCR_TEXT, structured, "   ")

        assert store.campaigns[0]["reason"] is None

    @pytest.mark.asyncio
    async def test_campaign_failure_keeps_bill(self, store):
        store.campaign_error = PersistenceError("insert or update violates foreign key constraint")
        structured = StructuredBill.model_validate({"total_amount": 450})

        saved = await save_medical_bill(store, OCR_TEXT, structured)

        assert saved.id == "bill-1"
        assert saved.campaign_id is None
        assert len(store.bills) == 1

    @pytest.mark.asyncio
    async def test_bill_failure_is_fatal(self, store):
        store.bill_error = PersistenceError("connection reset")
        structured = StructuredBill.model_validate({"total_amount": 450})

        with pytest.raises(PersistenceError):
            await save_medical_bill(store, OCR_TEXT, structured)
        assert store.campaigns == []


class TestListCampaigns:
    @pytest.mark.asyncio
    async def test_filters_on_funded_flag(self, store):
        store.campaign_rows = {
            "a": make_campaign_row(id="a", is_funded=False),
            "b": make_campaign_row(id="b", is_funded=True),
        }

        unfunded = await list_campaigns(store, is_funded=False)

        assert [campaign.id for campaign in unfunded] == ["a"]
        assert unfunded[0].medical_bills.patient_name == "Jane Doe"


def _client_returning(data):
    client = MagicMock()
    response = MagicMock(data=data)
    builder = client.table.return_value
    builder.insert.return_value.execute = AsyncMock(return_value=response)
    builder.select.return_value.eq.return_value.limit.return_value.execute = AsyncMock(return_value=response)
    return client


class TestSupabaseBillStore:
    @pytest.mark.asyncio
    async def test_insert_returns_stored_row(self):
        client = _client_returning([{"id": "bill-uuid", "raw_ocr_text": "x"}])

        row = await SupabaseBillStore(client).insert_medical_bill({"raw_ocr_text": "x"})

        assert row["id"] == "bill-uuid"
        client.table.assert_called_with("medical_bills")

    @pytest.mark.asyncio
    async def test_api_error_becomes_persistence_error(self):
        client = MagicMock()
        client.table.return_value.insert.return_value.execute = AsyncMock(
            side_effect=PostgrestAPIError({"message": "duplicate key value", "code": "23505"})
        )

        with pytest.raises(PersistenceError):
            await SupabaseBillStore(client).insert_campaign({"medical_bill_id": "b"})

    @pytest.mark.asyncio
    async def test_fetch_campaign(self):
        client = _client_returning([make_campaign_row()])

        row = await SupabaseBillStore(client).fetch_campaign_with_bill(CAMPAIGN_ID)

        assert row["id"] == CAMPAIGN_ID
        client.table.return_value.select.return_value.eq.assert_called_with("id", CAMPAIGN_ID)

    @pytest.mark.asyncio
    async def test_fetch_missing_campaign(self):
        client = _client_returning([])

        assert await SupabaseBillStore(client).fetch_campaign_with_bill(CAMPAIGN_ID) is None

    @pytest.mark.asyncio
    async def test_non_uuid_id_is_absent_without_query(self):
        client = MagicMock()

        assert await SupabaseBillStore(client).fetch_campaign_with_bill("not-a-uuid") is None
        client.table.assert_not_called()
