"""
Tests for the best-effort OCR pipeline.
"""
import threading

import fitz
import pytest

from app.core.exceptions import ConfigurationError, PersistenceError, ProviderError, ValidationError
from app.schemas.ocr import OCRRequest
from app.services.ocr_pipeline_service import OCRPipeline
from app.utils.image_codec import encode_image, decode_document

from conftest import PNG_BYTES, SAMPLE_OCR_TEXT


def make_request(image, **kwargs):
    return OCRRequest(image=image, **kwargs)


class TestMandatoryStages:
    @pytest.mark.asyncio
    async def test_missing_image_fails_before_any_call(self, gateway, store):
        with pytest.raises(ValidationError, match="Image is required"):
            await OCRPipeline(gateway, store).run(make_request(None))
        assert gateway.ocr_calls == []

    @pytest.mark.asyncio
    async def test_ocr_failure_fails_the_pipeline(self, gateway, store, image_data_url):
        gateway.ocr_error = ProviderError("Replicate API error: model is offline")

        with pytest.raises(ProviderError, match="model is offline"):
            await OCRPipeline(gateway, store).run(make_request(image_data_url))
        assert gateway.lm_calls == []
        assert store.bills == []

    @pytest.mark.asyncio
    async def test_missing_credential_surfaces(self, gateway, store, image_data_url):
        gateway.ocr_error = ConfigurationError("REPLICATE_API_TOKEN is not configured")

        with pytest.raises(ConfigurationError):
            await OCRPipeline(gateway, store).run(make_request(image_data_url))


class TestFullRun:
    @pytest.mark.asyncio
    async def test_ocr_structure_and_save(self, gateway, store, image_data_url):
        response = await OCRPipeline(gateway, store).run(make_request(image_data_url, reason="Surgery costs"))

        assert response.result == SAMPLE_OCR_TEXT
        assert response.structured == {"patient_name": "Jane Doe", "total_amount": 450.0, "items": []}
        assert response.saved.id == "bill-1"
        assert response.saved.campaign_id == "campaign-1"
        assert response.meta.reason == "Surgery costs"
        assert response.warnings == []
        assert gateway.ocr_calls == [(PNG_BYTES, "Free OCR", "Gundam (Recommended)")]
        assert store.campaigns[0]["goal_amount"] == 450
        assert store.campaigns[0]["reason"] == "Surgery costs"

    @pytest.mark.asyncio
    async def test_pdf_pages_are_ocrd_in_order(self, gateway, store):
        doc = fitz.open()
        doc.new_page()
        doc.new_page()
        pdf_url = encode_image(doc.tobytes(), "application/pdf")
        doc.close()

        response = await OCRPipeline(gateway, store).run(make_request(pdf_url, structure=False))

        assert len(gateway.ocr_calls) == 2
        assert response.result == f"{SAMPLE_OCR_TEXT}\n\n{SAMPLE_OCR_TEXT}"


    @pytest.mark.asyncio
    async def test_upload_is_decoded_off_the_event_loop(self, gateway, store, image_data_url, monkeypatch):
        loop_thread = threading.get_ident()
        decode_threads = []

        def recording_decode(payload):
            decode_threads.append(threading.get_ident())
            return decode_document(payload)

        monkeypatch.setattr("app.services.ocr_pipeline_service.decode_document", recording_decode)

        await OCRPipeline(gateway, store).run(make_request(image_data_url, structure=False))

        assert len(decode_threads) == 1
        assert decode_threads[0] != loop_thread


class TestGracefulDegradation:
    @pytest.mark.asyncio
    async def test_structuring_failure_keeps_ocr_text(self, gateway, store, image_data_url):
        gateway.lm_response = "not json at all"

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.result == SAMPLE_OCR_TEXT
        assert response.structured is None
        assert response.saved is None
        assert store.bills == []
        assert response.warnings and response.warnings[0].startswith("structuring failed")

    @pytest.mark.asyncio
    async def test_structuring_provider_error_keeps_ocr_text(self, gateway, store, image_data_url):
        gateway.lm_error = ProviderError("rate limited")

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.result == SAMPLE_OCR_TEXT
        assert response.structured is None

    @pytest.mark.asyncio
    async def test_bill_write_failure_keeps_structured(self, gateway, store, image_data_url):
        store.bill_error = PersistenceError("Failed to insert into medical_bills")

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.structured["patient_name"] == "Jane Doe"
        assert response.saved is None
        assert any(w.startswith("persistence failed") for w in response.warnings)

    @pytest.mark.asyncio
    async def test_campaign_failure_still_returns_bill_id(self, gateway, store, image_data_url):
        store.campaign_error = PersistenceError("Failed to insert into crowdfunding_campaigns")

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.saved.id == "bill-1"
        assert response.saved.campaign_id is None
        assert response.warnings == []


    @pytest.mark.asyncio
    async def test_unexpected_store_error_keeps_structured(self, gateway, store, image_data_url):
        store.bill_error = RuntimeError("supabase client closed")

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.result == SAMPLE_OCR_TEXT
        assert response.structured["patient_name"] == "Jane Doe"
        assert response.saved is None
        assert response.warnings == ["persistence failed: supabase client closed"]

    @pytest.mark.asyncio
    async def test_unexpected_structuring_error_keeps_ocr_text(self, gateway, store, image_data_url):
        gateway.lm_error = RuntimeError("event loop is closed")

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.result == SAMPLE_OCR_TEXT
        assert response.structured is None
        assert response.saved is None
        assert response.warnings == ["structuring failed: event loop is closed"]

    @pytest.mark.asyncio
    async def test_oversized_total_saves_bill_without_campaign(self, gateway, store, image_data_url):
        gateway.lm_response = '{"patient_name": "Jane Doe", "total_amount": 1' + "0" * 400 + "}"

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.structured["total_amount"] is None
        assert response.saved.id == "bill-1"
        assert response.saved.campaign_id is None
        assert store.campaigns == []


class TestOptOut:
    @pytest.mark.asyncio
    async def test_structure_opt_out(self, gateway, store, image_data_url):
        response = await OCRPipeline(gateway, store).run(make_request(image_data_url, structure=False))

        assert response.result == SAMPLE_OCR_TEXT
        assert response.structured is None
        assert response.saved is None
        assert gateway.lm_calls == []

    @pytest.mark.asyncio
    async def test_save_opt_out(self, gateway, store, image_data_url):
        response = await OCRPipeline(gateway, store).run(make_request(image_data_url, save=False))

        assert response.structured is not None
        assert response.saved is None
        assert store.bills == []

    @pytest.mark.asyncio
    async def test_without_store(self, gateway, image_data_url):
        response = await OCRPipeline(gateway).run(make_request(image_data_url))

        assert response.structured is not None
        assert response.saved is None

    @pytest.mark.asyncio
    async def test_blank_ocr_text_is_not_structured(self, gateway, store, image_data_url):
        gateway.ocr_text = "   "

        response = await OCRPipeline(gateway, store).run(make_request(image_data_url))

        assert response.structured is None
        assert gateway.lm_calls == []


class TestRequestNormalization:
    def test_snake_and_camel_case_options(self):
        camel = OCRRequest.model_validate({"image": "x", "taskType": "Convert to Markdown"})
        snake = OCRRequest.model_validate({"image": "x", "resolution_size": "Tiny"})
        assert camel.task_type == "Convert to Markdown"
        assert snake.resolution_size == "Tiny"

    def test_defaults_and_blank_reason(self):
        request = OCRRequest.model_validate({"image": "x", "taskType": "", "reason": "   "})
        assert request.task_type == "Free OCR"
        assert request.resolution_size == "Gundam (Recommended)"
        assert request.reason is None
        assert request.structure is True
        assert request.save is True
