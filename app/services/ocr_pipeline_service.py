"""Best-effort OCR pipeline: OCR, then optional structuring and persistence."""

import asyncio
import logging
from typing import List, Optional
from app.core.exceptions import AppError
from app.schemas.bills import SavedBill, StructuredBill
from app.schemas.ocr import OCRMeta, OCRRequest, OCRResponse
from app.services.bill_store import BillStore
from app.services.bill_structuring_service import structure_bill
from app.services.inference_gateway import InferenceGateway
from app.services.persistence_service import save_medical_bill
from app.utils.image_codec import decode_document

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


class OCRPipeline:
    """
    Runs one OCR request through
    Received -> Encoded -> OCR'd -> [Structured] -> [Persisted] -> Responded.

    Image validation and OCR are mandatory: their errors propagate. Structuring
    and persistence are enrichment: their errors are logged and recorded as
    warnings, and the response carries whatever was obtained.
    """

    def __init__(self, gateway: InferenceGateway, store: Optional[BillStore] = None):
        self.gateway = gateway
        self.store = store

    async def run(self, request: OCRRequest) -> OCRResponse:
        logger.info("=== OCR PIPELINE STARTED ===")
        warnings: List[str] = []

        # Received / Encoded
        images = await asyncio.to_thread(decode_document, request.image)
        logger.info(f"Step 1: Decoded upload into {len(images)} image(s)")

        # OCR'd
        logger.info("Step 2: Running OCR...")
        page_texts = []
        for idx, image_bytes in enumerate(images, 1):
            logger.debug(f"Running OCR on image {idx}/{len(images)}")
            page_texts.append(
                await self.gateway.run_ocr(image_bytes, request.task_type, request.resolution_size)
            )
        ocr_text = PAGE_SEPARATOR.join(page_texts)
        logger.info(f"✓ OCR extracted {len(ocr_text)} characters")

        structured = await self._structure(ocr_text, request, warnings)

        saved = None
        if structured is not None:
            saved = await self._persist(ocr_text, structured, request, warnings)

        logger.info("=== OCR PIPELINE COMPLETED ===")
        return OCRResponse(
            result=ocr_text,
            structured=structured.to_record() if structured is not None else None,
            saved=saved,
            meta=OCRMeta(reason=request.reason),
            warnings=warnings,
        )

    async def _structure(
        self,
        ocr_text: str,
        request: OCRRequest,
        warnings: List[str],
    ) -> Optional[StructuredBill]:
        if not request.structure:
            logger.info("Step 3: Structuring skipped by request")
            return None
        if not ocr_text.strip():
            logger.warning("Step 3: OCR returned no text; nothing to structure")
            warnings.append("structuring skipped: OCR returned no text")
            return None

        logger.info("Step 3: Structuring bill with language model...")
        try:
            structured = await structure_bill(self.gateway, ocr_text)
        except AppError as e:
            logger.warning(f"Structuring failed, continuing with OCR text only: {e.message}")
            warnings.append(f"structuring failed: {e.message}")
            return None
        except Exception as e:
            logger.error(f"Unexpected structuring error, continuing with OCR text only: {str(e)}", exc_info=True)
            warnings.append(f"structuring failed: {str(e)}")
            return None
        logger.info("✓ Bill structured")
        return structured

    async def _persist(
        self,
        ocr_text: str,
        structured: StructuredBill,
        request: OCRRequest,
        warnings: List[str],
    ) -> Optional[SavedBill]:
        if not request.save:
            logger.info("Step 4: Persistence skipped by request")
            return None
        if self.store is None:
            logger.warning("Step 4: No bill store configured; skipping persistence")
            warnings.append("persistence skipped: no database configured")
            return None

        logger.info("Step 4: Saving bill and campaign...")
        try:
            saved = await save_medical_bill(self.store, ocr_text, structured, request.reason)
        except AppError as e:
            logger.error(f"Saving bill failed, continuing without saved id: {e.message}")
            warnings.append(f"persistence failed: {e.message}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error saving bill, continuing without saved id: {str(e)}", exc_info=True)
            warnings.append(f"persistence failed: {str(e)}")
            return None
        logger.info(f"✓ Bill persisted: {saved.id}")
        return saved
