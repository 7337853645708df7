"""Document OCR, structuring and note-cleaning API routes."""

import logging
from fastapi import APIRouter, Depends, status
from app.config.settings import Settings
from app.core.exceptions import AppError
from app.api.deps import get_app_settings, get_gateway, get_ocr_pipeline
from app.schemas.bills import StructureBillRequest, StructureBillResponse
from app.schemas.gate import UploadGateRequest, UploadGateResponse
from app.schemas.notes import CleanNoteRequest, CleanNoteResponse
from app.schemas.ocr import OCRRequest, OCRResponse
from app.services.bill_structuring_service import structure_bill
from app.services.inference_gateway import InferenceGateway
from app.services.note_cleaning_service import clean_note
from app.services.ocr_pipeline_service import OCRPipeline
from app.services.upload_gate_service import check_upload_gate

logger = logging.getLogger(__name__)
router = APIRouter(tags=["documents"])


@router.post("/ocr", response_model=OCRResponse, status_code=status.HTTP_200_OK)
async def ocr_endpoint(
    body: OCRRequest,
    pipeline: OCRPipeline = Depends(get_ocr_pipeline),
) -> OCRResponse:
    """
    Run OCR on an uploaded image, then structure and save it as a medical bill.

    The OCR text is always returned when OCR succeeds:
    - structured: the extracted bill record, or null if structuring was skipped or failed
    - saved: ids of the stored bill and campaign, or null if saving was skipped or failed
    - warnings: the enrichment steps that failed
    """
    try:
        logger.info(f"OCR request received (task: {body.task_type}, structure: {body.structure}, save: {body.save})")
        return await pipeline.run(body)

    except AppError:
        logger.error("AppError raised in ocr_endpoint", exc_info=True)
        raise
    except Exception as e:
        logger.error(f"Unexpected error in ocr_endpoint: {str(e)}", exc_info=True)
        raise AppError(f"Failed to process OCR: {str(e)}")


@router.post("/structure-bill", response_model=StructureBillResponse, status_code=status.HTTP_200_OK)
async def structure_bill_endpoint(
    body: StructureBillRequest,
    gateway: InferenceGateway = Depends(get_gateway),
) -> StructureBillResponse:
    """Extract a structured medical bill record from OCR text."""
    try:
        structured = await structure_bill(gateway, body.ocr_text)
        return StructureBillResponse(structured=structured.to_record())

    except AppError:
        logger.error("AppError raised in structure_bill_endpoint", exc_info=True)
        raise
    except Exception as e:
        logger.error(f"Unexpected error in structure_bill_endpoint: {str(e)}", exc_info=True)
        raise AppError(f"Failed to structure bill data: {str(e)}")


@router.post("/clean-note", response_model=CleanNoteResponse, status_code=status.HTTP_200_OK)
async def clean_note_endpoint(
    body: CleanNoteRequest,
    gateway: InferenceGateway = Depends(get_gateway),
) -> CleanNoteResponse:
    """Turn an OCR'd job-site note into clean, organized paragraphs."""
    try:
        cleaned = await clean_note(gateway, body.text)
        return CleanNoteResponse(cleaned=cleaned)

    except AppError:
        logger.error("AppError raised in clean_note_endpoint", exc_info=True)
        raise
    except Exception as e:
        logger.error(f"Unexpected error in clean_note_endpoint: {str(e)}", exc_info=True)
        raise AppError(f"Failed to clean note with AI: {str(e)}")


@router.post("/upload-gate", response_model=UploadGateResponse, status_code=status.HTTP_200_OK)
async def upload_gate_endpoint(
    body: UploadGateRequest,
    settings: Settings = Depends(get_app_settings),
) -> UploadGateResponse:
    """Check the upload gate password."""
    return UploadGateResponse(ok=check_upload_gate(settings, body.password))
