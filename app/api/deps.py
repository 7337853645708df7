"""FastAPI dependencies wiring services to the clients built at startup."""

from fastapi import Depends, Request
from app.config.settings import Settings, get_settings
from app.services.bill_store import BillStore, SupabaseBillStore
from app.services.campaign_chat_service import CampaignChatResponder
from app.services.inference_gateway import InferenceGateway
from app.services.ocr_pipeline_service import OCRPipeline


def get_app_settings() -> Settings:
    return get_settings()


def get_gateway(request: Request) -> InferenceGateway:
    """Inference gateway created in the application lifespan."""
    return request.app.state.gateway


def get_bill_store(request: Request) -> BillStore:
    """Bill store over the Supabase client created in the application lifespan."""
    return SupabaseBillStore(request.app.state.supabase)


def get_ocr_pipeline(
    gateway: InferenceGateway = Depends(get_gateway),
    store: BillStore = Depends(get_bill_store),
) -> OCRPipeline:
    return OCRPipeline(gateway, store)


def get_chat_responder(
    gateway: InferenceGateway = Depends(get_gateway),
    store: BillStore = Depends(get_bill_store),
) -> CampaignChatResponder:
    return CampaignChatResponder(gateway, store)
