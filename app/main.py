import logging
from contextlib import asynccontextmanager
from typing import (
    Any,
    Dict,
)
from fastapi import (
    FastAPI,
    Request,
    status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config.settings import get_settings
from app.config.supabase import create_supabase_client
from app.core.exceptions import AppError
from app.services.inference_gateway import ReplicateGateway
from app.api.v1.documents import router as documents_router
from app.api.v1.campaigns import router as campaigns_router

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the inference gateway and database client once per process."""
    app.state.gateway = ReplicateGateway.from_settings(settings)
    if not settings.replicate_api_token:
        logger.warning("REPLICATE_API_TOKEN is not set; OCR and AI requests will fail")
    app.state.supabase = await create_supabase_client(settings)
    yield


app = FastAPI(
    description="Bill OCR and Crowdfunding Assistant",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render application errors as ``{"error": message}``."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed request bodies as 400 ``{"error": message}``."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    logger.warning(f"Rejected malformed request to {request.url.path}: {messages}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "; ".join(messages) or "Invalid request"},
    )


# Include API routers
app.include_router(documents_router, prefix="/api/v1")
app.include_router(campaigns_router, prefix="/api/v1")


@app.get("/")
async def root(request: Request):
    """Root endpoint returning basic API information."""
    return {"name": "Bill OCR and Crowdfunding Assistant", "version": "0.1.0", "status": "healthy"}


@app.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint returning basic API information."""
    return {"status": "healthy"}
