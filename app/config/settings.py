"""Application settings loaded from the environment."""

import os
from functools import lru_cache
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

DEFAULT_OCR_MODEL_VERSION = "cb3b474fbfc56b1664c8c7841550bccecbe7b74c30e45ce938ffca1180b4dff5"


def _optional_env(name: str) -> Optional[str]:
    """Return a stripped environment value, or None when unset or blank."""
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


class Settings(BaseModel):
    """Runtime configuration for the inference gateway, database and HTTP layer."""

    replicate_api_token: Optional[str] = Field(None, description="Replicate API token")
    replicate_api_base: str = Field("https://api.replicate.com/v1", description="Replicate REST base URL")
    ocr_model_version: str = Field(DEFAULT_OCR_MODEL_VERSION, description="Version id of the OCR model")
    language_model: str = Field("openai/gpt-5-nano", description="owner/name of the language model")
    inference_timeout_seconds: float = Field(300.0, gt=0, description="Upper bound for one provider call")
    inference_poll_interval_seconds: float = Field(1.0, gt=0, description="Delay between prediction polls")
    supabase_url: Optional[str] = Field(None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(None, description="Supabase service or anon key")
    upload_gate_password: Optional[str] = Field(None, description="Password for the client upload gate")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field("INFO")


def load_settings() -> Settings:
    """Build settings from environment variables (``.env`` is honoured)."""
    values = {
        "replicate_api_token": _optional_env("REPLICATE_API_TOKEN"),
        "supabase_url": _optional_env("SUPABASE_URL"),
        "supabase_key": _optional_env("SUPABASE_KEY") or _optional_env("SUPABASE_SERVICE_ROLE_KEY"),
        "upload_gate_password": _optional_env("UPLOAD_GATE_PASSWORD"),
    }

    optional_overrides = {
        "replicate_api_base": "REPLICATE_API_BASE",
        "ocr_model_version": "OCR_MODEL_VERSION",
        "language_model": "LANGUAGE_MODEL",
        "inference_timeout_seconds": "INFERENCE_TIMEOUT_SECONDS",
        "inference_poll_interval_seconds": "INFERENCE_POLL_INTERVAL_SECONDS",
        "log_level": "LOG_LEVEL",
    }
    for field_name, env_name in optional_overrides.items():
        value = _optional_env(env_name)
        if value is not None:
            values[field_name] = value

    origins = _optional_env("CORS_ORIGINS")
    if origins:
        values["cors_origins"] = [origin.strip() for origin in origins.split(",") if origin.strip()]

    return Settings(**values)


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return load_settings()
