"""Upload gate schemas."""

from typing import Optional
from pydantic import BaseModel


class UploadGateRequest(BaseModel):
    password: Optional[str] = None


class UploadGateResponse(BaseModel):
    ok: bool
