"""Job-site note cleaning schemas."""

from typing import Any
from pydantic import BaseModel


class CleanNoteRequest(BaseModel):
    """Raw note text to clean."""

    text: Any = None


class CleanNoteResponse(BaseModel):
    """Cleaned note text."""

    cleaned: str
