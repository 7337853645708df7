"""Client upload gate check."""

import hmac
import logging
from typing import Optional
from app.config.settings import Settings

logger = logging.getLogger(__name__)


def check_upload_gate(settings: Settings, password: Optional[str]) -> bool:
    """Return True when the gate is disabled or the password matches."""
    expected = settings.upload_gate_password
    if not expected:
        return True
    if not password:
        return False

    ok = hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))
    if not ok:
        logger.warning("Upload gate password rejected")
    return ok
