"""Helpers for normalizing model-produced amounts and dates."""

import datetime
import logging
import math
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)


def parse_currency(value: Any) -> Optional[float]:
    """
    Parse a currency value to float.

    Handles various formats:
    - '$2,180' -> 2180.0
    - '$1,234.56' -> 1234.56
    - '1234.56' -> 1234.56
    - 1234 -> 1234.0
    - '-$500' -> -500.0

    Args:
        value: Currency value (str, int, or float)

    Returns:
        Optional[float]: Parsed finite value, or None if parsing fails
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            amount = float(value)
        except OverflowError:
            logger.warning("Currency value out of range for a float")
            return None
        return amount if math.isfinite(amount) else None

    if not isinstance(value, str):
        return None

    cleaned = value.strip()
    if not cleaned:
        return None

    negative = cleaned.startswith("-")
    cleaned = re.sub(r'[$€£¥₹\s-]', '', cleaned)
    cleaned = cleaned.replace(',', '')

    try:
        amount = float(cleaned)
    except ValueError:
        logger.warning(f"Could not parse currency value: {value}")
        return None
    if not math.isfinite(amount):
        logger.warning(f"Currency value is not a finite number: {value}")
        return None
    return -amount if negative else amount


def parse_iso_date(value: Any) -> Optional[datetime.date]:
    """Parse a ``YYYY-MM-DD`` date (a trailing time part is ignored); None otherwise."""
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str):
        return None

    try:
        return datetime.date.fromisoformat(value.strip()[:10])
    except ValueError:
        logger.debug(f"Dropping non-ISO date value: {value}")
        return None
