"""Supabase database connection and configuration."""

import logging
from supabase import acreate_client, AsyncClient
from app.config.settings import Settings
from app.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


async def create_supabase_client(settings: Settings) -> AsyncClient:
    """
    Create the Supabase client used by the bill store.

    Args:
        settings: Application settings carrying SUPABASE_URL and SUPABASE_KEY

    Returns:
        AsyncClient: Connected Supabase client

    Raises:
        ConfigurationError: If the URL or key is missing
    """
    supabase_url = settings.supabase_url
    supabase_key = settings.supabase_key

    if not supabase_url or not supabase_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set in .env file")

    # Add https:// if missing
    if not supabase_url.startswith(("http://", "https://")):
        supabase_url = f"https://{supabase_url}"

    logger.info(f"Connecting to Supabase at {supabase_url}")
    return await acreate_client(supabase_url, supabase_key)
