"""Supabase-backed storage for medical bills and crowdfunding campaigns."""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import httpx
from supabase import AsyncClient, PostgrestAPIError
from app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

MEDICAL_BILLS_TABLE = "medical_bills"
CAMPAIGNS_TABLE = "crowdfunding_campaigns"

CAMPAIGN_WITH_BILL_SELECT = """
    *,
    medical_bills (
        patient_name,
        patient_dob,
        provider_name,
        provider_address,
        service_date,
        total_amount,
        items,
        billing_address,
        account_number
    )
"""

CAMPAIGN_SUMMARY_SELECT = """
    *,
    medical_bills (
        patient_name,
        provider_name,
        total_amount,
        service_date
    )
"""


class BillStore(ABC):
    """Create/read access to bill and campaign rows. Every call is one atomic store operation."""

    @abstractmethod
    async def insert_medical_bill(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a medical_bills row and return it as stored."""

    @abstractmethod
    async def insert_campaign(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a crowdfunding_campaigns row and return it as stored."""

    @abstractmethod
    async def fetch_campaign_with_bill(self, campaign_id: str) -> Optional[Dict[str, Any]]:
        """Return the campaign joined with its bill, or None if absent."""

    @abstractmethod
    async def list_campaigns(self, is_funded: Optional[bool] = None) -> List[Dict[str, Any]]:
        """Return campaigns with bill summaries, newest first."""


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class SupabaseBillStore(BillStore):
    """BillStore over a Supabase (PostgREST) client."""

    def __init__(self, client: AsyncClient):
        self.client = client

    async def _execute(self, query: Any, action: str) -> List[Dict[str, Any]]:
        try:
            response = await query.execute()
        except (PostgrestAPIError, httpx.HTTPError) as e:
            logger.error(f"Supabase error while trying to {action}: {str(e)}", exc_info=True)
            raise PersistenceError(f"Failed to {action}: {str(e)}")
        return response.data or []

    async def _insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._execute(self.client.table(table).insert(row), f"insert into {table}")
        if not data:
            logger.error(f"Insert into {table} returned no row")
            raise PersistenceError(f"Failed to retrieve created {table} row")
        return data[0]

    async def insert_medical_bill(self, row: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Inserting medical bill into Supabase")
        return await self._insert(MEDICAL_BILLS_TABLE, row)

    async def insert_campaign(self, row: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Inserting crowdfunding campaign for bill {row.get('medical_bill_id')}")
        return await self._insert(CAMPAIGNS_TABLE, row)

    async def fetch_campaign_with_bill(self, campaign_id: str) -> Optional[Dict[str, Any]]:
        if not _is_uuid(campaign_id):
            logger.warning(f"Campaign id is not a UUID: {campaign_id}")
            return None

        query = (
            self.client.table(CAMPAIGNS_TABLE)
            .select(CAMPAIGN_WITH_BILL_SELECT)
            .eq("id", campaign_id)
            .limit(1)
        )
        data = await self._execute(query, "fetch campaign")
        return data[0] if data else None

    async def list_campaigns(self, is_funded: Optional[bool] = None) -> List[Dict[str, Any]]:
        query = (
            self.client.table(CAMPAIGNS_TABLE)
            .select(CAMPAIGN_SUMMARY_SELECT)
            .order("created_at", desc=True)
        )
        if is_funded is not None:
            query = query.eq("is_funded", is_funded)
        return await self._execute(query, "list campaigns")
