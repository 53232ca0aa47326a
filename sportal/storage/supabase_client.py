# sportal/storage/supabase_client.py
from datetime import datetime
from typing import Any, Dict, Optional

from loguru import logger
from postgrest import APIResponse
from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import AsyncClient, create_async_client
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sportal.config.settings import AppSettings, settings
from sportal.models.organization import Organization

ORGANIZATION_COLUMNS = (
    "org_id, org_name, user_email, playhq_org_id, playhq_api_key, playhq_tenant, "
    "primary_color, secondary_color, text_color, font_family, sponsor_logo_url, "
    "cache_json, cache_updated_at"
)


class PersistenceFailure(Exception):
    """Exception raised when the organization store cannot be read or written."""

    pass


async def initialize_supabase(app_settings: AppSettings = settings) -> AsyncClient:
    """Creates an async Supabase client from settings."""
    if not app_settings.supabase_url or not app_settings.supabase_key:
        logger.critical("Supabase URL or Key not configured in settings.")
        raise SystemExit("Supabase configuration missing.")

    key = app_settings.supabase_service_key or app_settings.supabase_key
    logger.debug(
        f"Attempting to initialize Async Supabase client with URL: {app_settings.supabase_url}"
    )
    client: AsyncClient = await create_async_client(app_settings.supabase_url, key)
    logger.success("Async Supabase client initialized successfully.")
    return client


class OrganizationStore:
    """Reads organization rows and writes their cached aggregate blob."""

    def __init__(
        self,
        client: AsyncClient,
        table: str = settings.organizations_table,
        write_attempts: int = settings.cache_write_attempts,
        backoff_seconds: float = 1,
        backoff_max_seconds: float = 10,
    ):
        self.client = client
        self.table = table
        self.write_attempts = write_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds

    async def get_org_by_email(self, email: str) -> Optional[Organization]:
        """Exact (case-sensitive) match on ``user_email``; None when absent."""
        try:
            response: APIResponse = (
                await self.client.table(self.table)
                .select(ORGANIZATION_COLUMNS)
                .eq("user_email", email)
                .limit(1)
                .execute()
            )
        except APIError as e:
            logger.error(f"Database error in get_org_by_email: {e.message}")
            raise PersistenceFailure(f"Organization lookup failed: {e.message}") from e
        except Exception as e:
            logger.exception(f"Unexpected error looking up organization: {e}")
            raise PersistenceFailure(f"Organization lookup failed: {e}") from e

        if not response.data:
            logger.info(f"No organization found for {email}")
            return None
        try:
            return Organization.model_validate(response.data[0])
        except ValidationError as e:
            logger.error(f"Organization row for {email} failed validation: {e}")
            raise PersistenceFailure(f"Organization row for {email} is invalid: {e}") from e

    async def _execute_cache_update(self, org_id: str, row: Dict[str, Any]) -> None:
        # Both columns go out in one UPDATE so readers never see half a write
        await self.client.table(self.table).update(row).eq("org_id", org_id).execute()

    async def update_org_cache(
        self, org_id: str, data: Dict[str, Any], updated_at: datetime
    ) -> bool:
        """Writes the cache blob and its timestamp. Never raises.

        Transient PostgREST errors are retried with exponential backoff.
        Returns True when the write landed.
        """
        row = {"cache_json": data, "cache_updated_at": updated_at.isoformat()}
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.write_attempts),
                wait=wait_exponential(
                    multiplier=self.backoff_seconds, max=self.backoff_max_seconds
                ),
                retry=retry_if_exception_type(APIError),
                reraise=False,
            ):
                with attempt:
                    await self._execute_cache_update(org_id, row)
        except RetryError as e:
            last = e.last_attempt.exception()
            logger.error(
                f"Failed to update cache for org {org_id} after {self.write_attempts} attempts: {last}"
            )
            return False
        except Exception as e:
            logger.exception(f"Unexpected error updating cache for org {org_id}: {e}")
            return False

        logger.success(f"Updated cache for org {org_id} at {updated_at.isoformat()}")
        return True
