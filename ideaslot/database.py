"""
Async Supabase access for the ``business_ideas`` table.

Only :class:`IdeaStore` talks to Supabase.  Backend failures surface as
``DatabaseError`` with the backend's message, so a half-applied delete
is never reported as success.

Usage::

    store = await IdeaStore.create()
    ideas = await store.fetch_ideas()
    await store.delete_ideas([idea.id for idea in stale])
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from supabase import AsyncClient, create_async_client

from ideaslot.exceptions import DatabaseError, ValidationError
from ideaslot.models import IdeaRecord

logger = logging.getLogger(__name__)

IDEAS_TABLE = "business_ideas"
IDEA_COLUMNS = "id, title, description, category, created_at"


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def validate_not_empty(value: Any, name: str) -> None:
    """
    Raises:
        ValidationError: *value* is ``None`` or blank.
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"{name} cannot be empty string")


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class SupabaseConfig:
    """Project URL and service-role key."""

    url: str
    key: str

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        """
        Read ``SUPABASE_URL`` and ``SUPABASE_SERVICE_KEY``.

        Raises:
            ValueError: If either is unset; the caller runs without a store.
        """
        missing = [
            name for name in ("SUPABASE_URL", "SUPABASE_SERVICE_KEY") if not os.environ.get(name)
        ]
        if missing:
            raise ValueError(f"{' and '.join(missing)} not set")
        return cls(url=os.environ["SUPABASE_URL"], key=os.environ["SUPABASE_SERVICE_KEY"])


# =============================================================================
# IDEA STORE
# =============================================================================


class IdeaStore:
    """
    Reads, batch inserts and batch deletes on ``business_ideas``.

    Build with :meth:`create`; the async client has to be awaited into
    existence.
    """

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    @classmethod
    async def create(cls, config: Optional[SupabaseConfig] = None) -> "IdeaStore":
        config = config or SupabaseConfig.from_env()
        return cls(await create_async_client(config.url, config.key))

    async def _execute(self, query: Any, operation: str) -> Any:
        try:
            return await query.execute()
        except Exception as exc:
            logger.error("[DB] %s failed: %s", operation, exc)
            raise DatabaseError(f"{operation} failed: {exc}") from exc

    # -----------------------------------------------------------------
    # READS
    # -----------------------------------------------------------------

    async def fetch_ideas(self) -> List[IdeaRecord]:
        """All ideas ordered by creation time (oldest first)."""
        result = await self._execute(
            self.client.table(IDEAS_TABLE)
            .select(IDEA_COLUMNS)
            .order("created_at", desc=False),
            "Fetch ideas",
        )
        return [IdeaRecord.from_row(row) for row in result.data or []]

    async def get_ideas_by_ids(self, ids: Sequence[str]) -> List[IdeaRecord]:
        """Ideas whose id is in *ids* (missing ids are simply absent)."""
        for idea_id in ids:
            validate_not_empty(idea_id, "idea id")
        result = await self._execute(
            self.client.table(IDEAS_TABLE)
            .select(IDEA_COLUMNS)
            .in_("id", list(ids)),
            "Fetch ideas by id",
        )
        return [IdeaRecord.from_row(row) for row in result.data or []]

    # -----------------------------------------------------------------
    # WRITES
    # -----------------------------------------------------------------

    async def insert_ideas(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert *rows* in one batch and return the stored rows."""
        if not rows:
            return []
        result = await self._execute(
            self.client.table(IDEAS_TABLE).insert(rows),
            "Insert ideas",
        )
        if not result.data:
            raise DatabaseError(f"Insert of {len(rows)} ideas returned no data")
        logger.info("[DB] Inserted %d ideas", len(result.data))
        return result.data

    async def delete_ideas(self, ids: Sequence[str]) -> int:
        """Delete every idea in *ids* with a single batch call."""
        if not ids:
            return 0
        await self._execute(
            self.client.table(IDEAS_TABLE).delete().in_("id", list(ids)),
            "Delete ideas",
        )
        logger.info("[DB] Deleted %d ideas", len(ids))
        return len(ids)
