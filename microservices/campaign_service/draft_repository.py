"""
Campaign Draft Repository

Persistence of in-progress wizard data - PostgreSQL (Async)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.config import InfraConfig
from core.postgres_client import PostgresClientWrapper
from .campaign_repository import json_dumps, json_loads
from .models import CampaignDraft

logger = logging.getLogger(__name__)


class DraftRepository:
    """Campaign draft repository - PostgreSQL (Async)"""

    # expires_at is fixed at insert
    UPDATABLE_COLUMNS = {"name", "data", "step", "updated_at"}

    def __init__(
        self,
        db: Optional[PostgresClientWrapper] = None,
        config: Optional[InfraConfig] = None,
    ):
        self.db = db or PostgresClientWrapper(service_name="campaign_service", config=config)
        self.schema = "campaign"
        self.drafts_table = "campaign_drafts"
        self._table_initialized = False

    async def initialize(self):
        await self._ensure_table()
        logger.info("Draft repository initialized with PostgreSQL")

    async def close(self):
        await self.db.close()

    async def _ensure_table(self) -> None:
        """Create drafts table if missing."""
        if self._table_initialized:
            return

        table = f"{self.schema}.{self.drafts_table}"
        create_sql = f"""
            CREATE TABLE IF NOT EXISTS {table} (
                draft_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                data JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                step INTEGER NOT NULL DEFAULT 1,
                created_by TEXT NOT NULL,
                organization_id TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                expires_at TIMESTAMPTZ NOT NULL
            )
        """
        index_user_sql = (
            f"CREATE INDEX IF NOT EXISTS idx_{self.drafts_table}_user_org "
            f"ON {table}(created_by, organization_id)"
        )
        index_expiry_sql = (
            f"CREATE INDEX IF NOT EXISTS idx_{self.drafts_table}_expires ON {table}(expires_at)"
        )

        async with self.db:
            await self.db.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
            await self.db.execute(create_sql)
            await self.db.execute(index_user_sql)
            await self.db.execute(index_expiry_sql)

        self._table_initialized = True

    async def create_draft(self, draft: CampaignDraft) -> CampaignDraft:
        await self._ensure_table()
        try:
            query = f'''
                INSERT INTO {self.schema}.{self.drafts_table}
                (draft_id, name, data, step, created_by, organization_id,
                 created_at, updated_at, expires_at)
                VALUES ($1, $2, $3::jsonb, $4, $5, $6, $7, $8, $9)
                RETURNING *
            '''
            params = [
                draft.draft_id,
                draft.name,
                json_dumps(draft.data),
                draft.step,
                draft.created_by,
                draft.organization_id,
                draft.created_at,
                draft.updated_at,
                draft.expires_at,
            ]
            async with self.db:
                result = await self.db.query_row(query, params=params)

            return self._row_to_draft(result) if result else draft

        except Exception as e:
            logger.error(f"Error creating draft {draft.draft_id}: {e}", exc_info=True)
            raise

    async def get_draft(self, draft_id: str) -> Optional[CampaignDraft]:
        await self._ensure_table()
        try:
            query = f'SELECT * FROM {self.schema}.{self.drafts_table} WHERE draft_id = $1'
            async with self.db:
                result = await self.db.query_row(query, params=[draft_id])
            return self._row_to_draft(result) if result else None

        except Exception as e:
            logger.error(f"Error getting draft {draft_id}: {e}", exc_info=True)
            raise

    async def update_draft(
        self, draft_id: str, updates: Dict[str, Any]
    ) -> Optional[CampaignDraft]:
        """Update draft content; expires_at is never rewritten"""
        await self._ensure_table()
        try:
            updates = {k: v for k, v in updates.items() if k in self.UPDATABLE_COLUMNS}
            updates.setdefault("updated_at", datetime.now(timezone.utc))

            set_clauses = []
            params = []
            for param_count, (key, value) in enumerate(updates.items(), start=1):
                if key == "data":
                    set_clauses.append(f"data = ${param_count}::jsonb")
                    params.append(json_dumps(value))
                else:
                    set_clauses.append(f"{key} = ${param_count}")
                    params.append(value)

            params.append(draft_id)
            query = f'''
                UPDATE {self.schema}.{self.drafts_table}
                SET {", ".join(set_clauses)}
                WHERE draft_id = ${len(params)}
                RETURNING *
            '''
            async with self.db:
                result = await self.db.query_row(query, params=params)
            return self._row_to_draft(result) if result else None

        except Exception as e:
            logger.error(f"Error updating draft {draft_id}: {e}", exc_info=True)
            raise

    async def delete_draft(self, draft_id: str) -> bool:
        """Delete a draft; an absent id deletes nothing and is not an error"""
        await self._ensure_table()
        try:
            query = f'DELETE FROM {self.schema}.{self.drafts_table} WHERE draft_id = $1'
            async with self.db:
                deleted = await self.db.execute(query, params=[draft_id])
            return deleted > 0

        except Exception as e:
            logger.error(f"Error deleting draft {draft_id}: {e}", exc_info=True)
            raise

    async def list_drafts(
        self, created_by: str, organization_id: Optional[str] = None
    ) -> List[CampaignDraft]:
        await self._ensure_table()
        try:
            params: List[Any] = [created_by]
            conditions = ["created_by = $1"]
            if organization_id:
                params.append(organization_id)
                conditions.append(f"organization_id = ${len(params)}")

            query = f'''
                SELECT * FROM {self.schema}.{self.drafts_table}
                WHERE {" AND ".join(conditions)}
                ORDER BY updated_at DESC
            '''
            async with self.db:
                results = await self.db.query(query, params=params)
            return [self._row_to_draft(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing drafts for {created_by}: {e}", exc_info=True)
            raise

    async def list_expired_drafts(self, now: datetime) -> List[CampaignDraft]:
        await self._ensure_table()
        try:
            query = f'''
                SELECT * FROM {self.schema}.{self.drafts_table}
                WHERE expires_at < $1
                ORDER BY expires_at ASC
            '''
            async with self.db:
                results = await self.db.query(query, params=[now])
            return [self._row_to_draft(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing expired drafts: {e}", exc_info=True)
            raise

    def _row_to_draft(self, row: Dict[str, Any]) -> CampaignDraft:
        """Convert database row to CampaignDraft model"""
        return CampaignDraft(
            draft_id=row["draft_id"],
            name=row["name"],
            data=json_loads(row.get("data"), {}),
            step=row.get("step") or 1,
            created_by=row["created_by"],
            organization_id=row["organization_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            expires_at=row["expires_at"],
        )


__all__ = ["DraftRepository"]
