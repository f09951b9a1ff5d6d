"""
Campaign Service Data Repository

Data access layer - PostgreSQL (Async)
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg
from pydantic import BaseModel

from core.config import InfraConfig
from core.postgres_client import PostgresClientWrapper
from .models import Campaign, CampaignStatus
from .protocols import CampaignConflictError

logger = logging.getLogger(__name__)


class ExtendedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, datetime, Enum and pydantic types"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json")
        return super().default(obj)


def json_dumps(obj):
    """JSON dumps with Decimal and datetime support"""
    return json.dumps(obj, cls=ExtendedJSONEncoder)


def json_loads(value: Any, default: Any):
    """JSONB columns come back as text from asyncpg"""
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


class CampaignRepository:
    """Campaign service data repository - PostgreSQL (Async)"""

    # Nested structures stored as JSONB
    JSON_COLUMNS = {
        "budget_allocation",
        "audiences",
        "channels",
        "kpis",
        "custom_metrics",
        "team_members",
        "clients",
        "import_source",
    }

    # Columns an update may touch; identity and provenance are immutable
    UPDATABLE_COLUMNS = JSON_COLUMNS - {"import_source"} | {
        "name",
        "description",
        "status",
        "start_date",
        "end_date",
        "budget",
        "currency",
        "category",
        "priority",
        "updated_at",
    }

    def __init__(
        self,
        db: Optional[PostgresClientWrapper] = None,
        config: Optional[InfraConfig] = None,
    ):
        self.db = db or PostgresClientWrapper(service_name="campaign_service", config=config)
        self.schema = "campaign"
        self.campaigns_table = "campaigns"
        self._table_initialized = False

    async def initialize(self):
        """Initialize database connection"""
        await self._ensure_table()
        logger.info("Campaign repository initialized with PostgreSQL")

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Campaign repository database connection closed")

    async def health_check(self) -> bool:
        """Check repository health"""
        try:
            async with self.db:
                result = await self.db.query_row("SELECT 1 as healthy")
                return result is not None
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def _ensure_table(self) -> None:
        """Create campaigns table if missing."""
        if self._table_initialized:
            return

        table = f"{self.schema}.{self.campaigns_table}"
        create_sql = f"""
            CREATE TABLE IF NOT EXISTS {table} (
                campaign_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL,
                start_date TIMESTAMPTZ NOT NULL,
                end_date TIMESTAMPTZ NOT NULL,
                budget DOUBLE PRECISION NOT NULL DEFAULT 0,
                currency TEXT NOT NULL DEFAULT 'USD',
                budget_allocation JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                category TEXT NOT NULL,
                priority TEXT NOT NULL DEFAULT 'medium',
                audiences JSONB NOT NULL DEFAULT '[]'::jsonb,
                channels JSONB NOT NULL DEFAULT '[]'::jsonb,
                kpis JSONB NOT NULL DEFAULT '[]'::jsonb,
                custom_metrics JSONB NOT NULL DEFAULT '[]'::jsonb,
                organization_id TEXT NOT NULL,
                created_by TEXT NOT NULL,
                team_members JSONB NOT NULL DEFAULT '[]'::jsonb,
                clients JSONB NOT NULL DEFAULT '[]'::jsonb,
                import_platform TEXT,
                import_external_id TEXT,
                import_source JSONB,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """
        index_sqls = [
            f"CREATE INDEX IF NOT EXISTS idx_{self.campaigns_table}_org ON {table}(organization_id)",
            f"CREATE INDEX IF NOT EXISTS idx_{self.campaigns_table}_creator ON {table}(created_by)",
            f"CREATE INDEX IF NOT EXISTS idx_{self.campaigns_table}_status ON {table}(status)",
            f"""CREATE UNIQUE INDEX IF NOT EXISTS idx_{self.campaigns_table}_import_source
                ON {table}(import_platform, import_external_id)
                WHERE import_platform IS NOT NULL""",
        ]

        async with self.db:
            await self.db.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
            await self.db.execute(create_sql)
            for sql in index_sqls:
                await self.db.execute(sql)

        self._table_initialized = True

    # ====================
    # Campaign CRUD
    # ====================

    async def create_campaign(self, campaign: Campaign) -> Campaign:
        """Insert a campaign"""
        await self._ensure_table()

        doc = campaign.model_dump(mode="json")
        import_source = campaign.import_source

        query = f'''
            INSERT INTO {self.schema}.{self.campaigns_table} (
                campaign_id, name, description, status, start_date, end_date,
                budget, currency, budget_allocation, category, priority,
                audiences, channels, kpis, custom_metrics,
                organization_id, created_by, team_members, clients,
                import_platform, import_external_id, import_source,
                created_at, updated_at
            ) VALUES (
                $1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb, $10, $11,
                $12::jsonb, $13::jsonb, $14::jsonb, $15::jsonb,
                $16, $17, $18::jsonb, $19::jsonb,
                $20, $21, $22::jsonb, $23, $24
            )
            RETURNING *
        '''
        params = [
            campaign.campaign_id,
            campaign.name,
            campaign.description,
            campaign.status.value,
            campaign.start_date,
            campaign.end_date,
            float(campaign.budget),
            campaign.currency,
            json_dumps(doc["budget_allocation"]),
            campaign.category.value,
            campaign.priority.value,
            json_dumps(doc["audiences"]),
            json_dumps(doc["channels"]),
            json_dumps(doc["kpis"]),
            json_dumps(doc["custom_metrics"]),
            campaign.organization_id,
            campaign.created_by,
            json_dumps(doc["team_members"]),
            json_dumps(doc["clients"]),
            import_source.platform if import_source else None,
            import_source.external_id if import_source else None,
            json_dumps(doc["import_source"]) if import_source else None,
            campaign.created_at,
            campaign.updated_at,
        ]

        try:
            async with self.db:
                result = await self.db.query_row(query, params=params)
        except asyncpg.UniqueViolationError:
            # Concurrent import of the same external campaign
            raise CampaignConflictError(
                f"Campaign already imported from {import_source.platform} "
                f"(ID: {import_source.external_id})"
            )
        except Exception as e:
            logger.error(f"Error creating campaign {campaign.campaign_id}: {e}", exc_info=True)
            raise

        return self._row_to_campaign(result) if result else campaign

    async def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        """Get campaign by ID"""
        await self._ensure_table()
        try:
            query = f'''
                SELECT * FROM {self.schema}.{self.campaigns_table}
                WHERE campaign_id = $1
            '''
            async with self.db:
                result = await self.db.query_row(query, params=[campaign_id])

            return self._row_to_campaign(result) if result else None

        except Exception as e:
            logger.error(f"Error getting campaign {campaign_id}: {e}", exc_info=True)
            raise

    @asynccontextmanager
    async def lock_campaign(self, campaign_id: str) -> AsyncIterator[Optional[Campaign]]:
        """
        Load a campaign under a row lock for a read-modify-write.

        Writes through this repository inside the block join the same
        transaction, which commits on exit and rolls back on error.
        """
        await self._ensure_table()
        query = f'''
            SELECT * FROM {self.schema}.{self.campaigns_table}
            WHERE campaign_id = $1
            FOR UPDATE
        '''
        async with self.db.transaction():
            result = await self.db.query_row(query, params=[campaign_id])
            yield self._row_to_campaign(result) if result else None

    async def update_campaign(
        self, campaign_id: str, updates: Dict[str, Any]
    ) -> Optional[Campaign]:
        """Update the supplied campaign fields only"""
        await self._ensure_table()
        try:
            unknown = set(updates) - self.UPDATABLE_COLUMNS
            if unknown:
                raise ValueError(f"Cannot update campaign columns: {sorted(unknown)}")

            updates = dict(updates)
            updates.setdefault("updated_at", datetime.now(timezone.utc))

            set_clauses = []
            params = []
            for param_count, (key, value) in enumerate(updates.items(), start=1):
                if key in self.JSON_COLUMNS:
                    set_clauses.append(f"{key} = ${param_count}::jsonb")
                    params.append(json_dumps(value))
                elif isinstance(value, Enum):
                    set_clauses.append(f"{key} = ${param_count}")
                    params.append(value.value)
                else:
                    set_clauses.append(f"{key} = ${param_count}")
                    params.append(value)

            params.append(campaign_id)
            query = f'''
                UPDATE {self.schema}.{self.campaigns_table}
                SET {", ".join(set_clauses)}
                WHERE campaign_id = ${len(params)}
                RETURNING *
            '''

            async with self.db:
                result = await self.db.query_row(query, params=params)

            return self._row_to_campaign(result) if result else None

        except Exception as e:
            logger.error(f"Error updating campaign {campaign_id}: {e}", exc_info=True)
            raise

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Hard delete a campaign"""
        await self._ensure_table()
        try:
            query = f'''
                DELETE FROM {self.schema}.{self.campaigns_table}
                WHERE campaign_id = $1
            '''
            async with self.db:
                deleted = await self.db.execute(query, params=[campaign_id])
            return deleted > 0

        except Exception as e:
            logger.error(f"Error deleting campaign {campaign_id}: {e}", exc_info=True)
            raise

    async def list_campaigns(
        self,
        organization_id: Optional[str] = None,
        status: Optional[CampaignStatus] = None,
        created_by: Optional[str] = None,
    ) -> List[Campaign]:
        """List campaigns narrowed by the indexed columns"""
        await self._ensure_table()
        try:
            conditions = []
            params: List[Any] = []

            if organization_id:
                params.append(organization_id)
                conditions.append(f"organization_id = ${len(params)}")
            if status:
                params.append(CampaignStatus(status).value)
                conditions.append(f"status = ${len(params)}")
            if created_by:
                params.append(created_by)
                conditions.append(f"created_by = ${len(params)}")

            where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
            query = f'''
                SELECT * FROM {self.schema}.{self.campaigns_table}
                {where_clause}
                ORDER BY created_at DESC
            '''

            async with self.db:
                results = await self.db.query(query, params=params)

            return [self._row_to_campaign(row) for row in results]

        except Exception as e:
            logger.error(f"Error listing campaigns: {e}", exc_info=True)
            raise

    async def find_by_import_source(
        self, platform: str, external_id: str
    ) -> List[Campaign]:
        """Campaigns imported from a given external platform record"""
        await self._ensure_table()
        try:
            query = f'''
                SELECT * FROM {self.schema}.{self.campaigns_table}
                WHERE import_platform = $1 AND import_external_id = $2
                ORDER BY created_at DESC
            '''
            async with self.db:
                results = await self.db.query(query, params=[platform, external_id])

            return [self._row_to_campaign(row) for row in results]

        except Exception as e:
            logger.error(
                f"Error finding campaigns imported from {platform}/{external_id}: {e}",
                exc_info=True,
            )
            raise

    # ====================
    # Helper Methods
    # ====================

    def _row_to_campaign(self, row: Dict[str, Any]) -> Campaign:
        """Convert database row to Campaign model"""
        return Campaign(
            campaign_id=row["campaign_id"],
            name=row["name"],
            description=row.get("description") or "",
            status=CampaignStatus(row["status"]),
            start_date=row["start_date"],
            end_date=row["end_date"],
            budget=float(row.get("budget") or 0),
            currency=row.get("currency") or "USD",
            budget_allocation=json_loads(row.get("budget_allocation"), {}),
            category=row["category"],
            priority=row.get("priority") or "medium",
            audiences=json_loads(row.get("audiences"), []),
            channels=json_loads(row.get("channels"), []),
            kpis=json_loads(row.get("kpis"), []),
            custom_metrics=json_loads(row.get("custom_metrics"), []),
            organization_id=row["organization_id"],
            created_by=row["created_by"],
            team_members=json_loads(row.get("team_members"), []),
            clients=json_loads(row.get("clients"), []),
            import_source=json_loads(row.get("import_source"), None),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


__all__ = ["CampaignRepository", "ExtendedJSONEncoder", "json_dumps", "json_loads"]
