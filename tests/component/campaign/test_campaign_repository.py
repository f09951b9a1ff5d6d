"""
Component Tests for CampaignRepository and DraftRepository

Tests the data access layer against a recording fake database handle.
"""

import json
import pytest
from contextlib import asynccontextmanager
from datetime import timedelta

import asyncpg

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.campaign_service.campaign_repository import CampaignRepository, json_dumps
from microservices.campaign_service.draft_repository import DraftRepository
from microservices.campaign_service.protocols import CampaignConflictError
from tests.contracts.campaign.data_contract import (
    CampaignStatus,
    CampaignTestDataFactory,
    TeamRole,
)


class FakeDb:
    """Stands in for PostgresClientWrapper; records SQL and returns canned rows"""

    def __init__(self):
        self.calls = []
        self.row = None
        self.rows = []
        self.affected = 1
        self.error = None
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def query_row(self, sql, params=None):
        self.calls.append(("query_row", sql, params))
        if self.error:
            raise self.error
        return self.row

    async def query(self, sql, params=None):
        self.calls.append(("query", sql, params))
        return self.rows

    async def execute(self, sql, params=None):
        self.calls.append(("execute", sql, params))
        return self.affected

    @asynccontextmanager
    async def transaction(self):
        self.calls.append(("begin", None, None))
        try:
            yield self
        except Exception:
            self.calls.append(("rollback", None, None))
            raise
        self.calls.append(("commit", None, None))

    async def close(self):
        self.closed = True

    def last(self):
        return self.calls[-1]


def campaign_row(campaign):
    """Database row as asyncpg would return it, JSONB as text"""
    doc = campaign.model_dump(mode="json")
    row = dict(
        doc,
        start_date=campaign.start_date,
        end_date=campaign.end_date,
        created_at=campaign.created_at,
        updated_at=campaign.updated_at,
    )
    for key in CampaignRepository.JSON_COLUMNS:
        row[key] = json.dumps(doc[key]) if doc[key] is not None else None
    row["import_platform"] = campaign.import_source.platform if campaign.import_source else None
    row["import_external_id"] = (
        campaign.import_source.external_id if campaign.import_source else None
    )
    return row


@pytest.fixture
def db():
    return FakeDb()


@pytest.fixture
def repository(db):
    repo = CampaignRepository(db=db)
    repo._table_initialized = True
    return repo


@pytest.fixture
def draft_repository(db):
    repo = DraftRepository(db=db)
    repo._table_initialized = True
    return repo


class TestSchema:
    """Table creation"""

    @pytest.mark.asyncio
    async def test_initialize_creates_schema_once(self, db):
        repo = CampaignRepository(db=db)

        await repo.initialize()
        await repo.initialize()

        statements = [sql for kind, sql, _ in db.calls]
        assert statements[0] == "CREATE SCHEMA IF NOT EXISTS campaign"
        assert any("CREATE UNIQUE INDEX" in sql and "import_platform" in sql for sql in statements)
        assert len(statements) == 6

    @pytest.mark.asyncio
    async def test_close(self, repository, db):
        await repository.close()
        assert db.closed


class TestCampaignRepository:
    """Campaign CRUD"""

    @pytest.mark.asyncio
    async def test_create_round_trips_row(self, repository, db, factory):
        # Given: A campaign and the row the insert returns
        campaign = factory.make_campaign()
        db.row = campaign_row(campaign)

        # When: Creating it
        created = await repository.create_campaign(campaign)

        # Then: JSON columns are serialized and the row converts back
        kind, sql, params = db.last()
        assert "INSERT INTO campaign.campaigns" in sql
        assert params[3] == "draft"
        assert json.loads(params[17])[0]["role"] == "owner"
        assert created == campaign

    @pytest.mark.asyncio
    async def test_create_imported_sets_provenance_columns(self, repository, db, factory):
        request = factory.make_import_request(platform="google_ads", external_id="77")
        campaign = factory.make_campaign(import_source=request.campaign_data.import_source)

        await repository.create_campaign(campaign)

        params = db.last()[2]
        assert params[19:21] == ["google_ads", "77"]

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_conflict(self, repository, db, factory):
        request = factory.make_import_request(platform="facebook_ads", external_id="123")
        campaign = factory.make_campaign(import_source=request.campaign_data.import_source)
        db.error = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(CampaignConflictError) as exc_info:
            await repository.create_campaign(campaign)

        assert str(exc_info.value) == "Campaign already imported from facebook_ads (ID: 123)"

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, repository, db):
        assert await repository.get_campaign("cmp_missing") is None

    @pytest.mark.asyncio
    async def test_lock_reads_for_update_and_writes_in_transaction(self, repository, db, factory):
        campaign = factory.make_campaign()
        db.row = campaign_row(campaign)

        async with repository.lock_campaign(campaign.campaign_id) as locked:
            assert locked.campaign_id == campaign.campaign_id
            await repository.update_campaign(campaign.campaign_id, {"name": "Renamed"})

        kinds = [call[0] for call in db.calls]
        assert kinds == ["begin", "query_row", "query_row", "commit"]
        assert "FOR UPDATE" in db.calls[1][1]
        assert db.calls[1][2] == [campaign.campaign_id]

    @pytest.mark.asyncio
    async def test_lock_rolls_back_on_error(self, repository, db):
        with pytest.raises(RuntimeError):
            async with repository.lock_campaign("cmp_missing") as locked:
                assert locked is None
                raise RuntimeError("check failed")

        assert db.last()[0] == "rollback"

    @pytest.mark.asyncio
    async def test_update_serializes_by_column_kind(self, repository, db, factory):
        campaign = factory.make_campaign()
        db.row = campaign_row(campaign)

        await repository.update_campaign(
            campaign.campaign_id,
            {
                "status": CampaignStatus.ACTIVE,
                "team_members": [factory.make_team_member("usr_x", TeamRole.VIEWER).model_dump()],
            },
        )

        kind, sql, params = db.last()
        assert "status = $1" in sql
        assert "team_members = $2::jsonb" in sql
        assert "updated_at = $3" in sql
        assert "WHERE campaign_id = $4" in sql
        assert params[0] == "active"
        assert json.loads(params[1])[0]["user_id"] == "usr_x"
        assert params[3] == campaign.campaign_id

    @pytest.mark.asyncio
    async def test_update_rejects_immutable_columns(self, repository, factory):
        with pytest.raises(ValueError):
            await repository.update_campaign("cmp_1", {"created_by": "usr_other"})

    @pytest.mark.asyncio
    async def test_delete_reports_whether_row_existed(self, repository, db):
        assert await repository.delete_campaign("cmp_1") is True
        db.affected = 0
        assert await repository.delete_campaign("cmp_1") is False

    @pytest.mark.asyncio
    async def test_list_builds_filters(self, repository, db, factory):
        campaign = factory.make_campaign()
        db.rows = [campaign_row(campaign)]

        results = await repository.list_campaigns(
            organization_id="org_1", status=CampaignStatus.PAUSED, created_by="usr_1"
        )

        kind, sql, params = db.last()
        assert "organization_id = $1 AND status = $2 AND created_by = $3" in sql
        assert params == ["org_1", "paused", "usr_1"]
        assert results[0].campaign_id == campaign.campaign_id

    @pytest.mark.asyncio
    async def test_list_without_filters(self, repository, db):
        await repository.list_campaigns()
        kind, sql, params = db.last()
        assert "WHERE" not in sql
        assert params == []

    @pytest.mark.asyncio
    async def test_find_by_import_source(self, repository, db):
        await repository.find_by_import_source("facebook_ads", "123")
        assert db.last()[2] == ["facebook_ads", "123"]

    @pytest.mark.asyncio
    async def test_health_check_failure(self, repository, db):
        db.error = RuntimeError("down")
        assert await repository.health_check() is False

    def test_json_dumps_handles_models_and_enums(self, factory):
        payload = json.loads(json_dumps({"status": CampaignStatus.DRAFT, "at": factory.NOW}))
        assert payload == {"status": "draft", "at": factory.NOW.isoformat()}


class TestDraftRepository:
    """Draft persistence"""

    @staticmethod
    def draft_row(draft):
        row = draft.model_dump()
        row["data"] = json.dumps(draft.data)
        return row

    @pytest.mark.asyncio
    async def test_create_draft(self, draft_repository, db, factory):
        draft = factory.make_draft()
        db.row = self.draft_row(draft)

        created = await draft_repository.create_draft(draft)

        assert created == draft
        assert json.loads(db.last()[2][2]) == draft.data

    @pytest.mark.asyncio
    async def test_update_never_touches_expiry(self, draft_repository, db, factory):
        draft = factory.make_draft()
        db.row = self.draft_row(draft)

        await draft_repository.update_draft(
            draft.draft_id,
            {"name": "Renamed", "expires_at": factory.NOW + timedelta(days=90)},
        )

        kind, sql, params = db.last()
        assert "expires_at" not in sql
        assert "name = $1" in sql
        assert params[0] == "Renamed"

    @pytest.mark.asyncio
    async def test_delete_missing_is_false(self, draft_repository, db):
        db.affected = 0
        assert await draft_repository.delete_draft("drf_missing") is False

    @pytest.mark.asyncio
    async def test_list_drafts_scoped_to_user_and_org(self, draft_repository, db):
        await draft_repository.list_drafts("usr_1", "org_1")

        kind, sql, params = db.last()
        assert "created_by = $1 AND organization_id = $2" in sql
        assert "ORDER BY updated_at DESC" in sql
        assert params == ["usr_1", "org_1"]

    @pytest.mark.asyncio
    async def test_list_expired(self, draft_repository, db, factory):
        expired = factory.make_draft(expires_at=factory.NOW - timedelta(days=1))
        db.rows = [self.draft_row(expired)]

        results = await draft_repository.list_expired_drafts(factory.NOW)

        assert "expires_at < $1" in db.last()[1]
        assert [d.draft_id for d in results] == [expired.draft_id]
