"""
Component Tests for the Campaign HTTP API

Drives the FastAPI app through TestClient with the module-level factory
replaced by real services over mock repositories.
"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.auth_dependencies import INTERNAL_SERVICE_SECRET
from microservices.campaign_service import main
from tests.contracts.campaign.data_contract import CampaignStatus


@pytest.fixture
def app_factory(campaign_service, query_service, mock_repository):
    fake = MagicMock()
    fake.service = campaign_service
    fake.query_service = query_service
    fake.repository = mock_repository
    fake.nats_client = None
    return fake


@pytest.fixture
def client(monkeypatch, app_factory):
    monkeypatch.setattr(main, "factory", app_factory)
    return TestClient(main.app, raise_server_exceptions=False)


def headers(user, organization_id=None):
    values = {"X-User-Id": user.user_id}
    if organization_id:
        values["X-Organization-Id"] = organization_id
    return values


INTERNAL_HEADERS = {
    "X-Internal-Service": "true",
    "X-Internal-Service-Secret": INTERNAL_SERVICE_SECRET,
}


class TestHealth:
    """Health endpoints"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["dependencies"] == {"postgres": "healthy", "nats": "not_configured"}

    def test_ready(self, client):
        response = client.get("/health/ready")
        assert response.json()["ready"] is True

    def test_live(self, client):
        assert client.get("/health/live").json()["alive"] is True

    def test_info_lists_routes(self, client):
        body = client.get("/api/v1/campaigns/info").json()
        assert int(body["route_count"]) == len(body["routes"].split(","))
        assert body["base_path"] == "/api/v1/campaigns"

    def test_service_not_initialized(self, monkeypatch, users):
        monkeypatch.setattr(main, "factory", None)
        client = TestClient(main.app, raise_server_exceptions=False)

        response = client.get("/api/v1/campaigns/mine", headers=headers(users["creator"]))

        assert response.status_code == 503
        assert response.json()["detail"] == "Service not initialized"


class TestCampaignEndpoints:
    """Campaign CRUD over HTTP"""

    def test_create(self, client, users, factory):
        request = factory.make_create_request()

        response = client.post(
            "/api/v1/campaigns", json=request.model_dump(mode="json"), headers=headers(users["creator"])
        )

        assert response.status_code == 201
        body = response.json()
        assert body["campaign"]["status"] == "draft"
        assert body["campaign"]["created_by"] == users["creator"].user_id

    def test_missing_identity(self, client, factory):
        request = factory.make_create_request()

        response = client.post("/api/v1/campaigns", json=request.model_dump(mode="json"))

        assert response.status_code == 401

    def test_validation_errors_listed(self, client, users, factory):
        request = factory.make_create_request(currency="XYZ")

        response = client.post(
            "/api/v1/campaigns", json=request.model_dump(mode="json"), headers=headers(users["creator"])
        )

        assert response.status_code == 422
        body = response.json()
        assert body["errors"] == ["Unsupported currency: XYZ"]
        assert "Unsupported currency: XYZ" in body["detail"]

    def test_unknown_organization(self, client, users, factory, mock_org_client):
        request = factory.make_create_request()
        mock_org_client.missing.add(request.organization_id)

        response = client.post(
            "/api/v1/campaigns", json=request.model_dump(mode="json"), headers=headers(users["creator"])
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Organization not found"

    def test_duplicate_import(self, client, users, factory):
        payload = factory.make_import_request(platform="facebook_ads", external_id="9").model_dump(mode="json")

        first = client.post("/api/v1/campaigns/import", json=payload, headers=headers(users["creator"]))
        second = client.post("/api/v1/campaigns/import", json=payload, headers=headers(users["creator"]))

        assert first.status_code == 201
        assert second.status_code == 409

    def test_wizard(self, client, users, factory):
        request = factory.make_wizard_request()

        response = client.post(
            "/api/v1/campaigns/wizard", json=request.model_dump(mode="json"), headers=headers(users["creator"])
        )

        assert response.status_code == 201
        assert response.json()["campaign"]["status"] == "active"

    def test_get_campaign(self, client, team_campaign, users):
        url = f"/api/v1/campaigns/{team_campaign.campaign_id}"

        assert client.get(url, headers=headers(users["viewer"])).status_code == 200
        assert client.get(url, headers=headers(users["stranger"])).status_code == 403
        missing = client.get("/api/v1/campaigns/cmp_missing", headers=headers(users["viewer"]))
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Campaign not found"

    def test_update(self, client, team_campaign, users):
        response = client.patch(
            f"/api/v1/campaigns/{team_campaign.campaign_id}",
            json={"name": "Renamed"},
            headers=headers(users["editor"]),
        )

        assert response.status_code == 200
        assert response.json()["campaign"]["name"] == "Renamed"

    def test_update_forbidden(self, client, team_campaign, users):
        response = client.patch(
            f"/api/v1/campaigns/{team_campaign.campaign_id}",
            json={"name": "Renamed"},
            headers=headers(users["viewer"]),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Not authorized to update this campaign"

    def test_publish_then_invalid_transition(self, client, team_campaign, users):
        base = f"/api/v1/campaigns/{team_campaign.campaign_id}"

        published = client.post(f"{base}/publish", headers=headers(users["owner"]))
        again = client.post(f"{base}/publish", headers=headers(users["owner"]))

        assert published.status_code == 200
        assert published.json()["campaign"]["status"] == "active"
        assert again.status_code == 409
        assert again.json()["current_status"] == "active"

    def test_status_update(self, client, mock_repository, team_campaign, users):
        mock_repository.add(team_campaign.model_copy(update={"status": CampaignStatus.ACTIVE}))

        response = client.put(
            f"/api/v1/campaigns/{team_campaign.campaign_id}/status",
            json={"status": "paused"},
            headers=headers(users["editor"]),
        )

        assert response.status_code == 200
        assert response.json()["campaign"]["status"] == "paused"

    def test_delete_active_conflicts(self, client, mock_repository, team_campaign, users):
        mock_repository.add(team_campaign.model_copy(update={"status": CampaignStatus.ACTIVE}))

        response = client.delete(
            f"/api/v1/campaigns/{team_campaign.campaign_id}", headers=headers(users["creator"])
        )

        assert response.status_code == 409

    def test_delete(self, client, team_campaign, users):
        response = client.delete(
            f"/api/v1/campaigns/{team_campaign.campaign_id}", headers=headers(users["creator"])
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "id": team_campaign.campaign_id,
            "message": "Campaign deleted",
        }

    def test_list_and_search(self, client, team_campaign, users):
        org_id = team_campaign.organization_id

        listed = client.get(
            "/api/v1/campaigns", params={"organization_id": org_id}, headers=headers(users["client"])
        )
        searched = client.get(
            "/api/v1/campaigns/search",
            params={"organization_id": org_id, "q": team_campaign.name.upper()},
            headers=headers(users["client"]),
        )
        stats = client.get(
            "/api/v1/campaigns/stats", params={"organization_id": org_id}, headers=headers(users["client"])
        )

        assert listed.json()["total"] == 1
        assert searched.json()["total"] == 1
        assert stats.json()["draft"] == 1

    def test_unhandled_error_is_500(self, client, app_factory, users):
        app_factory.query_service = MagicMock()
        app_factory.query_service.list_campaigns_by_creator = AsyncMock(side_effect=KeyError("boom"))

        response = client.get("/api/v1/campaigns/mine", headers=headers(users["creator"]))

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "type": "KeyError"}


class TestTeamEndpoints:
    """Membership over HTTP"""

    def test_add_member(self, client, team_campaign, users):
        response = client.post(
            f"/api/v1/campaigns/{team_campaign.campaign_id}/team",
            json={"user_id": "usr_new", "role": "viewer"},
            headers=headers(users["owner"]),
        )

        assert response.status_code == 201

    def test_remove_creator_rejected(self, client, team_campaign, users):
        response = client.delete(
            f"/api/v1/campaigns/{team_campaign.campaign_id}/team/{users['creator'].user_id}",
            headers=headers(users["owner"]),
        )

        assert response.status_code == 422
        assert response.json()["errors"] == ["Cannot remove campaign creator"]

    def test_permissions(self, client, team_campaign, users):
        response = client.get(
            f"/api/v1/campaigns/{team_campaign.campaign_id}/permissions",
            headers=headers(users["editor"]),
        )

        body = response.json()
        assert body["role"] == "editor"
        assert body["can_publish"] is True
        assert body["can_delete"] is False

    def test_team(self, client, team_campaign, users):
        response = client.get(
            f"/api/v1/campaigns/{team_campaign.campaign_id}/team", headers=headers(users["viewer"])
        )
        assert len(response.json()["team_members"]) == 4

    def test_add_existing_client_conflicts(self, client, team_campaign, users):
        response = client.post(
            f"/api/v1/campaigns/{team_campaign.campaign_id}/clients",
            json={"user_id": users["client"].user_id},
            headers=headers(users["owner"]),
        )
        assert response.status_code == 409


class TestDraftEndpoints:
    """Drafts over HTTP"""

    def test_save_get_delete(self, client, users, factory):
        request = factory.make_draft_request()
        user_headers = headers(users["creator"])

        saved = client.post("/api/v1/campaigns/drafts", json=request.model_dump(mode="json"), headers=user_headers)
        draft_id = saved.json()["draft"]["draft_id"]
        fetched = client.get(f"/api/v1/campaigns/drafts/{draft_id}", headers=user_headers)
        deleted = client.delete(f"/api/v1/campaigns/drafts/{draft_id}", headers=user_headers)
        gone = client.get(f"/api/v1/campaigns/drafts/{draft_id}", headers=user_headers)

        assert saved.json()["message"] == "Draft saved"
        assert fetched.json()["draft"]["name"] == request.name
        assert deleted.json()["success"] is True
        assert gone.status_code == 404

    def test_other_users_draft_forbidden(self, client, mock_draft_repository, users, factory):
        draft = mock_draft_repository.add(factory.make_draft())

        response = client.get(f"/api/v1/campaigns/drafts/{draft.draft_id}", headers=headers(users["creator"]))

        assert response.status_code == 403

    def test_list_drafts(self, client, mock_draft_repository, users, factory):
        mock_draft_repository.add(factory.make_draft(created_by=users["creator"].user_id))

        response = client.get("/api/v1/campaigns/drafts", headers=headers(users["creator"]))

        assert response.json()["total"] == 1

    def test_manual_cleanup(self, client, mock_draft_repository, users, factory, clock):
        mock_draft_repository.add(factory.make_draft(expires_at=clock.now - timedelta(days=1)))

        response = client.post("/api/v1/campaigns/drafts/cleanup", headers=headers(users["stranger"]))

        assert response.status_code == 200
        assert response.json()["deleted_count"] == 1


class TestInternalEndpoints:
    """Service-to-service routes"""

    def test_cleanup_requires_internal_credentials(self, client, users):
        response = client.post("/api/v1/campaigns/internal/drafts/cleanup", headers=headers(users["creator"]))
        assert response.status_code == 401

    def test_wrong_secret(self, client):
        response = client.post(
            "/api/v1/campaigns/internal/drafts/cleanup",
            headers={"X-Internal-Service": "true", "X-Internal-Service-Secret": "nope"},
        )
        assert response.status_code == 401

    def test_internal_cleanup_and_listing(self, client, mock_draft_repository, factory, clock):
        expired = mock_draft_repository.add(factory.make_draft(expires_at=clock.now - timedelta(days=1)))

        listed = client.get("/api/v1/campaigns/internal/drafts/expired", headers=INTERNAL_HEADERS)
        cleaned = client.post("/api/v1/campaigns/internal/drafts/cleanup", headers=INTERNAL_HEADERS)

        assert [d["draft_id"] for d in listed.json()["drafts"]] == [expired.draft_id]
        assert cleaned.json()["deleted_ids"] == [expired.draft_id]


class TestIdentityVerification:
    """Optional account-service lookup of the acting user"""

    def test_unknown_account_rejected(self, client, monkeypatch, app_factory, users):
        monkeypatch.setattr(main.settings, "verify_identity", True)
        app_factory.account_client.get_user_profile = AsyncMock(return_value=None)

        response = client.get("/api/v1/campaigns/mine", headers=headers(users["creator"]))

        assert response.status_code == 401

    def test_known_account_passes(self, client, monkeypatch, app_factory, users):
        monkeypatch.setattr(main.settings, "verify_identity", True)
        app_factory.account_client.get_user_profile = AsyncMock(
            return_value={"user_id": users["creator"].user_id, "email": "c@example.com", "name": "C"}
        )

        response = client.get("/api/v1/campaigns/mine", headers=headers(users["creator"]))

        assert response.status_code == 200
        app_factory.account_client.get_user_profile.assert_awaited_once_with(users["creator"].user_id)
