"""
Unit Tests for Campaign Authorization Predicates

Tests effective role resolution and the per-role action matrix.
"""

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.campaign_service import permissions
from tests.contracts.campaign.data_contract import (
    CampaignBuilder,
    EffectiveRole,
    TeamRole,
)


class TestEffectiveRole:
    """Creator wins over team role, team role over client"""

    def test_role_per_user(self, team, team_campaign):
        """Each fixture user resolves to their role"""
        expected = {
            "creator": EffectiveRole.CREATOR,
            "owner": EffectiveRole.OWNER,
            "editor": EffectiveRole.EDITOR,
            "viewer": EffectiveRole.VIEWER,
            "client": EffectiveRole.CLIENT,
            "stranger": None,
        }
        for key, role in expected.items():
            assert permissions.get_effective_role(team[key], team_campaign) == role

    def test_creator_without_team_entry_is_still_creator(self, creator_id):
        """Creator keeps full access even without an owner entry"""
        campaign = (
            CampaignBuilder(creator_id)
            .without_creator_membership()
            .with_member("usr_owner", TeamRole.OWNER)
            .build()
        )

        assert permissions.get_effective_role(creator_id, campaign) == EffectiveRole.CREATOR
        assert permissions.can_delete(creator_id, campaign)

    def test_missing_user_has_no_role(self, team_campaign):
        assert permissions.get_effective_role(None, team_campaign) is None
        assert permissions.get_effective_role("", team_campaign) is None
        assert not permissions.can_view(None, team_campaign)

    def test_works_on_plain_dicts(self, creator_id):
        """Predicates accept mapping-shaped campaigns"""
        campaign = {
            "created_by": creator_id,
            "team_members": [{"user_id": "usr_ed", "role": "editor"}],
            "clients": [{"user_id": "usr_cl"}],
        }

        assert permissions.get_effective_role("usr_ed", campaign) == EffectiveRole.EDITOR
        assert permissions.can_edit("usr_ed", campaign)
        assert permissions.is_client("usr_cl", campaign)


class TestPermissionMatrix:
    """Action matrix per effective role"""

    MATRIX = {
        # view, edit, delete, manage_team, manage_clients, publish
        "creator": (True, True, True, True, True, True),
        "owner": (True, True, True, True, True, True),
        "editor": (True, True, False, False, True, True),
        "viewer": (True, False, False, False, False, False),
        "client": (True, False, False, False, False, False),
        "stranger": (False, False, False, False, False, False),
    }

    @pytest.mark.parametrize("who", list(MATRIX))
    def test_matrix(self, who, team, team_campaign):
        """Every predicate agrees with the matrix"""
        # Given: A user with a specific role
        user_id = team[who]

        # When: Computing the permission matrix
        result = permissions.get_campaign_permissions(user_id, team_campaign)

        # Then: It matches the expected row
        assert (
            result.can_view,
            result.can_edit,
            result.can_delete,
            result.can_manage_team,
            result.can_manage_clients,
            result.can_publish,
        ) == self.MATRIX[who]

    def test_permissions_carry_role(self, team, team_campaign):
        result = permissions.get_campaign_permissions(team["editor"], team_campaign)
        assert result.role == EffectiveRole.EDITOR

    def test_stranger_has_no_role(self, team, team_campaign):
        result = permissions.get_campaign_permissions(team["stranger"], team_campaign)
        assert result.role is None


class TestTeamMembership:
    """is_team_member only counts explicit team entries"""

    def test_team_member_with_role_filter(self, team, team_campaign):
        assert permissions.is_team_member(team["editor"], team_campaign)
        assert permissions.is_team_member(team["editor"], team_campaign, TeamRole.EDITOR)
        assert not permissions.is_team_member(team["editor"], team_campaign, TeamRole.OWNER)

    def test_client_is_not_team_member(self, team, team_campaign):
        assert not permissions.is_team_member(team["client"], team_campaign)
        assert permissions.is_client(team["client"], team_campaign)

    def test_creator_is_member_through_owner_entry(self, team, team_campaign):
        assert permissions.is_team_member(team["creator"], team_campaign, TeamRole.OWNER)
        assert permissions.is_creator(team["creator"], team_campaign)
        assert not permissions.is_creator(team["owner"], team_campaign)
