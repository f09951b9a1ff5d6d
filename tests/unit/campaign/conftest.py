"""
Unit Test Fixtures for Campaign Service

Provides fixtures for unit testing of pure campaign logic.
Uses CampaignTestDataFactory from the data contract.
"""

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.campaign.data_contract import (
    CampaignBuilder,
    CampaignTestDataFactory,
    TeamRole,
)


@pytest.fixture
def factory():
    """Provide CampaignTestDataFactory"""
    return CampaignTestDataFactory


@pytest.fixture
def creator_id():
    return CampaignTestDataFactory.make_user_id()


@pytest.fixture
def team(creator_id):
    """User IDs for every role on one campaign"""
    return {
        "creator": creator_id,
        "owner": CampaignTestDataFactory.make_user_id(),
        "editor": CampaignTestDataFactory.make_user_id(),
        "viewer": CampaignTestDataFactory.make_user_id(),
        "client": CampaignTestDataFactory.make_user_id(),
        "stranger": CampaignTestDataFactory.make_user_id(),
    }


@pytest.fixture
def team_campaign(team):
    """Campaign with one user per role"""
    return (
        CampaignBuilder(team["creator"])
        .with_member(team["owner"], TeamRole.OWNER)
        .with_member(team["editor"], TeamRole.EDITOR)
        .with_member(team["viewer"], TeamRole.VIEWER)
        .with_client(team["client"])
        .build()
    )
