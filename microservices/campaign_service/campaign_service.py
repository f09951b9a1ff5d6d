"""
Campaign Service Business Logic

Write operations over campaigns and drafts. Every mutation follows the
same sequence: resolve the acting user, load the target, check the
authorization predicate, validate the resulting state, write, publish.
Load, checks and write of an existing campaign happen under its row
lock, so concurrent mutations of one campaign serialize. Events go out
after the write commits.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from . import permissions
from .assembly import (
    assemble_from_import,
    assemble_from_request,
    assemble_from_wizard,
    finalize_assembly,
)
from .events import (
    CampaignCreatedEventData,
    CampaignDeletedEventData,
    CampaignEventPublisher,
    CampaignEventType,
    CampaignStatusChangedEventData,
    CampaignUpdatedEventData,
    ClientEventData,
    DraftEventData,
    DraftsCleanedEventData,
    TeamMemberEventData,
)
from .helpers import calculate_draft_expiry, is_draft_expired
from .models import (
    AssemblySource,
    Campaign,
    CampaignClient,
    CampaignCreateRequest,
    CampaignDraft,
    CampaignImportRequest,
    CampaignStatus,
    CampaignUpdateRequest,
    CampaignWizardCreateRequest,
    CleanupResult,
    CurrentUser,
    DraftSaveRequest,
    TeamMember,
    TeamRole,
)
from .protocols import (
    CampaignConflictError,
    CampaignNotFoundError,
    CampaignPermissionError,
    CampaignRepositoryProtocol,
    CampaignValidationError,
    DraftNotFoundError,
    DraftRepositoryProtocol,
    EventBusProtocol,
    InvalidCampaignStateError,
    NotAuthenticatedError,
    OrganizationClientProtocol,
    OrganizationNotFoundError,
    TeamMemberNotFoundError,
)
from .validation import (
    validate_campaign_data,
    validate_draft,
    validate_publication_readiness,
)

logger = logging.getLogger(__name__)


def require_user(user: Optional[CurrentUser]) -> CurrentUser:
    """Fail when no acting user was resolved"""
    if user is None or not user.user_id:
        raise NotAuthenticatedError("Authentication required")
    return user


class CampaignService:
    """Campaign service business logic layer"""

    # Valid state transitions
    VALID_TRANSITIONS = {
        CampaignStatus.DRAFT: [CampaignStatus.ACTIVE],
        CampaignStatus.ACTIVE: [CampaignStatus.PAUSED, CampaignStatus.COMPLETED],
        CampaignStatus.PAUSED: [CampaignStatus.ACTIVE, CampaignStatus.COMPLETED],
        CampaignStatus.COMPLETED: [],  # Terminal state
    }

    def __init__(
        self,
        repository: CampaignRepositoryProtocol,
        draft_repository: DraftRepositoryProtocol,
        event_bus: Optional[EventBusProtocol] = None,
        organization_client: Optional[OrganizationClientProtocol] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.draft_repository = draft_repository
        self.event_bus = event_bus
        self.organization_client = organization_client
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.event_publisher = CampaignEventPublisher(event_bus)

    # ====================
    # Campaign Creation
    # ====================

    async def create_campaign(
        self, request: CampaignCreateRequest, user: CurrentUser
    ) -> Campaign:
        """
        Create a campaign directly.

        The campaign starts in draft status with the creator as owner;
        currency and priority default to USD and medium.
        """
        user = require_user(user)
        await self._ensure_organization(request.organization_id)

        campaign = finalize_assembly(assemble_from_request(request, user, now=self.clock()))
        campaign = await self.repository.create_campaign(campaign)

        await self._publish_created(CampaignEventType.CREATED, campaign, user, AssemblySource.DIRECT)
        logger.info(f"Campaign created: {campaign.campaign_id} by {user.user_id}")
        return campaign

    async def create_campaign_from_wizard(
        self, request: CampaignWizardCreateRequest, user: CurrentUser
    ) -> Campaign:
        """
        Create an active campaign from completed wizard data.

        Drafts of the same user and organization whose stored campaign
        name matches are removed afterwards.
        """
        user = require_user(user)
        await self._ensure_organization(request.organization_id)

        assembly = assemble_from_wizard(
            request.campaign_data, request.organization_id, user, now=self.clock()
        )
        campaign = finalize_assembly(assembly)
        campaign = await self.repository.create_campaign(campaign)

        await self._delete_matching_drafts(campaign, user)
        await self._publish_created(CampaignEventType.CREATED, campaign, user, AssemblySource.WIZARD)
        logger.info(f"Campaign created from wizard: {campaign.campaign_id} by {user.user_id}")
        return campaign

    async def import_campaign(
        self, request: CampaignImportRequest, user: CurrentUser
    ) -> Campaign:
        """
        Import a campaign from an external platform.

        (platform, external_id) may be imported only once.
        """
        user = require_user(user)
        await self._ensure_organization(request.organization_id)

        source = request.campaign_data.import_source
        existing = await self.repository.find_by_import_source(source.platform, source.external_id)
        if existing:
            raise CampaignConflictError(
                f"Campaign already imported from {source.platform} (ID: {source.external_id})"
            )

        assembly = assemble_from_import(
            request.campaign_data, request.organization_id, user, now=self.clock()
        )
        campaign = finalize_assembly(assembly)
        campaign = await self.repository.create_campaign(campaign)

        await self._publish_created(CampaignEventType.IMPORTED, campaign, user, AssemblySource.IMPORT)
        logger.info(
            f"Campaign imported: {campaign.campaign_id} from {source.platform}/{source.external_id}"
        )
        return campaign

    # ====================
    # Campaign Updates
    # ====================

    async def update_campaign(
        self, campaign_id: str, request: CampaignUpdateRequest, user: CurrentUser
    ) -> Campaign:
        """
        Merge a partial update over the stored campaign.

        The merged result is validated as a whole; only the supplied
        fields and updated_at are written.
        """
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_edit, user, campaign, "update this campaign")

            updates = request.model_dump(exclude_unset=True, exclude_none=True)
            if not updates:
                return campaign

            merged = campaign.model_dump()
            merged.update(updates)
            self._validate(validate_campaign_data(merged).errors)

            updates["updated_at"] = self.clock()
            updated = self._found(await self.repository.update_campaign(campaign_id, updates))

        changed = sorted(k for k in updates if k != "updated_at")
        await self.event_publisher.publish(
            CampaignEventType.UPDATED,
            CampaignUpdatedEventData(
                **self._event_base(updated, user),
                name=updated.name,
                changed_fields=changed,
            ),
            subject=campaign_id,
        )
        logger.info(f"Campaign updated: {campaign_id} fields={changed}")
        return updated

    async def update_campaign_status(
        self, campaign_id: str, status: CampaignStatus, user: CurrentUser
    ) -> Campaign:
        """
        Move a campaign through its lifecycle.

        draft -> active is a publication and gets the readiness check.
        """
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_edit, user, campaign, "change this campaign's status")

            target = CampaignStatus(status)
            if target not in self.VALID_TRANSITIONS.get(campaign.status, []):
                raise InvalidCampaignStateError(
                    f"Invalid status transition from {campaign.status.value} to {target.value}",
                    campaign.status,
                )

            if campaign.status == CampaignStatus.DRAFT and target == CampaignStatus.ACTIVE:
                updated = await self._publish(campaign, user)
                event_type = CampaignEventType.PUBLISHED
            else:
                updated = await self._transition(campaign, target)
                event_type = CampaignEventType.STATUS_CHANGED

        await self._announce_transition(event_type, campaign, updated, user)
        return updated

    async def publish_campaign(self, campaign_id: str, user: CurrentUser) -> Campaign:
        """Publish a draft campaign after the publication readiness check"""
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            updated = await self._publish(campaign, user)

        await self._announce_transition(CampaignEventType.PUBLISHED, campaign, updated, user)
        return updated

    async def delete_campaign(self, campaign_id: str, user: CurrentUser) -> bool:
        """Delete a campaign that is not active"""
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_delete, user, campaign, "delete this campaign")

            if campaign.status == CampaignStatus.ACTIVE:
                raise InvalidCampaignStateError(
                    "Cannot delete active campaigns. Please pause or complete the campaign first.",
                    campaign.status,
                )

            deleted = await self.repository.delete_campaign(campaign_id)

        await self.event_publisher.publish(
            CampaignEventType.DELETED,
            CampaignDeletedEventData(**self._event_base(campaign, user), name=campaign.name),
            subject=campaign_id,
        )
        logger.info(f"Campaign deleted: {campaign_id} by {user.user_id}")
        return deleted

    # ====================
    # Team & Client Management
    # ====================

    async def add_team_member(
        self, campaign_id: str, member_id: str, role: TeamRole, user: CurrentUser
    ) -> Campaign:
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_manage_team, user, campaign, "manage this campaign's team")

            if member_id == campaign.created_by:
                raise CampaignValidationError(["Campaign creator is automatically an owner"])
            if campaign.find_team_member(member_id):
                raise CampaignConflictError("User is already a team member")
            if campaign.is_client(member_id):
                raise CampaignConflictError("User is already assigned as a client")

            member = TeamMember(user_id=member_id, role=TeamRole(role), assigned_at=self.clock())
            team = campaign.team_members + [member]
            updated = await self._write_membership(campaign, team_members=team)

        await self.event_publisher.publish(
            CampaignEventType.TEAM_MEMBER_ADDED,
            TeamMemberEventData(
                **self._event_base(updated, user), user_id=member_id, role=member.role.value
            ),
            subject=campaign_id,
        )
        logger.info(f"Team member {member_id} added to {campaign_id} as {member.role.value}")
        return updated

    async def remove_team_member(
        self, campaign_id: str, member_id: str, user: CurrentUser
    ) -> Campaign:
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_manage_team, user, campaign, "manage this campaign's team")

            if member_id == campaign.created_by:
                raise CampaignValidationError(["Cannot remove campaign creator"])
            member = campaign.find_team_member(member_id)
            if member is None:
                raise TeamMemberNotFoundError("User is not a team member")
            if member.role == TeamRole.OWNER and self._owner_count(campaign) <= 1:
                raise CampaignValidationError(["Cannot remove the last owner from campaign"])

            team = [m for m in campaign.team_members if m.user_id != member_id]
            updated = await self._write_membership(campaign, team_members=team)

        # Removed member still hears about it
        await self.event_publisher.publish(
            CampaignEventType.TEAM_MEMBER_REMOVED,
            TeamMemberEventData(
                **self._event_base(campaign, user), user_id=member_id, old_role=member.role.value
            ),
            subject=campaign_id,
        )
        logger.info(f"Team member {member_id} removed from {campaign_id}")
        return updated

    async def update_team_member_role(
        self, campaign_id: str, member_id: str, role: TeamRole, user: CurrentUser
    ) -> Campaign:
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_manage_team, user, campaign, "manage this campaign's team")

            if member_id == campaign.created_by:
                raise CampaignValidationError(["Cannot change role of campaign creator"])
            member = campaign.find_team_member(member_id)
            if member is None:
                raise TeamMemberNotFoundError("User is not a team member")

            new_role = TeamRole(role)
            if (
                member.role == TeamRole.OWNER
                and new_role != TeamRole.OWNER
                and self._owner_count(campaign) <= 1
            ):
                raise CampaignValidationError(["Cannot remove the last owner from campaign"])

            team = [
                m.model_copy(update={"role": new_role}) if m.user_id == member_id else m
                for m in campaign.team_members
            ]
            updated = await self._write_membership(campaign, team_members=team)

        await self.event_publisher.publish(
            CampaignEventType.TEAM_MEMBER_ROLE_CHANGED,
            TeamMemberEventData(
                **self._event_base(updated, user),
                user_id=member_id,
                role=new_role.value,
                old_role=member.role.value,
            ),
            subject=campaign_id,
        )
        logger.info(
            f"Team member {member_id} on {campaign_id}: {member.role.value} -> {new_role.value}"
        )
        return updated

    async def add_client(
        self, campaign_id: str, client_id: str, user: CurrentUser
    ) -> Campaign:
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_manage_clients, user, campaign, "manage this campaign's clients")

            if client_id == campaign.created_by:
                raise CampaignValidationError(["Campaign creator cannot be assigned as client"])
            if campaign.is_client(client_id):
                raise CampaignConflictError("User is already a client")
            if campaign.find_team_member(client_id):
                raise CampaignConflictError("User is already a team member")

            clients = campaign.clients + [CampaignClient(user_id=client_id, assigned_at=self.clock())]
            updated = await self._write_membership(campaign, clients=clients)

        await self.event_publisher.publish(
            CampaignEventType.CLIENT_ADDED,
            ClientEventData(**self._event_base(updated, user), user_id=client_id),
            subject=campaign_id,
        )
        logger.info(f"Client {client_id} added to {campaign_id}")
        return updated

    async def remove_client(
        self, campaign_id: str, client_id: str, user: CurrentUser
    ) -> Campaign:
        user = require_user(user)
        async with self.repository.lock_campaign(campaign_id) as campaign:
            campaign = self._found(campaign)
            self._authorize(permissions.can_manage_clients, user, campaign, "manage this campaign's clients")

            if not campaign.is_client(client_id):
                raise TeamMemberNotFoundError("User is not a client")

            clients = [c for c in campaign.clients if c.user_id != client_id]
            updated = await self._write_membership(campaign, clients=clients)

        await self.event_publisher.publish(
            CampaignEventType.CLIENT_REMOVED,
            ClientEventData(**self._event_base(updated, user), user_id=client_id),
            subject=campaign_id,
        )
        logger.info(f"Client {client_id} removed from {campaign_id}")
        return updated

    # ====================
    # Drafts
    # ====================

    async def save_draft(self, request: DraftSaveRequest, user: CurrentUser) -> CampaignDraft:
        """
        Insert a draft, or update the caller's draft in place.

        expires_at is computed once on insert and never touched again.
        """
        user = require_user(user)
        now = self.clock()

        if request.draft_id:
            draft = await self._load_draft(request.draft_id, user, now)
            self._validate(validate_draft(request.name, request.step, request.data).errors)

            saved = await self.draft_repository.update_draft(
                draft.draft_id,
                {"name": request.name, "data": request.data, "step": request.step, "updated_at": now},
            )
            if saved is None:
                raise DraftNotFoundError("Draft not found")
            created = False
        else:
            await self._ensure_organization(request.organization_id)
            self._validate(validate_draft(request.name, request.step, request.data).errors)

            draft = CampaignDraft(
                name=request.name,
                data=request.data,
                step=request.step,
                created_by=user.user_id,
                organization_id=request.organization_id,
                created_at=now,
                updated_at=now,
                expires_at=calculate_draft_expiry(now),
            )
            saved = await self.draft_repository.create_draft(draft)
            created = True

        await self.event_publisher.publish(
            CampaignEventType.DRAFT_SAVED,
            DraftEventData(
                draft_id=saved.draft_id,
                organization_id=saved.organization_id,
                actor_id=user.user_id,
                name=saved.name,
                step=saved.step,
                created=created,
            ),
            subject=saved.draft_id,
        )
        logger.info(f"Draft {'created' if created else 'updated'}: {saved.draft_id} step={saved.step}")
        return saved

    async def delete_draft(self, draft_id: str, user: CurrentUser) -> bool:
        user = require_user(user)
        draft = await self._load_draft(draft_id, user, self.clock())

        deleted = await self.draft_repository.delete_draft(draft_id)

        await self.event_publisher.publish(
            CampaignEventType.DRAFT_DELETED,
            DraftEventData(
                draft_id=draft_id,
                organization_id=draft.organization_id,
                actor_id=user.user_id,
                name=draft.name,
                step=draft.step,
            ),
            subject=draft_id,
        )
        logger.info(f"Draft deleted: {draft_id}")
        return deleted

    async def cleanup_expired_drafts(
        self,
        now: Optional[datetime] = None,
        triggered_by: Optional[str] = None,
    ) -> CleanupResult:
        """
        Delete every draft whose expires_at has passed.

        Internal operation without authorization. Safe to run from
        several triggers at once: a draft already removed by another
        sweep is skipped, not counted, and never an error.
        """
        now = now or self.clock()
        expired = await self.draft_repository.list_expired_drafts(now)

        deleted_ids: List[str] = []
        for draft in expired:
            if await self.draft_repository.delete_draft(draft.draft_id):
                deleted_ids.append(draft.draft_id)

        result = CleanupResult(deleted_count=len(deleted_ids), deleted_ids=deleted_ids)
        if deleted_ids:
            await self.event_publisher.publish(
                CampaignEventType.DRAFTS_CLEANED,
                DraftsCleanedEventData(
                    deleted_count=result.deleted_count,
                    deleted_ids=deleted_ids,
                    triggered_by=triggered_by,
                ),
            )
            logger.info(f"Cleaned up {result.deleted_count} expired drafts")
        else:
            logger.debug("No expired drafts to clean up")
        return result

    async def manual_cleanup_expired_drafts(self, user: CurrentUser) -> CleanupResult:
        """
        User-triggered sweep.

        Any authenticated user may run it and it covers every
        organization, the same as the scheduled sweep.
        """
        user = require_user(user)
        return await self.cleanup_expired_drafts(triggered_by=user.user_id)

    # ====================
    # Internal helpers
    # ====================

    async def _ensure_organization(self, organization_id: str) -> None:
        if not self.organization_client:
            return
        if not await self.organization_client.organization_exists(organization_id):
            raise OrganizationNotFoundError("Organization not found")

    @staticmethod
    def _found(campaign: Optional[Campaign]) -> Campaign:
        if campaign is None:
            raise CampaignNotFoundError("Campaign not found")
        return campaign

    async def _load_draft(self, draft_id: str, user: CurrentUser, now: datetime) -> CampaignDraft:
        """Only the creator sees a draft, and an expired draft is gone"""
        draft = await self.draft_repository.get_draft(draft_id)
        if draft is None or is_draft_expired(draft.expires_at, now):
            raise DraftNotFoundError("Draft not found")
        if draft.created_by != user.user_id:
            raise CampaignPermissionError("Not authorized to access this draft")
        return draft

    @staticmethod
    def _authorize(predicate, user: CurrentUser, campaign: Campaign, action: str) -> None:
        if not predicate(user.user_id, campaign):
            logger.debug(f"Denied {predicate.__name__} for {user.user_id} on {campaign.campaign_id}")
            raise CampaignPermissionError(f"Not authorized to {action}")

    @staticmethod
    def _validate(errors: List[str]) -> None:
        if errors:
            raise CampaignValidationError(errors)

    @staticmethod
    def _owner_count(campaign: Campaign) -> int:
        return sum(1 for m in campaign.team_members if m.role == TeamRole.OWNER)

    async def _write_membership(
        self,
        campaign: Campaign,
        team_members: Optional[List[TeamMember]] = None,
        clients: Optional[List[CampaignClient]] = None,
    ) -> Campaign:
        """Validate and persist a membership change"""
        team_members = campaign.team_members if team_members is None else team_members
        clients = campaign.clients if clients is None else clients

        report = validate_campaign_data(
            {
                "team_members": [m.model_dump() for m in team_members],
                "clients": [c.model_dump() for c in clients],
                "created_by": campaign.created_by,
            },
            partial=True,
        )
        self._validate(report.errors)

        updates: Dict[str, Any] = {"updated_at": self.clock()}
        if team_members is not campaign.team_members:
            updates["team_members"] = [m.model_dump() for m in team_members]
        if clients is not campaign.clients:
            updates["clients"] = [c.model_dump() for c in clients]

        return self._found(await self.repository.update_campaign(campaign.campaign_id, updates))

    async def _publish(self, campaign: Campaign, user: CurrentUser) -> Campaign:
        """Readiness-checked draft -> active; caller holds the campaign lock"""
        self._authorize(permissions.can_publish, user, campaign, "publish this campaign")

        if campaign.status != CampaignStatus.DRAFT:
            raise InvalidCampaignStateError(
                "Only draft campaigns can be published", campaign.status
            )

        self._validate(validate_publication_readiness(campaign).errors)
        return await self._transition(campaign, CampaignStatus.ACTIVE)

    async def _transition(self, campaign: Campaign, target: CampaignStatus) -> Campaign:
        return self._found(
            await self.repository.update_campaign(
                campaign.campaign_id, {"status": target, "updated_at": self.clock()}
            )
        )

    async def _announce_transition(
        self,
        event_type: CampaignEventType,
        campaign: Campaign,
        updated: Campaign,
        user: CurrentUser,
    ) -> None:
        target = updated.status
        await self.event_publisher.publish(
            event_type,
            CampaignStatusChangedEventData(
                **self._event_base(updated, user),
                name=updated.name,
                old_status=campaign.status.value,
                new_status=target.value,
            ),
            subject=campaign.campaign_id,
        )
        logger.info(
            f"Campaign {campaign.campaign_id}: {campaign.status.value} -> {target.value}"
        )

    async def _delete_matching_drafts(self, campaign: Campaign, user: CurrentUser) -> None:
        drafts = await self.draft_repository.list_drafts(user.user_id, campaign.organization_id)
        for draft in drafts:
            if draft.campaign_name == campaign.name:
                await self.draft_repository.delete_draft(draft.draft_id)
                logger.debug(f"Removed draft {draft.draft_id} promoted to {campaign.campaign_id}")

    @staticmethod
    def _event_base(campaign: Campaign, user: CurrentUser) -> Dict[str, Any]:
        return {
            "campaign_id": campaign.campaign_id,
            "organization_id": campaign.organization_id,
            "actor_id": user.user_id,
            "recipients": campaign.notification_recipients(exclude_user_id=user.user_id),
        }

    async def _publish_created(
        self,
        event_type: CampaignEventType,
        campaign: Campaign,
        user: CurrentUser,
        source: AssemblySource,
    ) -> None:
        import_source = campaign.import_source
        await self.event_publisher.publish(
            event_type,
            CampaignCreatedEventData(
                **self._event_base(campaign, user),
                name=campaign.name,
                status=campaign.status.value,
                source=source.value,
                import_platform=import_source.platform if import_source else None,
                import_external_id=import_source.external_id if import_source else None,
            ),
            subject=campaign.campaign_id,
        )


__all__ = ["CampaignService", "require_user"]
