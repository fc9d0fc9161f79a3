"""
Invitation service - admission control for projects.

A project is either closed (no active link) or open (one active invitation
link). Owners open and close admissions; anyone holding the link's secret
token can preview the project and join it while the link is usable.

Usage accounting is done with a conditional UPDATE on the link row, so the
number of users admitted never exceeds the link's remaining budget, however
many acceptances run at once.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
import math
import os
import secrets
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bona.auth.permissions import Role
from bona.errors import (
    InsufficientPermissionsError,
    InvalidInvitationOptionsError,
    InvalidTokenError,
    InvitationDeactivatedError,
    InvitationExhaustedError,
    InvitationExpiredError,
)
from bona.metrics import (
    admissions_closed_total,
    admissions_opened_total,
    invitation_rejections_total,
    invitations_accepted_total,
)
from bona.models.enums import JoinMethod
from bona.models.invitation_link import ProjectInviteLink
from bona.models.project_member import ProjectMember
from bona.repositories.audit_log_repository import AuditLogRepository
from bona.repositories.invitation_link_repository import InvitationLinkRepository
from bona.repositories.membership_repository import MembershipRepository
from bona.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

# Roles an invitation link may grant
INVITABLE_ROLES = (Role.MEMBER, Role.VIEWER)

TOKEN_BYTES = 32
RECENT_JOIN_WINDOW_DAYS = 30

# Tries for open_admissions when the active link slot is taken concurrently
OPEN_ATTEMPTS = 2


@dataclass
class AcceptResult:
    membership: ProjectMember
    is_existing_member: bool


@dataclass
class InvitationLinkStats:
    link: ProjectInviteLink
    total_joins: int
    unique_joiners: int
    avg_joins_per_day: float


@dataclass
class AdmissionStatus:
    is_open: bool
    active_link: Optional[ProjectInviteLink]
    join_url: Optional[str]


def generate_secret_token() -> str:
    """Unguessable URL-safe bearer token (256 bits of entropy)."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def build_join_url(token: str) -> str:
    base_url = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
    return f"{base_url}/join/{token}"


class InvitationService:
    """Service for invitation links and admission control."""

    def __init__(self, db: Session):
        self.db = db

    # ==================== Admission control ====================

    def _lock_owner(self, project_id: str, user_id: str, action: str) -> None:
        """
        Require the requester to be the project owner, holding a row lock on
        the owner's membership until the transaction ends. Opening and
        closing admissions for one project therefore never overlap.
        """
        member = MembershipRepository.get(self.db, project_id, user_id, for_update=True)
        if member is None or member.role_enum != Role.OWNER:
            logger.warning(f"User {user_id} tried to {action} for {project_id} without owner role")
            raise InsufficientPermissionsError(f"Only project owners can {action}")

    def open_admissions(
        self,
        project_id: str,
        requested_by_user_id: str,
        max_uses: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        role: Role = Role.MEMBER,
    ) -> ProjectInviteLink:
        """
        Open admissions by creating a fresh invitation link.

        Any link that is still active for the project is deactivated first.

        Args:
            project_id: Project ID
            requested_by_user_id: Must be the project owner
            max_uses: Maximum number of joins (None for unbounded)
            expires_at: Expiration time (None for never)
            role: Role granted to joiners, MEMBER or VIEWER

        Returns:
            The new active ProjectInviteLink

        Raises:
            InsufficientPermissionsError: Requester is not the owner
            InvalidInvitationOptionsError: Bad role or max_uses
        """
        role = Role(role)
        if role not in INVITABLE_ROLES:
            raise InvalidInvitationOptionsError(
                f"Invitation links can only grant {', '.join(r.value for r in INVITABLE_ROLES)}"
            )
        if max_uses is not None and max_uses < 1:
            raise InvalidInvitationOptionsError("max_uses must be at least 1")

        for attempt in range(OPEN_ATTEMPTS):
            try:
                self._lock_owner(project_id, requested_by_user_id, "open admissions")

                deactivated = InvitationLinkRepository.deactivate_all_for_project(
                    self.db, project_id, requested_by_user_id
                )
                link = InvitationLinkRepository.create(
                    self.db,
                    project_id=project_id,
                    secret_token=generate_secret_token(),
                    created_by_user_id=requested_by_user_id,
                    role=role,
                    max_uses=max_uses,
                    expires_at=as_utc(expires_at),
                )
                self.db.commit()
                break
            except IntegrityError:
                # A link activated after our deactivation took the project's active slot
                self.db.rollback()
                if attempt == OPEN_ATTEMPTS - 1:
                    raise
                logger.warning(f"Active link conflict while opening admissions for {project_id}; retrying")
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(link)
        admissions_opened_total.inc()
        logger.info(
            f"Opened admissions for {project_id} (link {link.id}, role={role.value}, "
            f"max_uses={max_uses}, expires_at={expires_at}); deactivated {deactivated} previous link(s)"
        )
        return link

    def close_admissions(self, project_id: str, requested_by_user_id: str) -> None:
        """
        Close admissions by deactivating the active link. Closing a project
        that is already closed succeeds without changes.

        Raises:
            InsufficientPermissionsError: Requester is not the owner
        """
        try:
            self._lock_owner(project_id, requested_by_user_id, "close admissions")
            deactivated = InvitationLinkRepository.deactivate_all_for_project(
                self.db, project_id, requested_by_user_id
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if deactivated:
            admissions_closed_total.inc()
        logger.info(f"Closed admissions for {project_id}; deactivated {deactivated} link(s)")

    def get_active_invitation_link(self, project_id: str) -> Optional[ProjectInviteLink]:
        """The project's active link, if it can still be used."""
        link = InvitationLinkRepository.get_active_for_project(self.db, project_id)
        if link is None or not link.can_be_used():
            return None
        return link

    def get_admission_status(self, project_id: str) -> AdmissionStatus:
        link = self.get_active_invitation_link(project_id)
        return AdmissionStatus(
            is_open=link is not None,
            active_link=link,
            join_url=build_join_url(link.secret_token) if link else None,
        )

    # ==================== Redemption ====================

    @staticmethod
    def _ensure_usable(link: Optional[ProjectInviteLink], now: datetime) -> ProjectInviteLink:
        if link is None:
            invitation_rejections_total.labels(reason="invalid_token").inc()
            raise InvalidTokenError("Invalid invitation token")
        if not link.is_active:
            invitation_rejections_total.labels(reason="deactivated").inc()
            raise InvitationDeactivatedError("This invitation link has been deactivated")
        if link.is_expired(now):
            invitation_rejections_total.labels(reason="expired").inc()
            raise InvitationExpiredError("This invitation link has expired")
        if link.is_usage_limit_reached:
            invitation_rejections_total.labels(reason="exhausted").inc()
            raise InvitationExhaustedError("This invitation link has reached its usage limit")
        return link

    def validate_token(self, token: str) -> ProjectInviteLink:
        """
        Resolve a token to a usable link without changing anything.

        Raises:
            InvalidTokenError, InvitationDeactivatedError,
            InvitationExpiredError, InvitationExhaustedError
        """
        link = InvitationLinkRepository.get_by_token(self.db, token)
        return self._ensure_usable(link, utc_now())

    def accept_invitation(
        self,
        token: str,
        user_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AcceptResult:
        """
        Join a project through an invitation link.

        An existing member gets their membership back with
        is_existing_member=True; the link's usage count and the join log are
        left alone.

        For a new member, claiming one use of the link, creating the
        membership and writing the join record happen in one transaction.

        Raises:
            InvalidTokenError, InvitationDeactivatedError,
            InvitationExpiredError, InvitationExhaustedError,
            AuditWriteFailedError
        """
        try:
            now = utc_now()
            link = self._ensure_usable(InvitationLinkRepository.get_by_token(self.db, token), now)
            project_id = link.project_id

            existing = MembershipRepository.get(self.db, project_id, user_id)
            if existing:
                self.db.commit()
                invitations_accepted_total.labels(outcome="existing_member").inc()
                logger.info(f"User {user_id} re-entered {project_id} through an invitation link")
                return AcceptResult(membership=existing, is_existing_member=True)

            if not InvitationLinkRepository.claim_use(self.db, link.id, now):
                # Lost the race; find out which condition no longer holds
                fresh = InvitationLinkRepository.get_by_token(self.db, token, refresh=True)
                self._ensure_usable(fresh, now)
                invitation_rejections_total.labels(reason="exhausted").inc()
                raise InvitationExhaustedError("This invitation link has reached its usage limit")

            role = Role(link.role)
            member = MembershipRepository.create(
                self.db,
                project_id=project_id,
                user_id=user_id,
                role=role,
            )
            AuditLogRepository.append_join(
                self.db,
                project_id=project_id,
                user_id=user_id,
                role=role,
                join_method=JoinMethod.INVITATION,
                invite_link_id=link.id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            self.db.commit()
        except IntegrityError:
            # Same user joined concurrently; the rollback also returns the claimed use
            self.db.rollback()
            existing = MembershipRepository.get(self.db, project_id, user_id)
            if existing is None:
                raise
            invitations_accepted_total.labels(outcome="existing_member").inc()
            return AcceptResult(membership=existing, is_existing_member=True)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(member)
        invitations_accepted_total.labels(outcome="joined").inc()
        logger.info(f"User {user_id} joined {project_id} as {role.value} via link {link.id}")
        return AcceptResult(membership=member, is_existing_member=False)

    # ==================== Statistics ====================

    def get_invitation_stats(
        self,
        project_id: str,
        now: Optional[datetime] = None,
    ) -> List[InvitationLinkStats]:
        """
        Every link of a project (including deactivated ones), newest first,
        with join totals from the join log.
        """
        now = now or utc_now()
        links = InvitationLinkRepository.list_for_project(self.db, project_id)
        counts = InvitationLinkRepository.join_counts(self.db, project_id)

        stats = []
        for link in links:
            total_joins, unique_joiners = counts.get(link.id, (0, 0))
            if total_joins:
                age = now - as_utc(link.created_at)
                days = max(1, math.ceil(age / timedelta(days=1)))
                avg_per_day = total_joins / days
            else:
                avg_per_day = 0.0
            stats.append(
                InvitationLinkStats(
                    link=link,
                    total_joins=total_joins,
                    unique_joiners=unique_joiners,
                    avg_joins_per_day=avg_per_day,
                )
            )
        return stats

    def get_invitation_summary(self, project_id: str, now: Optional[datetime] = None) -> dict:
        """Project-wide totals over all invitation links."""
        now = now or utc_now()
        stats = self.get_invitation_stats(project_id, now=now)
        recent_joins = AuditLogRepository.list_joins(
            self.db,
            project_id,
            limit=None,
            since=now - timedelta(days=RECENT_JOIN_WINDOW_DAYS),
        )
        return {
            "total_links": len(stats),
            "active_links": sum(1 for s in stats if s.link.is_active),
            "total_uses": sum(s.link.current_uses for s in stats),
            "total_joins": sum(s.total_joins for s in stats),
            "unique_joiners": AuditLogRepository.count_distinct_invitation_joiners(self.db, project_id),
            "recent_joins": sum(1 for j in recent_joins if j.invite_link_id is not None),
        }
