# src/bona/repositories/invitation_link_repository.py
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session
import logging
from opentelemetry import trace

from bona.auth.permissions import Role
from bona.models.audit_log import MemberJoinLog
from bona.models.invitation_link import ProjectInviteLink

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class InvitationLinkRepository:
    @staticmethod
    def get_by_token(db: Session, token: str, *, refresh: bool = False) -> Optional[ProjectInviteLink]:
        """
        Look up a link by its secret token.

        `refresh` overwrites any copy already held by the session with the
        row as it is in storage now.
        """
        with tracer.start_as_current_span("db.get_invite_link_by_token") as span:
            query = db.query(ProjectInviteLink).filter(ProjectInviteLink.secret_token == token)
            if refresh:
                query = query.populate_existing()
            link = query.first()
            span.set_attribute("found", link is not None)
        return link

    @staticmethod
    def get_active_for_project(db: Session, project_id: str) -> Optional[ProjectInviteLink]:
        with tracer.start_as_current_span("db.get_active_invite_link") as span:
            span.set_attribute("project_id", project_id)
            return (
                db.query(ProjectInviteLink)
                .filter(
                    ProjectInviteLink.project_id == project_id,
                    ProjectInviteLink.is_active.is_(True),
                )
                .first()
            )

    @staticmethod
    def deactivate_all_for_project(db: Session, project_id: str, updated_by_user_id: str) -> int:
        """
        Deactivate every active link of a project. Returns the number of links
        deactivated. Does not commit.
        """
        with tracer.start_as_current_span("db.deactivate_invite_links") as span:
            span.set_attribute("project_id", project_id)
            result = db.execute(
                update(ProjectInviteLink)
                .where(
                    ProjectInviteLink.project_id == project_id,
                    ProjectInviteLink.is_active.is_(True),
                )
                .values(is_active=False, updated_by_user_id=updated_by_user_id)
                .execution_options(synchronize_session="fetch")
            )
            span.set_attribute("deactivated", result.rowcount)
        return result.rowcount

    @staticmethod
    def create(
        db: Session,
        *,
        project_id: str,
        secret_token: str,
        created_by_user_id: str,
        role: Role,
        max_uses: Optional[int],
        expires_at: Optional[datetime],
    ) -> ProjectInviteLink:
        with tracer.start_as_current_span("db.create_invite_link") as span:
            span.set_attribute("project_id", project_id)

            link = ProjectInviteLink(
                project_id=project_id,
                secret_token=secret_token,
                created_by_user_id=created_by_user_id,
                role=role.value,
                max_uses=max_uses,
                current_uses=0,
                expires_at=expires_at,
                is_active=True,
            )
            db.add(link)
            db.flush()
        return link

    @staticmethod
    def claim_use(db: Session, link_id: UUID, now: datetime) -> bool:
        """
        Atomically consume one use of a link if, and only if, it is still usable.

        The usability check and the increment run as a single conditional
        UPDATE, so concurrent claims can never push current_uses past
        max_uses. Returns False when the row no longer qualifies; the caller
        must re-read the link to find out why.
        """
        with tracer.start_as_current_span("db.claim_invite_link_use") as span:
            span.set_attribute("invite_link_id", str(link_id))
            result = db.execute(
                update(ProjectInviteLink)
                .where(
                    ProjectInviteLink.id == link_id,
                    ProjectInviteLink.is_active.is_(True),
                    or_(
                        ProjectInviteLink.expires_at.is_(None),
                        ProjectInviteLink.expires_at > now,
                    ),
                    or_(
                        ProjectInviteLink.max_uses.is_(None),
                        ProjectInviteLink.current_uses < ProjectInviteLink.max_uses,
                    ),
                )
                .values(current_uses=ProjectInviteLink.current_uses + 1)
                .execution_options(synchronize_session=False)
            )
            claimed = result.rowcount == 1
            span.set_attribute("claimed", claimed)
        return claimed

    @staticmethod
    def list_for_project(db: Session, project_id: str) -> list[ProjectInviteLink]:
        """All links of a project, active or not, newest first."""
        with tracer.start_as_current_span("db.list_invite_links") as span:
            span.set_attribute("project_id", project_id)
            return (
                db.query(ProjectInviteLink)
                .filter(ProjectInviteLink.project_id == project_id)
                .order_by(ProjectInviteLink.created_at.desc())
                .all()
            )

    @staticmethod
    def join_counts(db: Session, project_id: str) -> dict[UUID, tuple[int, int]]:
        """
        Per-link join totals for a project: {link_id: (joins, unique_joiners)}.
        """
        with tracer.start_as_current_span("db.invite_link_join_counts") as span:
            span.set_attribute("project_id", project_id)
            rows = (
                db.query(
                    MemberJoinLog.invite_link_id,
                    func.count(MemberJoinLog.id),
                    func.count(func.distinct(MemberJoinLog.user_id)),
                )
                .filter(
                    MemberJoinLog.project_id == project_id,
                    MemberJoinLog.invite_link_id.is_not(None),
                )
                .group_by(MemberJoinLog.invite_link_id)
                .all()
            )
        return {link_id: (joins, unique) for link_id, joins, unique in rows}
