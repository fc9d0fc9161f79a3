"""
ProjectInviteLink model - bearer-token links that admit new project members.

A project has at most one active link at a time. Links are never deleted,
only deactivated, so join statistics survive.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, CheckConstraint, text
from sqlalchemy.dialects.postgresql import UUID

from bona.auth.permissions import Role
from bona.db.database import Base
from bona.models.enums import project_role_enum
from bona.models.mixins import AuditMixin
from bona.utils.datetime_utils import as_utc, utc_now


class ProjectInviteLink(Base, AuditMixin):
    """
    Invitation link for a project ("open admissions").

    `created_by_user_id` (from AuditMixin) is the owner who opened admissions.
    """
    __tablename__ = "project_invite_links"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, nullable=False)

    project_id = Column(String(255), nullable=False, index=True)

    # Secret bearer token, the only lookup key for redemption
    secret_token = Column(String(255), nullable=False, unique=True, index=True)

    # Role granted to users joining through this link
    role = Column(
        project_role_enum,
        nullable=False,
        default=Role.MEMBER.value,
        server_default=Role.MEMBER.value,
    )

    # None means unbounded
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0, server_default="0")

    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    __table_args__ = (
        CheckConstraint("max_uses IS NULL OR max_uses >= 1", name="ck_invite_links_max_uses_positive"),
        CheckConstraint(
            "max_uses IS NULL OR current_uses <= max_uses",
            name="ck_invite_links_uses_within_budget",
        ),
        # At most one active link per project
        Index(
            "uq_invite_links_one_active_per_project",
            "project_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the link is past its expiration time."""
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) <= (now or utc_now())

    @property
    def is_usage_limit_reached(self) -> bool:
        return self.max_uses is not None and self.current_uses >= self.max_uses

    @property
    def remaining_uses(self) -> Optional[int]:
        if self.max_uses is None:
            return None
        return max(self.max_uses - self.current_uses, 0)

    def can_be_used(self, now: Optional[datetime] = None) -> bool:
        return bool(self.is_active) and not self.is_expired(now) and not self.is_usage_limit_reached

    def __repr__(self):
        return (
            f"<ProjectInviteLink(project={self.project_id}, active={self.is_active}, "
            f"uses={self.current_uses}/{self.max_uses})>"
        )
