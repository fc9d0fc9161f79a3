"""
ProjectMember model - tracks which users belong to which projects.

One row per (project, user). Role changes go through MembershipService,
never by editing the row directly.
"""
from sqlalchemy import Column, String, DateTime, Index, text
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4

from bona.auth.permissions import Role
from bona.db.database import Base
from bona.models.enums import project_role_enum
from bona.models.mixins import AuditMixin
from bona.utils.datetime_utils import utc_now


class ProjectMember(Base, AuditMixin):
    """
    A user's standing in a project.

    Each record represents one user's membership in one project.
    """
    __tablename__ = "project_members"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, nullable=False)

    project_id = Column(String(255), nullable=False, index=True)

    # Opaque principal id from the identity provider
    user_id = Column(String(255), nullable=False, index=True)

    role = Column(
        project_role_enum,
        nullable=False,
        default=Role.MEMBER.value,
        server_default=Role.MEMBER.value,
    )

    joined_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        # Unique constraint: one user can only be a member once per project
        Index("ix_project_members_project_user", "project_id", "user_id", unique=True),
        Index("ix_project_members_project_role", "project_id", "role"),
        # Exactly one owner per project
        Index(
            "uq_project_members_one_owner",
            "project_id",
            unique=True,
            postgresql_where=text("role = 'owner'"),
            sqlite_where=text("role = 'owner'"),
        ),
    )

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def __repr__(self):
        return f"<ProjectMember(user={self.user_id}, project={self.project_id}, role={self.role})>"
