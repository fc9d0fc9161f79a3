"""
Audit log models - append-only join and role-change records.

Rows are written by AuditLogRepository inside the transaction of the
mutation they describe and are never updated afterwards.
"""
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID

from bona.db.database import Base
from bona.models.enums import join_method_enum, project_role_enum
from bona.utils.datetime_utils import utc_now

REASON_MAX_LENGTH = 500


class MemberJoinLog(Base):
    """One user joining one project, directly or through an invitation link."""
    __tablename__ = "member_join_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, nullable=False)
    project_id = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=False)
    role = Column(project_role_enum, nullable=False)
    join_method = Column(join_method_enum, nullable=False)

    # Source link for invitation joins
    invite_link_id = Column(
        UUID(as_uuid=True),
        ForeignKey("project_invite_links.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # Best-effort requester metadata
    ip_address = Column(String(255), nullable=True)
    user_agent = Column(String, nullable=True)

    joined_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_member_join_logs_project_joined", "project_id", "joined_at"),
        Index("ix_member_join_logs_user_joined", "user_id", "joined_at"),
    )

    def __repr__(self):
        return f"<MemberJoinLog(user={self.user_id}, project={self.project_id}, method={self.join_method})>"


class RoleChangeLog(Base):
    """One committed role change of a project member."""
    __tablename__ = "role_change_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, nullable=False)
    project_id = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=False)
    changed_by_user_id = Column(String(255), nullable=False, index=True)
    old_role = Column(project_role_enum, nullable=False)
    new_role = Column(project_role_enum, nullable=False)
    reason = Column(String(REASON_MAX_LENGTH), nullable=True)

    changed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_role_change_logs_project_changed", "project_id", "changed_at"),
        Index("ix_role_change_logs_user_changed", "user_id", "changed_at"),
    )

    def __repr__(self):
        return f"<RoleChangeLog(user={self.user_id}, {self.old_role}->{self.new_role})>"
