from bona.db.database import Base

# Import all models so Alembic can discover them
from .project_member import ProjectMember
from .invitation_link import ProjectInviteLink
from .audit_log import MemberJoinLog, RoleChangeLog
from .enums import JoinMethod

__all__ = [
    "Base",
    "ProjectMember",
    "ProjectInviteLink",
    "MemberJoinLog",
    "RoleChangeLog",
    "JoinMethod",
]
