"""Database enum types shared by the membership, invitation and audit tables."""
import enum

from sqlalchemy.dialects.postgresql import ENUM

from bona.auth.permissions import Role


class JoinMethod(str, enum.Enum):
    """How a user became a member of a project."""
    DIRECT_ADD = "direct-add"
    INVITATION = "invitation"


# create_type=False: the Alembic migration owns the lifecycle of these types
project_role_enum = ENUM(
    *[r.value for r in Role],
    name="project_role_enum",
    create_type=False,
)

join_method_enum = ENUM(
    *[m.value for m in JoinMethod],
    name="join_method_enum",
    create_type=False,
)
