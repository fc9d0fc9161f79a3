"""
Permission service - decides what a principal may do in a project.

Every check re-reads the caller's membership; nothing is cached between
calls because roles can change at any time.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy.orm import Session

from bona.auth.permissions import Permission, Role, has_permission, is_role_at_least
from bona.repositories.membership_repository import MembershipRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionSummary:
    """Capabilities of a principal in one project, derived from its role alone."""
    role: Optional[Role]
    can_view_project: bool
    can_upload_files: bool
    can_post_messages: bool
    can_invite_members: bool
    can_remove_members: bool
    can_manage_roles: bool
    can_manage_admissions: bool
    can_view_audit_trail: bool
    can_delete_project: bool

    @classmethod
    def for_role(cls, role: Optional[Role]) -> "PermissionSummary":
        return cls(
            role=role,
            can_view_project=has_permission(role, Permission.READ_PROJECT),
            can_upload_files=has_permission(role, Permission.UPLOAD_FILE),
            can_post_messages=has_permission(role, Permission.POST_MESSAGE),
            can_invite_members=has_permission(role, Permission.INVITE_MEMBER),
            can_remove_members=has_permission(role, Permission.REMOVE_MEMBER),
            can_manage_roles=has_permission(role, Permission.CHANGE_MEMBER_ROLE),
            can_manage_admissions=has_permission(role, Permission.MANAGE_ADMISSIONS),
            can_view_audit_trail=has_permission(role, Permission.READ_AUDIT_TRAIL),
            can_delete_project=has_permission(role, Permission.DELETE_PROJECT),
        )


class PermissionService:
    """Service for project permission checks."""

    def __init__(self, db: Session):
        self.db = db

    def get_user_role(self, project_id: str, user_id: str) -> Optional[Role]:
        """
        Get a user's role in a project.

        Args:
            project_id: Project ID
            user_id: Principal id from the identity provider

        Returns:
            Role or None when the user is not a member
        """
        return MembershipRepository.get_role(self.db, project_id, user_id)

    def check_permission(self, project_id: str, user_id: str, required_role: Role) -> bool:
        """
        Check whether a user holds at least `required_role` in a project.

        A missing membership is the ordinary "no access" answer, not an error.
        """
        role = self.get_user_role(project_id, user_id)
        allowed = is_role_at_least(role, required_role)
        if not allowed:
            logger.debug(
                f"Role check failed: user={user_id} role={role.value if role else None} "
                f"required={Role(required_role).value} project={project_id}"
            )
        return allowed

    def get_permission_summary(self, project_id: str, user_id: str) -> PermissionSummary:
        """
        Capability summary for a user, computed from a single role lookup.
        """
        return PermissionSummary.for_role(self.get_user_role(project_id, user_id))
