"""
Membership service for managing who belongs to a project and with which role.

Handles:
- Direct member addition
- Role changes (with role-change audit records)
- Member removal
- Member listings

Every mutation re-validates the requester's role inside its own transaction
and commits the state change together with its audit record.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from bona.auth.permissions import Permission, Role, has_permission, outranks
from bona.errors import (
    AlreadyMemberError,
    CannotModifyOwnerError,
    CannotRemoveOwnerError,
    InsufficientPermissionsError,
    NotAMemberError,
    OwnerAlreadyExistsError,
)
from bona.metrics import members_added_total, members_removed_total, role_changes_total
from bona.models.audit_log import REASON_MAX_LENGTH
from bona.models.enums import JoinMethod
from bona.models.project_member import ProjectMember
from bona.repositories.audit_log_repository import AuditLogRepository
from bona.repositories.membership_repository import MembershipRepository
from bona.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class MembershipService:
    """Service for project memberships and roles."""

    def __init__(self, db: Session):
        self.db = db

    # ==================== Queries ====================

    def get_member(self, project_id: str, user_id: str) -> Optional[ProjectMember]:
        return MembershipRepository.get(self.db, project_id, user_id)

    def list_members(self, project_id: str) -> List[ProjectMember]:
        """
        Get all members of a project, owner first, then by role and join date.
        """
        return MembershipRepository.list_for_project(self.db, project_id)

    def get_owner(self, project_id: str) -> Optional[ProjectMember]:
        return MembershipRepository.get_owner(self.db, project_id)

    def get_admins(self, project_id: str) -> List[ProjectMember]:
        """Owner and admins of a project."""
        return MembershipRepository.list_for_project(
            self.db, project_id, roles=[Role.OWNER, Role.ADMIN]
        )

    def count_members_by_role(self, project_id: str) -> dict[str, int]:
        counts = MembershipRepository.count_by_role(self.db, project_id)
        return {role.value: counts.get(role.value, 0) for role in Role}

    # ==================== Mutations ====================

    def _require_outranking(
        self,
        project_id: str,
        requester_id: str,
        permission: Permission,
        *roles: Role,
    ) -> Role:
        """
        Require that the requester holds `permission` and strictly outranks
        every role in `roles`. Reads the requester's current role.
        """
        requester_role = MembershipRepository.get_role(self.db, project_id, requester_id)
        if not has_permission(requester_role, permission) or not all(
            outranks(requester_role, r) for r in roles
        ):
            logger.warning(
                f"Permission denied: user={requester_id} "
                f"role={requester_role.value if requester_role else None} "
                f"permission={permission.value} roles={[r.value for r in roles]} project={project_id}"
            )
            raise InsufficientPermissionsError(
                f"Insufficient permissions: {permission.value} requires a role above "
                f"{', '.join(r.value for r in roles)}"
            )
        return requester_role

    def add(
        self,
        project_id: str,
        user_id: str,
        role: Role = Role.MEMBER,
        requested_by_user_id: Optional[str] = None,
    ) -> ProjectMember:
        """
        Add a user directly to a project.

        Args:
            project_id: Project ID
            user_id: User to add
            role: Role to grant
            requested_by_user_id: Member performing the add. None for trusted
                system adds, e.g. registering the owner of a new project.

        Returns:
            The new ProjectMember

        Raises:
            InsufficientPermissionsError: Requester may not grant this role
            AlreadyMemberError: User already belongs to the project
            OwnerAlreadyExistsError: Adding a second owner
        """
        role = Role(role)
        try:
            if requested_by_user_id is not None:
                self._require_outranking(
                    project_id, requested_by_user_id, Permission.INVITE_MEMBER, role
                )

            if MembershipRepository.get(self.db, project_id, user_id):
                raise AlreadyMemberError(f"User {user_id} is already a member of this project")

            if role == Role.OWNER and MembershipRepository.get_owner(self.db, project_id):
                raise OwnerAlreadyExistsError("Project can only have one owner")

            member = MembershipRepository.create(
                self.db,
                project_id=project_id,
                user_id=user_id,
                role=role,
                created_by_user_id=requested_by_user_id,
            )
            AuditLogRepository.append_join(
                self.db,
                project_id=project_id,
                user_id=user_id,
                role=role,
                join_method=JoinMethod.DIRECT_ADD,
            )
            self.db.commit()
        except IntegrityError as e:
            # A concurrent add won the race on one of the unique indexes
            self.db.rollback()
            if MembershipRepository.get(self.db, project_id, user_id):
                raise AlreadyMemberError(f"User {user_id} is already a member of this project") from e
            raise OwnerAlreadyExistsError("Project can only have one owner") from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(member)
        members_added_total.inc()
        logger.info(f"Added user {user_id} to project {project_id} as {role.value}")
        return member

    def change_role(
        self,
        project_id: str,
        target_user_id: str,
        new_role: Role,
        requested_by_user_id: str,
        reason: Optional[str] = None,
    ) -> ProjectMember:
        """
        Change a member's role.

        The requester must be allowed to manage roles and must outrank both
        the member's current role and the role being assigned. The change and
        its RoleChangeLog are committed together. A reason longer than
        REASON_MAX_LENGTH is truncated.

        Raises:
            NotAMemberError: Target has no membership
            CannotModifyOwnerError: Target is the project owner
            InsufficientPermissionsError: Requester does not outrank target/new role
        """
        new_role = Role(new_role)
        if reason is not None:
            reason = reason[:REASON_MAX_LENGTH]
        try:
            member = MembershipRepository.get(
                self.db, project_id, target_user_id, for_update=True
            )
            if not member:
                raise NotAMemberError(f"User {target_user_id} is not a member of this project")

            old_role = member.role_enum
            if old_role == Role.OWNER:
                raise CannotModifyOwnerError("Cannot change the project owner's role")

            self._require_outranking(
                project_id, requested_by_user_id, Permission.CHANGE_MEMBER_ROLE, old_role, new_role
            )

            if old_role == new_role:
                self.db.commit()
                logger.info(f"Role for {target_user_id} in {project_id} already {new_role.value}")
                return member

            member.role = new_role.value
            member.updated_at = utc_now()
            member.updated_by_user_id = requested_by_user_id
            self.db.flush()

            AuditLogRepository.append_role_change(
                self.db,
                project_id=project_id,
                user_id=target_user_id,
                old_role=old_role,
                new_role=new_role,
                changed_by_user_id=requested_by_user_id,
                reason=reason,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(member)
        role_changes_total.labels(old_role=old_role.value, new_role=new_role.value).inc()
        logger.info(
            f"Updated role for {target_user_id} in {project_id}: "
            f"{old_role.value} -> {new_role.value} (by {requested_by_user_id})"
        )
        return member

    def remove(
        self,
        project_id: str,
        target_user_id: str,
        requested_by_user_id: str,
        reason: Optional[str] = None,
    ) -> ProjectMember:
        """
        Remove a member from a project.

        Removal writes no audit record; it is only logged.

        Returns:
            A detached copy of the removed membership

        Raises:
            NotAMemberError: Target has no membership
            CannotRemoveOwnerError: Target is the project owner
            InsufficientPermissionsError: Requester does not outrank target
        """
        try:
            member = MembershipRepository.get(
                self.db, project_id, target_user_id, for_update=True
            )
            if not member:
                raise NotAMemberError(f"User {target_user_id} is not a member of this project")

            if member.role_enum == Role.OWNER:
                raise CannotRemoveOwnerError("Cannot remove the project owner")

            self._require_outranking(
                project_id, requested_by_user_id, Permission.REMOVE_MEMBER, member.role_enum
            )

            removed = ProjectMember(
                id=member.id,
                project_id=member.project_id,
                user_id=member.user_id,
                role=member.role,
                joined_at=member.joined_at,
                created_at=member.created_at,
                updated_at=member.updated_at,
                created_by_user_id=member.created_by_user_id,
                updated_by_user_id=requested_by_user_id,
            )
            MembershipRepository.delete(self.db, member)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        members_removed_total.inc()
        logger.info(
            f"Removed user {target_user_id} ({removed.role}) from {project_id} "
            f"by {requested_by_user_id}; reason={reason!r}"
        )
        return removed
