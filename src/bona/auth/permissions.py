"""
Permission definitions and role-based access control for projects.

This module defines:
- The ordered project roles
- All project permissions
- Role -> Permission mappings
- Helper functions to rank and compare roles and check permissions

Roles (highest to lowest privilege):
- owner: Full project control, opens/closes admissions, deletes the project
- admin: Manages members below admin, views audit trail and invite stats
- member: Uploads files and takes part in project chat
- viewer: Read-only access to the project
"""
from enum import Enum
from typing import Set


class Role(str, Enum):
    """Project roles in order of privilege (highest first)."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Permission(str, Enum):
    """All project-scoped permissions."""

    # Read permissions (all roles have these)
    READ_PROJECT = "read:project"
    READ_FILES = "read:files"
    READ_MESSAGES = "read:messages"
    READ_MEMBERS = "read:members"

    # Contribution (member+)
    UPLOAD_FILE = "upload:file"
    EDIT_FILE = "edit:file"
    POST_MESSAGE = "post:message"

    # Member management (admin+)
    INVITE_MEMBER = "invite:member"
    REMOVE_MEMBER = "remove:member"
    CHANGE_MEMBER_ROLE = "change:member_role"
    READ_AUDIT_TRAIL = "read:audit_trail"
    READ_INVITATION_STATS = "read:invitation_stats"
    UPDATE_PROJECT = "update:project"

    # Project control (owner only)
    MANAGE_ADMISSIONS = "manage:admissions"
    DELETE_PROJECT = "delete:project"
    TRANSFER_OWNERSHIP = "transfer:ownership"


# Role hierarchy for comparison
ROLE_HIERARCHY = {
    Role.OWNER: 3,
    Role.ADMIN: 2,
    Role.MEMBER: 1,
    Role.VIEWER: 0,
}


_VIEWER_PERMISSIONS: Set[Permission] = {
    Permission.READ_PROJECT,
    Permission.READ_FILES,
    Permission.READ_MESSAGES,
    Permission.READ_MEMBERS,
}

_MEMBER_PERMISSIONS: Set[Permission] = _VIEWER_PERMISSIONS | {
    Permission.UPLOAD_FILE,
    Permission.EDIT_FILE,
    Permission.POST_MESSAGE,
}

_ADMIN_PERMISSIONS: Set[Permission] = _MEMBER_PERMISSIONS | {
    Permission.INVITE_MEMBER,
    Permission.REMOVE_MEMBER,
    Permission.CHANGE_MEMBER_ROLE,
    Permission.READ_AUDIT_TRAIL,
    Permission.READ_INVITATION_STATS,
    Permission.UPDATE_PROJECT,
}

_OWNER_PERMISSIONS: Set[Permission] = _ADMIN_PERMISSIONS | {
    Permission.MANAGE_ADMISSIONS,
    Permission.DELETE_PROJECT,
    Permission.TRANSFER_OWNERSHIP,
}

# Define which permissions each role has
ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.VIEWER: frozenset(_VIEWER_PERMISSIONS),
    Role.MEMBER: frozenset(_MEMBER_PERMISSIONS),
    Role.ADMIN: frozenset(_ADMIN_PERMISSIONS),
    Role.OWNER: frozenset(_OWNER_PERMISSIONS),
}


def _coerce_role(role: str | Role | None) -> Role | None:
    if role is None or isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        # Unknown role has no standing
        return None


def rank(role: str | Role) -> int:
    """
    Numeric privilege of a role, strictly increasing with privilege.

    Raises:
        ValueError: If role is not a known project role
    """
    return ROLE_HIERARCHY[Role(role)]


def is_role_at_least(role: str | Role | None, minimum_role: str | Role) -> bool:
    """
    Check if a role is at least as privileged as the minimum role.

    Args:
        role: User's role (None when the user has no membership)
        minimum_role: Minimum required role

    Returns:
        True if role meets or exceeds minimum
    """
    role = _coerce_role(role)
    if role is None:
        return False
    return ROLE_HIERARCHY[role] >= rank(minimum_role)


def outranks(role: str | Role | None, other: str | Role) -> bool:
    """Check if a role is strictly more privileged than another."""
    role = _coerce_role(role)
    if role is None:
        return False
    return ROLE_HIERARCHY[role] > rank(other)


def has_permission(role: str | Role | None, permission: Permission) -> bool:
    """
    Check if a role has a specific permission.

    Args:
        role: User's role (string or Role enum)
        permission: Permission to check

    Returns:
        True if role has the permission, False otherwise
    """
    role = _coerce_role(role)
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS[role]


def get_role_permissions(role: str | Role | None) -> frozenset[Permission]:
    """Get all permissions for a role (empty for no role)."""
    role = _coerce_role(role)
    if role is None:
        return frozenset()
    return ROLE_PERMISSIONS[role]
