"""
Authentication and authorization for Bona.

This module provides:
- Clerk JWT authentication (clerk.py)
- Project roles and permissions (permissions.py)
- RBAC dependencies for FastAPI routes (rbac.py, import it directly)

Usage:
    from bona.auth import get_current_user_id, Permission, Role, has_permission
    from bona.auth.rbac import require_project_role, require_project_permission
"""

# Re-export from clerk.py
from bona.auth.clerk import get_current_user_id

# Re-export from permissions.py
from bona.auth.permissions import (
    Permission,
    Role,
    ROLE_HIERARCHY,
    ROLE_PERMISSIONS,
    rank,
    has_permission,
    get_role_permissions,
    is_role_at_least,
    outranks,
)

__all__ = [
    # Authentication
    "get_current_user_id",

    # Permissions
    "Permission",
    "Role",
    "ROLE_HIERARCHY",
    "ROLE_PERMISSIONS",
    "rank",
    "has_permission",
    "get_role_permissions",
    "is_role_at_least",
    "outranks",
]
