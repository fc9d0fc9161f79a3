"""
Role-Based Access Control (RBAC) dependencies for project routes.

Provides FastAPI dependencies for:
- Requiring a minimum project role
- Requiring a specific project permission
- Getting the caller's role in the project of the current request

Every route using these takes a `project_id` path parameter.

Usage:
    @router.get("/projects/{project_id}/audit")
    async def get_audit(
        project_id: str,
        ctx: ProjectContext = Depends(require_project_permission(Permission.READ_AUDIT_TRAIL)),
        ...
    ):
        ...
"""
import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from bona.auth.clerk import get_current_user_id
from bona.auth.permissions import Permission, Role, has_permission, is_role_at_least
from bona.db.database import get_db
from bona.services.permission_service import PermissionService

logger = logging.getLogger(__name__)


class ProjectContext:
    """
    The caller, the project being addressed and the caller's role in it.
    """
    def __init__(self, user_id: str, project_id: str, role: Optional[Role]):
        self.user_id = user_id
        self.project_id = project_id
        self.role = role

    def has_permission(self, permission: Permission) -> bool:
        return has_permission(self.role, permission)

    def is_at_least(self, minimum_role: Role) -> bool:
        return is_role_at_least(self.role, minimum_role)

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER


async def get_project_context(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ProjectContext:
    """Caller's context for the project; role is None for non-members."""
    role = PermissionService(db).get_user_role(project_id, user_id)
    return ProjectContext(user_id=user_id, project_id=project_id, role=role)


def require_project_role(minimum_role: Role) -> Callable:
    """
    FastAPI dependency that requires at least a specific role in the project.

    Args:
        minimum_role: Minimum required role

    Returns:
        Dependency returning the ProjectContext, raising 403 otherwise
    """
    async def check_role(ctx: ProjectContext = Depends(get_project_context)) -> ProjectContext:
        if ctx.role is None:
            logger.warning(f"User {ctx.user_id} has no role in project {ctx.project_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this project",
            )

        if not ctx.is_at_least(minimum_role):
            logger.warning(
                f"Role check failed: user={ctx.user_id} role={ctx.role.value} "
                f"minimum={minimum_role.value} project={ctx.project_id}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient privileges: {minimum_role.value} role or higher required",
            )
        return ctx

    return check_role


def require_project_permission(permission: Permission) -> Callable:
    """
    FastAPI dependency that requires a specific permission in the project.

    Returns:
        Dependency returning the ProjectContext, raising 403 otherwise
    """
    async def check_permission(ctx: ProjectContext = Depends(get_project_context)) -> ProjectContext:
        if ctx.role is None:
            logger.warning(f"User {ctx.user_id} has no role in project {ctx.project_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this project",
            )

        if not ctx.has_permission(permission):
            logger.warning(
                f"Permission denied: user={ctx.user_id} role={ctx.role.value} "
                f"permission={permission.value} project={ctx.project_id}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Required permission: {permission.value}",
            )
        return ctx

    return check_permission
