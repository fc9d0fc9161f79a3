"""
API routes for project membership.

Endpoints:
- GET /projects/{project_id}/members - List members with the caller's role and permissions
- POST /projects/{project_id}/members - Add a user directly
- PATCH /projects/{project_id}/members/{member_user_id}/role - Change a member's role
- DELETE /projects/{project_id}/members/{member_user_id} - Remove a member
- GET /projects/{project_id}/permissions - Caller's permission summary
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from bona.auth.clerk import get_current_user_id
from bona.auth.permissions import Permission, Role
from bona.auth.rbac import ProjectContext, require_project_permission, require_project_role
from bona.db.database import get_db
from bona.models.audit_log import REASON_MAX_LENGTH
from bona.services.membership_service import MembershipService
from bona.services.permission_service import PermissionService

router = APIRouter(prefix="/projects", tags=["members"])


# ==================== Request/Response Models ====================

class AddMemberRequest(BaseModel):
    """Request to add a user to the project."""
    user_id: str = Field(..., min_length=1)
    role: Role = Role.MEMBER

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_2abc",
                "role": "member"
            }
        }


class ChangeRoleRequest(BaseModel):
    """Request to change a member's role."""
    role: Role
    reason: Optional[str] = Field(None, max_length=REASON_MAX_LENGTH)

    class Config:
        json_schema_extra = {
            "example": {
                "role": "admin",
                "reason": "Leads the frontend team"
            }
        }


class ProjectMemberResponse(BaseModel):
    id: UUID
    project_id: str
    user_id: str
    role: str
    joined_at: Optional[datetime]

    class Config:
        from_attributes = True


class PermissionSummaryResponse(BaseModel):
    role: Optional[str]
    can_view_project: bool
    can_upload_files: bool
    can_post_messages: bool
    can_invite_members: bool
    can_remove_members: bool
    can_manage_roles: bool
    can_manage_admissions: bool
    can_view_audit_trail: bool
    can_delete_project: bool


class MemberListResponse(BaseModel):
    members: List[ProjectMemberResponse]
    current_user_role: str
    permissions: PermissionSummaryResponse


def _summary_response(summary) -> PermissionSummaryResponse:
    return PermissionSummaryResponse(
        role=summary.role.value if summary.role else None,
        can_view_project=summary.can_view_project,
        can_upload_files=summary.can_upload_files,
        can_post_messages=summary.can_post_messages,
        can_invite_members=summary.can_invite_members,
        can_remove_members=summary.can_remove_members,
        can_manage_roles=summary.can_manage_roles,
        can_manage_admissions=summary.can_manage_admissions,
        can_view_audit_trail=summary.can_view_audit_trail,
        can_delete_project=summary.can_delete_project,
    )


# ==================== Endpoints ====================

@router.get("/{project_id}/members", response_model=MemberListResponse)
def list_project_members(
    project_id: str,
    ctx: ProjectContext = Depends(require_project_role(Role.VIEWER)),
    db: Session = Depends(get_db)
):
    """
    List all members of a project, owner first.

    Any member may list the project's members.
    """
    members = MembershipService(db).list_members(project_id)
    summary = PermissionService(db).get_permission_summary(project_id, ctx.user_id)
    return MemberListResponse(
        members=[ProjectMemberResponse.model_validate(m) for m in members],
        current_user_role=ctx.role.value,
        permissions=_summary_response(summary),
    )


@router.post(
    "/{project_id}/members",
    response_model=ProjectMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_project_member(
    project_id: str,
    request: AddMemberRequest,
    ctx: ProjectContext = Depends(require_project_permission(Permission.INVITE_MEMBER)),
    db: Session = Depends(get_db)
):
    """
    Add a user to the project directly.

    Admins and the owner can add users with a role below their own.
    """
    return MembershipService(db).add(
        project_id,
        request.user_id,
        role=request.role,
        requested_by_user_id=ctx.user_id,
    )


@router.patch("/{project_id}/members/{member_user_id}/role", response_model=ProjectMemberResponse)
def change_member_role(
    project_id: str,
    member_user_id: str,
    request: ChangeRoleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Change a member's role.

    The caller must outrank both the member's current role and the new role.
    The owner's role cannot be changed.
    """
    return MembershipService(db).change_role(
        project_id,
        member_user_id,
        request.role,
        requested_by_user_id=user_id,
        reason=request.reason,
    )


@router.delete("/{project_id}/members/{member_user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_project_member(
    project_id: str,
    member_user_id: str,
    reason: Optional[str] = Query(None, max_length=REASON_MAX_LENGTH),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Remove a member from the project.

    The caller must outrank the member. The owner cannot be removed.
    """
    MembershipService(db).remove(
        project_id,
        member_user_id,
        requested_by_user_id=user_id,
        reason=reason,
    )


@router.get("/{project_id}/permissions", response_model=PermissionSummaryResponse)
def get_my_permissions(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    What the caller may do in the project. Non-members get an all-false summary.
    """
    summary = PermissionService(db).get_permission_summary(project_id, user_id)
    return _summary_response(summary)
