"""
API routes for admission control (project invitation links).

Endpoints:
- GET /projects/{project_id}/admission-control - Current admission status
- POST /projects/{project_id}/admission-control - Open admissions with a fresh link
- DELETE /projects/{project_id}/admission-control - Close admissions
- GET /projects/{project_id}/invite-stats - Usage statistics of all links
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from bona.auth.clerk import get_current_user_id
from bona.auth.permissions import Permission, Role
from bona.auth.rbac import ProjectContext, require_project_permission
from bona.db.database import get_db
from bona.models.invitation_link import ProjectInviteLink
from bona.services.invitation_service import InvitationService, build_join_url

router = APIRouter(prefix="/projects", tags=["admission-control"])


# ==================== Request/Response Models ====================

class OpenAdmissionsRequest(BaseModel):
    """Options for a new invitation link. Omitted limits mean unbounded."""
    max_uses: Optional[int] = None
    expires_at: Optional[datetime] = None
    role: Role = Role.MEMBER

    class Config:
        json_schema_extra = {
            "example": {
                "max_uses": 25,
                "expires_at": "2026-12-31T23:59:59Z",
                "role": "member"
            }
        }


class InviteLinkResponse(BaseModel):
    id: UUID
    role: str
    max_uses: Optional[int]
    current_uses: int
    remaining_uses: Optional[int]
    expires_at: Optional[datetime]
    is_active: bool
    created_at: Optional[datetime]
    created_by_user_id: Optional[str]

    class Config:
        from_attributes = True


class ActiveInviteLinkResponse(InviteLinkResponse):
    secret_token: str
    join_url: str


class AdmissionStatusResponse(BaseModel):
    is_open: bool
    active_link: Optional[ActiveInviteLinkResponse] = None


class InviteLinkStatsResponse(BaseModel):
    link: InviteLinkResponse
    total_joins: int
    unique_joiners: int
    avg_joins_per_day: float


class InviteStatsResponse(BaseModel):
    links: List[InviteLinkStatsResponse]
    summary: dict


def _active_link_response(link: ProjectInviteLink) -> ActiveInviteLinkResponse:
    return ActiveInviteLinkResponse(
        id=link.id,
        role=link.role,
        max_uses=link.max_uses,
        current_uses=link.current_uses,
        remaining_uses=link.remaining_uses,
        expires_at=link.expires_at,
        is_active=link.is_active,
        created_at=link.created_at,
        created_by_user_id=link.created_by_user_id,
        secret_token=link.secret_token,
        join_url=build_join_url(link.secret_token),
    )


# ==================== Endpoints ====================

@router.get("/{project_id}/admission-control", response_model=AdmissionStatusResponse)
def get_admission_status(
    project_id: str,
    ctx: ProjectContext = Depends(require_project_permission(Permission.MANAGE_ADMISSIONS)),
    db: Session = Depends(get_db)
):
    """
    Whether the project currently admits new members, and through which link.

    Only the owner can see the link.
    """
    admission = InvitationService(db).get_admission_status(project_id)
    return AdmissionStatusResponse(
        is_open=admission.is_open,
        active_link=_active_link_response(admission.active_link) if admission.active_link else None,
    )


@router.post(
    "/{project_id}/admission-control",
    response_model=ActiveInviteLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
def open_admissions(
    project_id: str,
    request: OpenAdmissionsRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Open admissions by generating a new invitation link.

    Any previously active link stops working. Only the owner can do this.
    """
    link = InvitationService(db).open_admissions(
        project_id,
        requested_by_user_id=user_id,
        max_uses=request.max_uses,
        expires_at=request.expires_at,
        role=request.role,
    )
    return _active_link_response(link)


@router.delete("/{project_id}/admission-control", status_code=status.HTTP_204_NO_CONTENT)
def close_admissions(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Close admissions. Closing a closed project is a no-op."""
    InvitationService(db).close_admissions(project_id, requested_by_user_id=user_id)


@router.get("/{project_id}/invite-stats", response_model=InviteStatsResponse)
def get_invite_stats(
    project_id: str,
    ctx: ProjectContext = Depends(require_project_permission(Permission.READ_INVITATION_STATS)),
    db: Session = Depends(get_db)
):
    """
    Usage of every invitation link the project has had, newest first.
    """
    service = InvitationService(db)
    stats = service.get_invitation_stats(project_id)
    return InviteStatsResponse(
        links=[
            InviteLinkStatsResponse(
                link=InviteLinkResponse.model_validate(s.link),
                total_joins=s.total_joins,
                unique_joiners=s.unique_joiners,
                avg_joins_per_day=round(s.avg_joins_per_day, 2),
            )
            for s in stats
        ],
        summary=service.get_invitation_summary(project_id),
    )
