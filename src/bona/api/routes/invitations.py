"""
API routes for redeeming invitation links.

Endpoints:
- GET /invitations/{token} - Public preview of an invitation link
- POST /invitations/{token}/accept - Join the project behind the link
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from bona.api.routes.members import ProjectMemberResponse
from bona.auth.clerk import get_current_user_id
from bona.db.database import get_db
from bona.services.invitation_service import InvitationService

router = APIRouter(prefix="/invitations", tags=["invitations"])


class InvitationPreviewResponse(BaseModel):
    project_id: str
    role: str
    expires_at: Optional[datetime]
    remaining_uses: Optional[int]


class AcceptInvitationResponse(BaseModel):
    membership: ProjectMemberResponse
    is_existing_member: bool


def get_client_ip(request: Request) -> Optional[str]:
    """Client address, preferring proxy headers over the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


@router.get("/{token}", response_model=InvitationPreviewResponse)
def preview_invitation(
    token: str,
    db: Session = Depends(get_db)
):
    """
    Show what joining through this link grants. No authentication required.
    """
    link = InvitationService(db).validate_token(token)
    return InvitationPreviewResponse(
        project_id=link.project_id,
        role=link.role,
        expires_at=link.expires_at,
        remaining_uses=link.remaining_uses,
    )


@router.post(
    "/{token}/accept",
    response_model=AcceptInvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
def accept_invitation(
    token: str,
    request: Request,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Join the project behind an invitation link.

    Returns 201 for a new membership and 200 when the caller was already a
    member (their existing membership is returned unchanged).
    """
    result = InvitationService(db).accept_invitation(
        token,
        user_id,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    if result.is_existing_member:
        response.status_code = status.HTTP_200_OK
    return AcceptInvitationResponse(
        membership=ProjectMemberResponse.model_validate(result.membership),
        is_existing_member=result.is_existing_member,
    )
