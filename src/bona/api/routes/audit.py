"""
API routes for the project audit trail.

Endpoints:
- GET /projects/{project_id}/audit - Joins and role changes, newest first
- GET /projects/{project_id}/audit/users/{member_user_id} - One user's audit records
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from bona.auth.permissions import Permission
from bona.auth.rbac import ProjectContext, require_project_permission
from bona.db.database import get_db
from bona.models.audit_log import MemberJoinLog, RoleChangeLog
from bona.services.audit_service import AuditService
from bona.utils.datetime_utils import as_utc

router = APIRouter(prefix="/projects", tags=["audit"])


class AuditEntryType(str, Enum):
    JOIN = "join"
    ROLE_CHANGE = "role_change"


class AuditEntryResponse(BaseModel):
    id: UUID
    kind: AuditEntryType
    timestamp: datetime
    user_id: str
    # join
    role: Optional[str] = None
    join_method: Optional[str] = None
    invite_link_id: Optional[UUID] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    # role_change
    old_role: Optional[str] = None
    new_role: Optional[str] = None
    changed_by_user_id: Optional[str] = None
    reason: Optional[str] = None


class Pagination(BaseModel):
    limit: int
    offset: int
    returned: int
    has_more: bool


class AuditTrailResponse(BaseModel):
    entries: List[AuditEntryResponse]
    summary: dict
    pagination: Pagination


class UserAuditResponse(BaseModel):
    user_id: str
    join_record: Optional[AuditEntryResponse]
    role_changes: List[AuditEntryResponse]


def _join_entry(record: MemberJoinLog) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=record.id,
        kind=AuditEntryType.JOIN,
        timestamp=as_utc(record.joined_at),
        user_id=record.user_id,
        role=record.role,
        join_method=record.join_method,
        invite_link_id=record.invite_link_id,
        ip_address=record.ip_address,
        user_agent=record.user_agent,
    )


def _role_change_entry(record: RoleChangeLog) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=record.id,
        kind=AuditEntryType.ROLE_CHANGE,
        timestamp=as_utc(record.changed_at),
        user_id=record.user_id,
        old_role=record.old_role,
        new_role=record.new_role,
        changed_by_user_id=record.changed_by_user_id,
        reason=record.reason,
    )


@router.get("/{project_id}/audit", response_model=AuditTrailResponse)
def get_audit_trail(
    project_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    entry_type: Optional[AuditEntryType] = Query(None, alias="type"),
    ctx: ProjectContext = Depends(require_project_permission(Permission.READ_AUDIT_TRAIL)),
    db: Session = Depends(get_db)
):
    """
    Audit trail of a project with summary statistics.

    `type` restricts the trail to joins or role changes; without it both are
    merged by time.
    """
    service = AuditService(db)

    # One extra row tells whether another page exists
    if entry_type == AuditEntryType.JOIN:
        records = service.get_join_history(project_id, limit=limit + 1, offset=offset)
        entries = [_join_entry(r) for r in records]
    elif entry_type == AuditEntryType.ROLE_CHANGE:
        records = service.get_role_change_history(project_id, limit=limit + 1, offset=offset)
        entries = [_role_change_entry(r) for r in records]
    else:
        trail = service.get_audit_trail(project_id, limit=limit + 1, offset=offset)
        entries = [
            _join_entry(e.record) if e.kind == "join" else _role_change_entry(e.record)
            for e in trail
        ]

    has_more = len(entries) > limit
    entries = entries[:limit]
    return AuditTrailResponse(
        entries=entries,
        summary=service.get_audit_summary(project_id),
        pagination=Pagination(limit=limit, offset=offset, returned=len(entries), has_more=has_more),
    )


@router.get("/{project_id}/audit/users/{member_user_id}", response_model=UserAuditResponse)
def get_user_audit(
    project_id: str,
    member_user_id: str,
    ctx: ProjectContext = Depends(require_project_permission(Permission.READ_AUDIT_TRAIL)),
    db: Session = Depends(get_db)
):
    """How a user joined the project and every change to their role."""
    audit = AuditService(db).get_user_audit(project_id, member_user_id)
    join_record = audit["join_record"]
    return UserAuditResponse(
        user_id=member_user_id,
        join_record=_join_entry(join_record) if join_record else None,
        role_changes=[_role_change_entry(r) for r in audit["role_changes"]],
    )
