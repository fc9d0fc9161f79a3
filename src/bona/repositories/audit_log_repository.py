# src/bona/repositories/audit_log_repository.py
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from opentelemetry import trace

from bona.auth.permissions import Role
from bona.errors import AuditWriteFailedError
from bona.models.audit_log import MemberJoinLog, RoleChangeLog
from bona.models.enums import JoinMethod

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditLogRepository:
    """
    Append-only access to join and role-change records.

    Appends are flushed inside the caller's transaction and never committed
    here, so a record only becomes visible together with the mutation it
    describes. Records are never updated or deleted.
    """

    @staticmethod
    def _append(db: Session, record, span) -> None:
        try:
            db.add(record)
            db.flush()
        except SQLAlchemyError as e:
            span.record_exception(e)
            logger.error("Audit write failed for %r: %s", record, e)
            raise AuditWriteFailedError(f"Could not write audit record: {e.__class__.__name__}") from e

    @staticmethod
    def append_join(
        db: Session,
        *,
        project_id: str,
        user_id: str,
        role: Role,
        join_method: JoinMethod,
        invite_link_id: Optional[UUID] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> MemberJoinLog:
        with tracer.start_as_current_span("db.append_join_log") as span:
            span.set_attribute("project_id", project_id)
            span.set_attribute("join_method", join_method.value)

            record = MemberJoinLog(
                project_id=project_id,
                user_id=user_id,
                role=role.value,
                join_method=join_method.value,
                invite_link_id=invite_link_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            AuditLogRepository._append(db, record, span)
        return record

    @staticmethod
    def append_role_change(
        db: Session,
        *,
        project_id: str,
        user_id: str,
        old_role: Role,
        new_role: Role,
        changed_by_user_id: str,
        reason: Optional[str] = None,
    ) -> RoleChangeLog:
        with tracer.start_as_current_span("db.append_role_change_log") as span:
            span.set_attribute("project_id", project_id)

            record = RoleChangeLog(
                project_id=project_id,
                user_id=user_id,
                old_role=old_role.value,
                new_role=new_role.value,
                changed_by_user_id=changed_by_user_id,
                reason=reason,
            )
            AuditLogRepository._append(db, record, span)
        return record

    @staticmethod
    def list_joins(
        db: Session,
        project_id: str,
        *,
        limit: Optional[int] = 50,
        offset: int = 0,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[MemberJoinLog]:
        """Join records of a project, newest first."""
        with tracer.start_as_current_span("db.list_join_logs") as span:
            span.set_attribute("project_id", project_id)

            query = db.query(MemberJoinLog).filter(MemberJoinLog.project_id == project_id)
            if user_id is not None:
                query = query.filter(MemberJoinLog.user_id == user_id)
            if since is not None:
                query = query.filter(MemberJoinLog.joined_at >= since)
            query = query.order_by(MemberJoinLog.joined_at.desc()).offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    @staticmethod
    def list_role_changes(
        db: Session,
        project_id: str,
        *,
        limit: Optional[int] = 50,
        offset: int = 0,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[RoleChangeLog]:
        """Role-change records of a project, newest first."""
        with tracer.start_as_current_span("db.list_role_change_logs") as span:
            span.set_attribute("project_id", project_id)

            query = db.query(RoleChangeLog).filter(RoleChangeLog.project_id == project_id)
            if user_id is not None:
                query = query.filter(RoleChangeLog.user_id == user_id)
            if since is not None:
                query = query.filter(RoleChangeLog.changed_at >= since)
            query = query.order_by(RoleChangeLog.changed_at.desc()).offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    @staticmethod
    def count_joins_by_method(db: Session, project_id: str) -> dict[str, int]:
        with tracer.start_as_current_span("db.count_joins_by_method") as span:
            span.set_attribute("project_id", project_id)
            rows = (
                db.query(MemberJoinLog.join_method, func.count(MemberJoinLog.id))
                .filter(MemberJoinLog.project_id == project_id)
                .group_by(MemberJoinLog.join_method)
                .all()
            )
        return {method: count for method, count in rows}

    @staticmethod
    def count_role_transitions(db: Session, project_id: str) -> dict[tuple[str, str], int]:
        with tracer.start_as_current_span("db.count_role_transitions") as span:
            span.set_attribute("project_id", project_id)
            rows = (
                db.query(RoleChangeLog.old_role, RoleChangeLog.new_role, func.count(RoleChangeLog.id))
                .filter(RoleChangeLog.project_id == project_id)
                .group_by(RoleChangeLog.old_role, RoleChangeLog.new_role)
                .all()
            )
        return {(old, new): count for old, new, count in rows}

    @staticmethod
    def count_distinct_invitation_joiners(db: Session, project_id: str) -> int:
        """Distinct users who ever joined the project through any invitation link."""
        with tracer.start_as_current_span("db.count_distinct_invitation_joiners") as span:
            span.set_attribute("project_id", project_id)
            return (
                db.query(func.count(func.distinct(MemberJoinLog.user_id)))
                .filter(
                    MemberJoinLog.project_id == project_id,
                    MemberJoinLog.invite_link_id.is_not(None),
                )
                .scalar()
            ) or 0
