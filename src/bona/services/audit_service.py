"""
Audit service - read side of the join and role-change logs.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Union
import logging

from sqlalchemy.orm import Session

from bona.models.audit_log import MemberJoinLog, RoleChangeLog
from bona.repositories.audit_log_repository import AuditLogRepository
from bona.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_DAYS = 7


@dataclass
class AuditTrailEntry:
    kind: str  # "join" or "role_change"
    timestamp: datetime
    record: Union[MemberJoinLog, RoleChangeLog]


class AuditService:
    def __init__(self, db: Session):
        self.db = db

    def get_join_history(
        self,
        project_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> List[MemberJoinLog]:
        return AuditLogRepository.list_joins(self.db, project_id, limit=limit, offset=offset)

    def get_role_change_history(
        self,
        project_id: str,
        limit: int = 50,
        offset: int = 0,
        user_id: Optional[str] = None,
    ) -> List[RoleChangeLog]:
        return AuditLogRepository.list_role_changes(
            self.db, project_id, limit=limit, offset=offset, user_id=user_id
        )

    def get_audit_trail(
        self,
        project_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AuditTrailEntry]:
        """
        Joins and role changes merged into one list, newest first.

        Each source is read up to offset + limit rows, which is enough to
        produce the requested page of the merged list.
        """
        window = offset + limit
        joins = AuditLogRepository.list_joins(self.db, project_id, limit=window)
        changes = AuditLogRepository.list_role_changes(self.db, project_id, limit=window)

        entries = [AuditTrailEntry("join", as_utc(j.joined_at), j) for j in joins]
        entries += [AuditTrailEntry("role_change", as_utc(c.changed_at), c) for c in changes]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[offset:window]

    def get_audit_summary(self, project_id: str, now: Optional[datetime] = None) -> dict:
        """
        Totals for a project's audit trail.

        Returns:
            Dict with total_joins, total_role_changes, recent_joins and
            recent_role_changes (last 7 days), join_methods
            ({"invitation": n, ...}) and role_changes ({"member_to_admin": n, ...})
        """
        now = now or utc_now()
        since = now - timedelta(days=RECENT_ACTIVITY_DAYS)

        join_methods = AuditLogRepository.count_joins_by_method(self.db, project_id)
        transitions = AuditLogRepository.count_role_transitions(self.db, project_id)
        recent_joins = AuditLogRepository.list_joins(self.db, project_id, limit=None, since=since)
        recent_changes = AuditLogRepository.list_role_changes(
            self.db, project_id, limit=None, since=since
        )

        return {
            "total_joins": sum(join_methods.values()),
            "total_role_changes": sum(transitions.values()),
            "recent_joins": len(recent_joins),
            "recent_role_changes": len(recent_changes),
            "join_methods": join_methods,
            "role_changes": {f"{old}_to_{new}": n for (old, new), n in transitions.items()},
        }

    def get_user_audit(self, project_id: str, user_id: str) -> dict:
        """A single user's join record (if any) and role-change history."""
        joins = AuditLogRepository.list_joins(self.db, project_id, limit=1, user_id=user_id)
        role_changes = AuditLogRepository.list_role_changes(
            self.db, project_id, limit=None, user_id=user_id
        )
        return {
            "join_record": joins[0] if joins else None,
            "role_changes": role_changes,
        }
