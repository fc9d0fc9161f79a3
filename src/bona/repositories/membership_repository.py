# src/bona/repositories/membership_repository.py
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session
import logging
from opentelemetry import trace

from bona.auth.permissions import ROLE_HIERARCHY, Role
from bona.models.project_member import ProjectMember

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# OWNER first, VIEWER last
_ROLE_ORDER = case(
    {role.value: -rank for role, rank in ROLE_HIERARCHY.items()},
    value=ProjectMember.role,
)


class MembershipRepository:
    @staticmethod
    def get(
        db: Session,
        project_id: str,
        user_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[ProjectMember]:
        """
        Return the membership for (project, user), or None.

        `for_update` takes a row lock (SELECT ... FOR UPDATE) for the rest of
        the caller's transaction; backends without row locks ignore it.
        """
        with tracer.start_as_current_span("db.get_membership") as span:
            span.set_attribute("project_id", project_id)
            span.set_attribute("for_update", for_update)
            query = db.query(ProjectMember).filter(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
            if for_update:
                query = query.with_for_update().populate_existing()
            return query.first()

    @staticmethod
    def get_role(db: Session, project_id: str, user_id: str) -> Optional[Role]:
        """Read the current role straight from storage (never cached)."""
        with tracer.start_as_current_span("db.get_member_role") as span:
            span.set_attribute("project_id", project_id)
            row = (
                db.query(ProjectMember.role)
                .filter(
                    ProjectMember.project_id == project_id,
                    ProjectMember.user_id == user_id,
                )
                .first()
            )
        return Role(row[0]) if row else None

    @staticmethod
    def create(
        db: Session,
        *,
        project_id: str,
        user_id: str,
        role: Role,
        created_by_user_id: Optional[str] = None,
    ) -> ProjectMember:
        """
        Stage a new membership and flush it so the unique index is checked.

        Does not commit; the caller owns the transaction.
        """
        with tracer.start_as_current_span("db.create_membership") as span:
            span.set_attribute("project_id", project_id)
            span.set_attribute("role", role.value)

            member = ProjectMember(
                project_id=project_id,
                user_id=user_id,
                role=role.value,
                created_by_user_id=created_by_user_id or user_id,
            )
            db.add(member)
            db.flush()

        logger.debug("Staged membership user=%s project=%s role=%s", user_id, project_id, role.value)
        return member

    @staticmethod
    def delete(db: Session, member: ProjectMember) -> None:
        with tracer.start_as_current_span("db.delete_membership") as span:
            span.set_attribute("project_id", member.project_id)
            db.delete(member)
            db.flush()

    @staticmethod
    def get_owner(db: Session, project_id: str) -> Optional[ProjectMember]:
        with tracer.start_as_current_span("db.get_project_owner") as span:
            span.set_attribute("project_id", project_id)
            return (
                db.query(ProjectMember)
                .filter(
                    ProjectMember.project_id == project_id,
                    ProjectMember.role == Role.OWNER.value,
                )
                .first()
            )

    @staticmethod
    def list_for_project(
        db: Session,
        project_id: str,
        roles: Optional[list[Role]] = None,
    ) -> list[ProjectMember]:
        """
        Return members of a project, highest role first, then by join time.
        """
        with tracer.start_as_current_span("db.list_project_members") as span:
            span.set_attribute("project_id", project_id)

            query = db.query(ProjectMember).filter(ProjectMember.project_id == project_id)
            if roles:
                query = query.filter(ProjectMember.role.in_([r.value for r in roles]))

            results = query.order_by(_ROLE_ORDER, ProjectMember.joined_at).all()

        logger.debug("Listed %d members for project=%s", len(results), project_id)
        return results

    @staticmethod
    def count_by_role(db: Session, project_id: str) -> dict[str, int]:
        with tracer.start_as_current_span("db.count_members_by_role") as span:
            span.set_attribute("project_id", project_id)
            rows = (
                db.query(ProjectMember.role, func.count(ProjectMember.id))
                .filter(ProjectMember.project_id == project_id)
                .group_by(ProjectMember.role)
                .all()
            )
        return {role: count for role, count in rows}
