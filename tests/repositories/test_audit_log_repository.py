from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from bona.auth.permissions import Role
from bona.errors import AuditWriteFailedError
from bona.models.audit_log import MemberJoinLog, RoleChangeLog
from bona.models.enums import JoinMethod
from bona.repositories.audit_log_repository import AuditLogRepository


def _join(db, user_id, joined_at=None, method=JoinMethod.DIRECT_ADD, project_id="p1"):
    record = AuditLogRepository.append_join(
        db, project_id=project_id, user_id=user_id, role=Role.MEMBER, join_method=method
    )
    if joined_at is not None:
        record.joined_at = joined_at
    db.commit()
    return record


def _change(db, user_id, old, new, changed_at=None):
    record = AuditLogRepository.append_role_change(
        db,
        project_id="p1",
        user_id=user_id,
        old_role=old,
        new_role=new,
        changed_by_user_id="owner-1",
    )
    if changed_at is not None:
        record.changed_at = changed_at
    db.commit()
    return record


def test_append_is_not_committed_by_repository(db):
    AuditLogRepository.append_join(
        db, project_id="p1", user_id="u1", role=Role.MEMBER, join_method=JoinMethod.DIRECT_ADD
    )
    db.rollback()

    assert db.query(MemberJoinLog).count() == 0


def test_append_failure_raises_audit_write_failed(db, monkeypatch):
    def _flush(*_args, **_kwargs):
        raise OperationalError("INSERT INTO member_join_logs", {}, Exception("disk full"))

    monkeypatch.setattr(db, "flush", _flush)

    with pytest.raises(AuditWriteFailedError) as exc:
        AuditLogRepository.append_join(
            db, project_id="p1", user_id="u1", role=Role.MEMBER, join_method=JoinMethod.DIRECT_ADD
        )

    assert isinstance(exc.value.__cause__, OperationalError)
    monkeypatch.undo()
    db.rollback()


def test_list_joins_newest_first_with_paging(db):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i in range(5):
        _join(db, f"u{i}", joined_at=base + timedelta(days=i))

    first_page = AuditLogRepository.list_joins(db, "p1", limit=2)
    second_page = AuditLogRepository.list_joins(db, "p1", limit=2, offset=2)

    assert [j.user_id for j in first_page] == ["u4", "u3"]
    assert [j.user_id for j in second_page] == ["u2", "u1"]


def test_list_joins_filters(db):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    _join(db, "u1", joined_at=base)
    _join(db, "u2", joined_at=base + timedelta(days=10))
    _join(db, "u3", project_id="p2")

    assert [j.user_id for j in AuditLogRepository.list_joins(db, "p1", user_id="u1")] == ["u1"]
    recent = AuditLogRepository.list_joins(db, "p1", since=base + timedelta(days=5), limit=None)
    assert [j.user_id for j in recent] == ["u2"]


def test_list_role_changes(db):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    _change(db, "u1", Role.MEMBER, Role.ADMIN, changed_at=base)
    _change(db, "u2", Role.VIEWER, Role.MEMBER, changed_at=base + timedelta(hours=1))

    changes = AuditLogRepository.list_role_changes(db, "p1")
    assert [c.user_id for c in changes] == ["u2", "u1"]

    only_u1 = AuditLogRepository.list_role_changes(db, "p1", user_id="u1")
    assert [(c.old_role, c.new_role) for c in only_u1] == [("member", "admin")]


def test_counts(db):
    _join(db, "u1")
    _join(db, "u2", method=JoinMethod.INVITATION)
    _join(db, "u3", method=JoinMethod.INVITATION)
    _change(db, "u1", Role.MEMBER, Role.ADMIN)
    _change(db, "u2", Role.MEMBER, Role.ADMIN)
    _change(db, "u2", Role.ADMIN, Role.VIEWER)

    assert AuditLogRepository.count_joins_by_method(db, "p1") == {"direct-add": 1, "invitation": 2}
    assert AuditLogRepository.count_role_transitions(db, "p1") == {
        ("member", "admin"): 2,
        ("admin", "viewer"): 1,
    }
    assert db.query(RoleChangeLog).count() == 3


def test_count_distinct_invitation_joiners(db):
    from uuid import uuid4

    link_a, link_b = uuid4(), uuid4()
    for user_id, link_id in [("u1", link_a), ("u2", link_a), ("u1", link_b)]:
        AuditLogRepository.append_join(
            db,
            project_id="p1",
            user_id=user_id,
            role=Role.MEMBER,
            join_method=JoinMethod.INVITATION,
            invite_link_id=link_id,
        )
    _join(db, "u3")
    db.commit()

    assert AuditLogRepository.count_distinct_invitation_joiners(db, "p1") == 2
    assert AuditLogRepository.count_distinct_invitation_joiners(db, "empty") == 0
