from datetime import datetime, timedelta, timezone

from bona.auth.permissions import Role
from bona.models.audit_log import MemberJoinLog, RoleChangeLog
from bona.services.audit_service import AuditService
from bona.services.invitation_service import InvitationService
from bona.services.membership_service import MembershipService

BASE = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _seed_history(db):
    """owner joins, two invitation joins, then two role changes, one hour apart."""
    memberships = MembershipService(db)
    invitations = InvitationService(db)

    memberships.add("p1", "owner-1", Role.OWNER)
    link = invitations.open_admissions("p1", "owner-1")
    invitations.accept_invitation(link.secret_token, "u1")
    invitations.accept_invitation(link.secret_token, "u2")
    memberships.change_role("p1", "u1", Role.ADMIN, "owner-1", reason="lead")
    memberships.change_role("p1", "u2", Role.VIEWER, "u1")

    joins = db.query(MemberJoinLog).order_by(MemberJoinLog.joined_at).all()
    changes = db.query(RoleChangeLog).order_by(RoleChangeLog.changed_at).all()
    for i, record in enumerate(joins):
        record.joined_at = BASE + timedelta(hours=i)
    for i, record in enumerate(changes):
        record.changed_at = BASE + timedelta(hours=len(joins) + i)
    db.commit()


def test_join_history_newest_first(db):
    _seed_history(db)

    history = AuditService(db).get_join_history("p1")

    assert [j.user_id for j in history] == ["u2", "u1", "owner-1"]
    assert [j.join_method for j in history] == ["invitation", "invitation", "direct-add"]


def test_role_change_history(db):
    _seed_history(db)
    service = AuditService(db)

    history = service.get_role_change_history("p1")
    assert [(c.user_id, c.old_role, c.new_role) for c in history] == [
        ("u2", "member", "viewer"),
        ("u1", "member", "admin"),
    ]

    only_u1 = service.get_role_change_history("p1", user_id="u1")
    assert [c.changed_by_user_id for c in only_u1] == ["owner-1"]
    assert only_u1[0].reason == "lead"


def test_audit_trail_merges_by_time(db):
    _seed_history(db)

    trail = AuditService(db).get_audit_trail("p1")

    assert [e.kind for e in trail] == ["role_change", "role_change", "join", "join", "join"]
    assert [e.record.user_id for e in trail] == ["u2", "u1", "u2", "u1", "owner-1"]
    timestamps = [e.timestamp for e in trail]
    assert timestamps == sorted(timestamps, reverse=True)


def test_audit_trail_paging(db):
    _seed_history(db)
    service = AuditService(db)

    page = service.get_audit_trail("p1", limit=2, offset=1)

    assert [(e.kind, e.record.user_id) for e in page] == [("role_change", "u1"), ("join", "u2")]
    assert service.get_audit_trail("p1", limit=10, offset=5) == []


def test_audit_summary(db):
    _seed_history(db)

    summary = AuditService(db).get_audit_summary("p1", now=BASE + timedelta(days=1))

    assert summary == {
        "total_joins": 3,
        "total_role_changes": 2,
        "recent_joins": 3,
        "recent_role_changes": 2,
        "join_methods": {"direct-add": 1, "invitation": 2},
        "role_changes": {"member_to_admin": 1, "member_to_viewer": 1},
    }


def test_audit_summary_recent_window(db):
    _seed_history(db)

    summary = AuditService(db).get_audit_summary("p1", now=BASE + timedelta(days=8))

    assert summary["total_joins"] == 3
    assert summary["recent_joins"] == 0
    assert summary["recent_role_changes"] == 0


def test_user_audit(db):
    _seed_history(db)

    audit = AuditService(db).get_user_audit("p1", "u1")

    assert audit["join_record"].join_method == "invitation"
    assert [(c.old_role, c.new_role) for c in audit["role_changes"]] == [("member", "admin")]


def test_user_audit_for_unknown_user(db):
    audit = AuditService(db).get_user_audit("p1", "nobody")

    assert audit == {"join_record": None, "role_changes": []}
