from bona.auth.permissions import Role
from bona.services.membership_service import MembershipService
from bona.services.permission_service import PermissionService, PermissionSummary


def test_get_user_role(db, project):
    service = PermissionService(db)

    assert service.get_user_role(project["id"], "owner-1") == Role.OWNER
    assert service.get_user_role(project["id"], "viewer-1") == Role.VIEWER
    assert service.get_user_role(project["id"], "stranger") is None
    assert service.get_user_role("other-project", "owner-1") is None


def test_check_permission_follows_hierarchy(db, project):
    service = PermissionService(db)

    assert service.check_permission(project["id"], "admin-1", Role.MEMBER)
    assert service.check_permission(project["id"], "admin-1", Role.ADMIN)
    assert not service.check_permission(project["id"], "admin-1", Role.OWNER)
    assert not service.check_permission(project["id"], "stranger", Role.VIEWER)


def test_check_sees_role_change_immediately(db, project):
    permissions = PermissionService(db)
    assert not permissions.check_permission(project["id"], "member-1", Role.ADMIN)

    MembershipService(db).change_role(project["id"], "member-1", Role.ADMIN, "owner-1")

    assert permissions.check_permission(project["id"], "member-1", Role.ADMIN)


def test_check_sees_removal_immediately(db, project):
    permissions = PermissionService(db)
    assert permissions.check_permission(project["id"], "viewer-1", Role.VIEWER)

    MembershipService(db).remove(project["id"], "viewer-1", "admin-1")

    assert not permissions.check_permission(project["id"], "viewer-1", Role.VIEWER)


def test_permission_summary_for_each_role(db, project):
    service = PermissionService(db)

    owner = service.get_permission_summary(project["id"], "owner-1")
    assert owner.role == Role.OWNER
    assert owner.can_manage_admissions and owner.can_delete_project

    admin = service.get_permission_summary(project["id"], "admin-1")
    assert admin.can_manage_roles and admin.can_view_audit_trail
    assert not admin.can_manage_admissions

    member = service.get_permission_summary(project["id"], "member-1")
    assert member.can_upload_files and member.can_post_messages
    assert not member.can_invite_members

    viewer = service.get_permission_summary(project["id"], "viewer-1")
    assert viewer.can_view_project
    assert not viewer.can_upload_files


def test_permission_summary_for_non_member_is_all_false(db, project):
    summary = PermissionService(db).get_permission_summary(project["id"], "stranger")

    assert summary == PermissionSummary.for_role(None)
    assert summary.role is None
    assert not summary.can_view_project
