from bona.models.audit_log import RoleChangeLog
from bona.models.project_member import ProjectMember


def test_list_members(client, project, current_user):
    current_user["user_id"] = "viewer-1"

    response = client.get("/api/projects/project-1/members")

    assert response.status_code == 200
    body = response.json()
    assert [m["user_id"] for m in body["members"]] == ["owner-1", "admin-1", "member-1", "viewer-1"]
    assert body["current_user_role"] == "viewer"
    assert body["permissions"]["can_view_project"] is True
    assert body["permissions"]["can_upload_files"] is False


def test_list_members_requires_membership(client, project, current_user):
    current_user["user_id"] = "stranger"

    response = client.get("/api/projects/project-1/members")

    assert response.status_code == 403


def test_add_member(client, project, current_user, db):
    current_user["user_id"] = "admin-1"

    response = client.post(
        "/api/projects/project-1/members",
        json={"user_id": "new-user", "role": "viewer"},
    )

    assert response.status_code == 201
    assert response.json()["role"] == "viewer"
    assert db.query(ProjectMember).filter_by(user_id="new-user").count() == 1


def test_add_existing_member_conflicts(client, project):
    response = client.post(
        "/api/projects/project-1/members",
        json={"user_id": "member-1", "role": "member"},
    )

    assert response.status_code == 409
    assert response.json() == {
        "error": {
            "type": "ALREADY_MEMBER",
            "message": "User member-1 is already a member of this project",
        }
    }


def test_add_member_forbidden_for_member(client, project, current_user):
    current_user["user_id"] = "member-1"

    response = client.post("/api/projects/project-1/members", json={"user_id": "new-user"})

    assert response.status_code == 403


def test_add_member_rejects_unknown_role(client, project):
    response = client.post(
        "/api/projects/project-1/members",
        json={"user_id": "new-user", "role": "superuser"},
    )

    assert response.status_code == 422


def test_change_role(client, project, db):
    response = client.patch(
        "/api/projects/project-1/members/member-1/role",
        json={"role": "admin", "reason": "promotion"},
    )

    assert response.status_code == 200
    assert response.json()["role"] == "admin"
    assert db.query(RoleChangeLog).one().reason == "promotion"


def test_change_owner_role_forbidden(client, project):
    response = client.patch(
        "/api/projects/project-1/members/owner-1/role",
        json={"role": "admin"},
    )

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "CANNOT_MODIFY_OWNER"


def test_change_role_of_non_member(client, project):
    response = client.patch(
        "/api/projects/project-1/members/stranger/role",
        json={"role": "viewer"},
    )

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "NOT_A_MEMBER"


def test_admin_cannot_promote_to_admin(client, project, current_user):
    current_user["user_id"] = "admin-1"

    response = client.patch(
        "/api/projects/project-1/members/member-1/role",
        json={"role": "admin"},
    )

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "INSUFFICIENT_PERMISSIONS"


def test_remove_member(client, project, db):
    response = client.delete("/api/projects/project-1/members/viewer-1", params={"reason": "inactive"})

    assert response.status_code == 204
    assert db.query(ProjectMember).filter_by(user_id="viewer-1").count() == 0


def test_remove_owner_forbidden(client, project, current_user):
    current_user["user_id"] = "admin-1"

    response = client.delete("/api/projects/project-1/members/owner-1")

    assert response.status_code == 403
    assert response.json()["error"]["type"] == "CANNOT_REMOVE_OWNER"


def test_my_permissions(client, project, current_user):
    current_user["user_id"] = "admin-1"

    body = client.get("/api/projects/project-1/permissions").json()

    assert body["role"] == "admin"
    assert body["can_manage_roles"] is True
    assert body["can_manage_admissions"] is False


def test_my_permissions_as_non_member(client, project, current_user):
    current_user["user_id"] = "stranger"

    response = client.get("/api/projects/project-1/permissions")

    assert response.status_code == 200
    assert response.json()["role"] is None
    assert not any(v for k, v in response.json().items() if k.startswith("can_"))
