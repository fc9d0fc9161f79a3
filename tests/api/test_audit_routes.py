def _join_and_promote(client, current_user):
    link = client.post("/api/projects/project-1/admission-control", json={}).json()
    current_user["user_id"] = "joiner-1"
    client.post(f"/api/invitations/{link['secret_token']}/accept")
    current_user["user_id"] = "owner-1"
    client.patch("/api/projects/project-1/members/joiner-1/role", json={"role": "admin"})


def test_audit_trail(client, project, current_user):
    _join_and_promote(client, current_user)
    current_user["user_id"] = "admin-1"

    response = client.get("/api/projects/project-1/audit")

    assert response.status_code == 200
    body = response.json()
    assert [e["kind"] for e in body["entries"]] == ["role_change", "join"]
    assert body["entries"][0]["new_role"] == "admin"
    assert body["entries"][1]["join_method"] == "invitation"
    assert body["summary"]["total_joins"] == 1
    assert body["summary"]["role_changes"] == {"member_to_admin": 1}
    assert body["pagination"] == {"limit": 50, "offset": 0, "returned": 2, "has_more": False}


def test_audit_trail_filtered_and_paged(client, project, current_user):
    _join_and_promote(client, current_user)

    joins = client.get("/api/projects/project-1/audit", params={"type": "join"}).json()
    assert [e["kind"] for e in joins["entries"]] == ["join"]

    page = client.get("/api/projects/project-1/audit", params={"limit": 1}).json()
    assert page["pagination"]["has_more"] is True
    assert page["entries"][0]["kind"] == "role_change"


def test_audit_trail_forbidden_for_member(client, project, current_user):
    current_user["user_id"] = "member-1"

    assert client.get("/api/projects/project-1/audit").status_code == 403


def test_audit_rejects_bad_limit(client, project):
    assert client.get("/api/projects/project-1/audit", params={"limit": 0}).status_code == 422


def test_user_audit(client, project, current_user):
    _join_and_promote(client, current_user)

    response = client.get("/api/projects/project-1/audit/users/joiner-1")

    assert response.status_code == 200
    body = response.json()
    assert body["join_record"]["join_method"] == "invitation"
    assert [c["new_role"] for c in body["role_changes"]] == ["admin"]
