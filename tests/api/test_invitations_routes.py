from datetime import datetime, timedelta, timezone

from bona.models.audit_log import MemberJoinLog


def _open(client, **body):
    return client.post("/api/projects/project-1/admission-control", json=body).json()


def test_preview_invitation(client, project):
    link = _open(client, max_uses=3)

    response = client.get(f"/api/invitations/{link['secret_token']}")

    assert response.status_code == 200
    assert response.json() == {
        "project_id": "project-1",
        "role": "member",
        "expires_at": None,
        "remaining_uses": 3,
    }


def test_preview_unknown_token(client, project):
    response = client.get("/api/invitations/not-a-token")

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "INVALID_TOKEN"


def test_preview_expired_token(client, project):
    expired = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    link = _open(client, expires_at=expired)

    response = client.get(f"/api/invitations/{link['secret_token']}")

    assert response.status_code == 410
    assert response.json()["error"]["type"] == "INVITATION_EXPIRED"


def test_accept_invitation(client, project, current_user, db):
    link = _open(client, max_uses=3)
    current_user["user_id"] = "joiner-1"

    response = client.post(
        f"/api/invitations/{link['secret_token']}/accept",
        headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1", "User-Agent": "bona-test"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["is_existing_member"] is False
    assert body["membership"]["user_id"] == "joiner-1"
    assert body["membership"]["role"] == "member"

    join = db.query(MemberJoinLog).filter_by(user_id="joiner-1").one()
    assert join.ip_address == "198.51.100.4"
    assert join.user_agent == "bona-test"


def test_accept_uses_real_ip_header(client, project, current_user, db):
    link = _open(client)
    current_user["user_id"] = "joiner-1"

    client.post(f"/api/invitations/{link['secret_token']}/accept", headers={"X-Real-IP": "192.0.2.9"})

    assert db.query(MemberJoinLog).filter_by(user_id="joiner-1").one().ip_address == "192.0.2.9"


def test_accept_as_existing_member(client, project, current_user):
    link = _open(client, max_uses=1)
    current_user["user_id"] = "member-1"

    response = client.post(f"/api/invitations/{link['secret_token']}/accept")

    assert response.status_code == 200
    assert response.json()["is_existing_member"] is True


def test_accept_exhausted(client, project, current_user):
    link = _open(client, max_uses=1)
    current_user["user_id"] = "joiner-1"
    client.post(f"/api/invitations/{link['secret_token']}/accept")
    current_user["user_id"] = "joiner-2"

    response = client.post(f"/api/invitations/{link['secret_token']}/accept")

    assert response.status_code == 410
    assert response.json()["error"]["type"] == "INVITATION_EXHAUSTED"


def test_accept_deactivated(client, project, current_user):
    link = _open(client)
    client.delete("/api/projects/project-1/admission-control")
    current_user["user_id"] = "joiner-1"

    response = client.post(f"/api/invitations/{link['secret_token']}/accept")

    assert response.status_code == 410
    assert response.json()["error"]["type"] == "INVITATION_DEACTIVATED"


def test_accept_requires_authentication(project, db):
    from fastapi.testclient import TestClient
    from bona.db.database import get_db
    from bona.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        response = TestClient(app).post("/api/invitations/anything/accept")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
