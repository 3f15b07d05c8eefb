from conftest import PASSWORD, auth_headers, hours_from_now
from models.audit_log import AuditLog
from models.user_session import UserSession


def _login(client, email="user@example.com", password=PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


def test_login_issues_token_and_session(client, db, make_user):
    user = make_user()

    response = _login(client)

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["role"] == "user"
    assert body["session_token"]

    db.expire_all()
    active = db.query(UserSession).filter(
        UserSession.user_id == user.id, UserSession.is_active.is_(True)
    ).all()
    assert [s.session_token for s in active] == [body["session_token"]]
    assert db.query(AuditLog).filter(AuditLog.action == "user_login").count() == 1


def test_login_failure_does_not_reveal_which_part_was_wrong(client, make_user):
    make_user()

    wrong_password = _login(client, password="nope")
    unknown_email = _login(client, email="ghost@example.com")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid email or password"}


def test_second_login_supersedes_first_device(client, make_user):
    make_user()
    first = _login(client).json()
    second = _login(client).json()

    headers = {"Authorization": f"Bearer {first['access_token']}"}
    response = client.post(
        "/session",
        json={"action": "validate", "sessionToken": first["session_token"]},
        headers=headers,
    )
    assert response.json()["valid"] is False

    headers = {"Authorization": f"Bearer {second['access_token']}"}
    response = client.post(
        "/session",
        json={"action": "validate", "sessionToken": second["session_token"]},
        headers=headers,
    )
    assert response.json()["valid"] is True


def test_expired_account_cannot_log_in(client, make_user):
    make_user(expires_at=hours_from_now(-1))

    response = _login(client)

    assert response.status_code == 401
    assert "expired" in response.json()["error"]


def test_blocked_account_can_log_in_but_not_list_domains(client, make_user):
    make_user(is_blocked=True)

    body = _login(client).json()
    headers = {"Authorization": f"Bearer {body['access_token']}"}

    assert client.get("/domains", headers=headers).status_code == 403
    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["is_blocked"] is True


def test_logout_revokes_token_and_sessions(client, db, make_user):
    user = make_user()
    body = _login(client).json()
    headers = {"Authorization": f"Bearer {body['access_token']}"}

    assert client.post("/auth/logout", headers=headers).status_code == 200

    assert client.get("/auth/me", headers=headers).status_code == 401
    db.expire_all()
    assert db.query(UserSession).filter(
        UserSession.user_id == user.id, UserSession.is_active.is_(True)
    ).count() == 0


def test_me_is_null_for_anonymous_callers(client):
    response = client.get("/auth/me")

    assert response.status_code == 200
    assert response.json() is None


def test_me_includes_expiration_view(client, make_user):
    user = make_user(expires_at=hours_from_now(0.5))

    body = client.get("/auth/me", headers=auth_headers(user)).json()

    assert body["email"] == "user@example.com"
    assert body["expiration"]["status"] == "trial"
    assert body["expiration"]["is_trial"] is True


def test_change_password(client, make_user):
    user = make_user()
    headers = auth_headers(user)

    weak = client.put(
        "/auth/change-password",
        json={"old_password": PASSWORD, "new_password": "short"},
        headers=headers,
    )
    assert weak.status_code == 400

    wrong = client.put(
        "/auth/change-password",
        json={"old_password": "bad", "new_password": "An0therGoodOne"},
        headers=headers,
    )
    assert wrong.status_code == 400

    ok = client.put(
        "/auth/change-password",
        json={"old_password": PASSWORD, "new_password": "An0therGoodOne"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert _login(client, password="An0therGoodOne").status_code == 200
