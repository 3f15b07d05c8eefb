from conftest import hours_from_now, token_for
from models.revoked_token import RevokedToken
from relay.router import render_redirect

TARGET = "https://hidden.example.net/app?x=1&y=2"


def _relay(client, domain=None, token=None):
    params = {}
    if domain is not None:
        params["domain"] = domain
    if token is not None:
        params["token"] = token
    return client.get("/redirect", params=params)


def test_missing_domain_is_400(client):
    response = _relay(client, token="whatever")

    assert response.status_code == 400
    assert response.json() == {"error": "Domain ID required"}


def test_missing_token_is_401(client):
    response = _relay(client, domain="1")

    assert response.status_code == 401
    assert response.json() == {"error": "Authorization token required"}


def test_invalid_token_is_401(client):
    response = _relay(client, domain="1", token="garbage")

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid authentication token"}


def test_unknown_domain_is_404(client, make_user):
    user = make_user()

    assert _relay(client, domain="999", token=token_for(user)).status_code == 404
    assert _relay(client, domain="abc", token=token_for(user)).status_code == 404


def test_unassigned_domain_is_403(client, make_user, make_domain):
    user = make_user()
    domain = make_domain(TARGET)

    response = _relay(client, domain=str(domain.id), token=token_for(user))

    assert response.status_code == 403
    assert response.json() == {"error": "Access denied - user not assigned to this domain"}


def test_admins_have_no_bypass(client, make_user, make_domain):
    admin = make_user("boss@example.com", role="admin")
    domain = make_domain(TARGET)

    assert _relay(client, domain=str(domain.id), token=token_for(admin)).status_code == 403


def test_blocked_account_is_403(client, make_user, make_domain, assign):
    user = make_user(is_blocked=True)
    domain = make_domain(TARGET)
    assign(user, domain)

    assert _relay(client, domain=str(domain.id), token=token_for(user)).status_code == 403


def test_assigned_user_gets_redirect_page(client, make_user, make_domain, assign):
    user = make_user()
    domain = make_domain(TARGET, masked_name="Research Portal")
    assign(user, domain)

    response = _relay(client, domain=str(domain.id), token=token_for(user))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    html = response.text
    assert "Accessing Research Portal" in html
    assert 'href="https://hidden.example.net/app?x=1&amp;y=2"' in html
    assert 'window.location.href = "https://hidden.example.net/app?x=1\\u0026y=2"' in html


def test_trial_user_loses_access_once_expired(client, db, make_user, make_domain, assign):
    user = make_user("trial@example.com", expires_at=hours_from_now(1))
    domain = make_domain(TARGET)
    assign(user, domain)
    token = token_for(user)

    assert _relay(client, domain=str(domain.id), token=token).status_code == 200

    from models.profile import Profile

    db.get(Profile, user.id).expires_at = hours_from_now(-0.01)
    db.commit()

    response = _relay(client, domain=str(domain.id), token=token)
    assert response.status_code == 401
    assert "expired" in response.json()["error"]

    db.expire_all()
    assert db.query(RevokedToken).filter(RevokedToken.user_id == user.id).count() == 1
    # Signed out: the token no longer resolves at all
    assert _relay(client, domain=str(domain.id), token=token).json() == {
        "error": "Invalid authentication token"
    }


def test_redirect_page_escapes_the_display_name():
    html = render_redirect('<script>alert("x")</script>', "https://example.org/", delay_seconds=0)

    assert "<script>alert" not in html
    assert "&lt;script&gt;" in html
    assert "}, 0);" in html


def test_admin_provisioned_trial_scenario(client, db, make_user):
    admin_headers = {"Authorization": f"Bearer {token_for(make_user('boss@example.com', role='admin'))}"}

    domain = client.post(
        "/admin/domains",
        json={"target_url": "https://internal.example", "masked_name": "Client Portal"},
        headers=admin_headers,
    ).json()
    user = client.post(
        "/admin/users",
        json={"email": "trial@example.com", "password": "Tr1alPassword", "duration": "trial"},
        headers=admin_headers,
    ).json()
    assert user["expiration_status"] == "trial"
    assert client.post(
        f"/admin/users/{user['id']}/domains", json={"domain_id": domain["id"]}, headers=admin_headers
    ).status_code == 201

    login = client.post(
        "/auth/login", json={"email": "trial@example.com", "password": "Tr1alPassword"}
    ).json()
    token = login["access_token"]

    page = _relay(client, domain=str(domain["id"]), token=token)
    assert page.status_code == 200
    assert "Accessing Client Portal" in page.text
    assert 'window.location.href = "https://internal.example"' in page.text

    # An hour later
    from models.profile import Profile

    db.get(Profile, user["id"]).expires_at = hours_from_now(-0.01)
    db.commit()

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 401
    assert me.json() == {
        "error": "Your account has expired. Please contact your administrator to renew access."
    }
    check = client.post(
        "/session",
        json={"action": "validate", "sessionToken": login["session_token"]},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert check.status_code == 401
