from strata.auth.sessions import session_manager
from strata.constants import Role
from strata.core.rate_limit import login_limiter
from strata.models.models import User

REGISTRATION = {
    "username": "newowner",
    "email": "New.Owner@Example.com",
    "password": "Str0ngPass",
    "confirm_password": "Str0ngPass",
}


def test_register_then_login_and_read_identity(client, csrf_headers, db_session):
    headers = csrf_headers()
    response = client.post("/auth/register", json=REGISTRATION, headers=headers)
    assert response.status_code == 201, response.text
    assert response.json()["role"] == "owner"

    login = client.post(
        "/auth/login",
        json={"email": "new.owner@example.com", "password": "Str0ngPass"},
        headers=headers,
    )
    assert login.status_code == 200
    assert login.json()["username"] == "newowner"

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json() == {"id": login.json()["id"], "username": "newowner", "role": "owner"}
    assert db_session.query(User).count() == 1


def test_registration_rejects_duplicates_and_weak_input(client, csrf_headers, create_user):
    create_user(username="taken", email="taken@example.com")
    headers = csrf_headers()

    cases = [
        (dict(REGISTRATION, email="taken@example.com"), "Email is already registered."),
        (dict(REGISTRATION, username="taken"), "Username is already taken."),
        (dict(REGISTRATION, username="ab"), "Username must be at least 3 characters long."),
        (dict(REGISTRATION, email="not-an-email"), "Invalid email address."),
        (dict(REGISTRATION, confirm_password="Different1"), "Passwords do not match."),
        (dict(REGISTRATION, password="alllowercase1", confirm_password="alllowercase1"), None),
    ]
    for payload, message in cases:
        response = client.post("/auth/register", json=payload, headers=headers)
        assert response.status_code == 400, payload
        if message:
            assert response.json()["detail"] == message


def test_bad_credentials_get_a_generic_error(client, csrf_headers, create_user):
    user = create_user()
    headers = csrf_headers()

    wrong_password = client.post("/auth/login", json={"email": user.email, "password": "nope"}, headers=headers)
    unknown_email = client.post("/auth/login", json={"email": "ghost@example.com", "password": "x"}, headers=headers)

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["detail"] == unknown_email.json()["detail"] == "Invalid email or password"


def test_login_requires_csrf_token(client, create_user):
    user = create_user()
    response = client.post("/auth/login", json={"email": user.email, "password": "Passw0rd1"})
    assert response.status_code == 403


def test_repeated_failures_are_rate_limited(client, csrf_headers, create_user):
    user = create_user()
    headers = csrf_headers()
    for _ in range(login_limiter.max_attempts):
        response = client.post("/auth/login", json={"email": user.email, "password": "wrong"}, headers=headers)
        assert response.status_code == 401

    blocked = client.post("/auth/login", json={"email": user.email, "password": "Passw0rd1"}, headers=headers)

    assert blocked.status_code == 429
    assert int(blocked.headers["retry-after"]) > 0


def test_logout_ends_the_session(client, login, create_user):
    headers = login(create_user())
    assert client.get("/auth/me").status_code == 200

    response = client.post("/auth/logout", headers=headers)

    assert response.status_code == 200
    assert client.get("/auth/me").status_code == 401
    assert "user_id" not in client.cookies
    assert "username" not in client.cookies


def test_remember_me_cookies_restore_a_lost_session(client, login, create_user):
    user = create_user(role=Role.COMMITTEE)
    login(user)
    client.cookies.delete(session_manager.cookie_name)

    me = client.get("/auth/me")

    assert me.status_code == 200
    assert me.json()["role"] == "committee"
    assert session_manager.cookie_name in client.cookies


def test_idle_session_is_logged_out(client, login, create_user, clock, monkeypatch):
    monkeypatch.setattr(session_manager, "clock", clock)
    login(create_user())
    assert client.get("/auth/me").status_code == 200

    clock.advance(session_manager.timeout_seconds + 1)

    assert client.get("/auth/me").status_code == 401
    # The remember-me pair was cleared along with the session.
    assert client.get("/auth/me").status_code == 401


def test_unauthenticated_browser_is_redirected(client):
    response = client.get("/levies", headers={"Accept": "text/html"}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/auth/login"
