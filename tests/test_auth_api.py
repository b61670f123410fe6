import pytest
from sqlalchemy import false
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from session_auth import config
from session_auth.routers import auth as auth_router
from session_auth.services.auth_service import verify_password, verify_secret_answer
from session_auth.services.captcha_service import CaptchaServiceError

SIGNUP = {
    "email": "a@x.com",
    "password": "secret1",
    "secretQuestion": "pet?",
    "secretAnswer": "rex",
}
LOGIN = {"email": "a@x.com", "password": "secret1"}


@pytest.fixture()
def sent_mail(monkeypatch):
    sent = []

    async def _fake_send(email):
        sent.append(email)

    monkeypatch.setattr(auth_router, "send_login_notification", _fake_send)
    return sent


@pytest.fixture()
def captcha(monkeypatch):
    """Turn reCAPTCHA on and control what the verifier answers."""
    state = {"result": True, "tokens": []}

    async def _fake_verify(token):
        state["tokens"].append(token)
        if isinstance(state["result"], Exception):
            raise state["result"]
        return state["result"]

    monkeypatch.setattr(config, "RECAPTCHA_SECRET_KEY", "captcha-secret")
    monkeypatch.setattr(auth_router, "verify_recaptcha", _fake_verify)
    return state


# ---------------- signup ----------------

def test_signup_creates_user_with_hashed_secrets(client, fetch_user):
    r = client.post("/api/signup", json=SIGNUP)
    assert r.status_code == 201
    body = r.json()
    assert body["message"]
    assert body["userId"]

    user = fetch_user("a@x.com")
    assert str(user.id) == body["userId"]
    assert user.password_hash != "secret1"
    assert verify_password("secret1", user.password_hash)
    assert user.secret_question == "pet?"
    assert user.secret_answer_hash != "rex"
    assert verify_secret_answer("rex", user.secret_answer_hash)


def test_signup_rejects_duplicate_email(client, signed_up):
    r = client.post("/api/signup", json=SIGNUP)
    assert r.status_code == 400
    assert "already registered" in r.json()["error"]


@pytest.mark.parametrize(
    "override, fragment",
    [
        ({"email": "not-an-email"}, "email"),
        ({"password": "12345"}, "at least 6 characters"),
        ({"password": "x" * 73}, "at most 72 bytes"),
        ({"secretQuestion": "  "}, "secret question"),
        ({"secretQuestion": "q" * 256}, "at most 255 characters"),
        ({"secretAnswer": ""}, "answer"),
    ],
)
def test_signup_validation_errors(client, override, fragment):
    r = client.post("/api/signup", json={**SIGNUP, **override})
    assert r.status_code == 400
    assert fragment in r.json()["error"]


def test_signup_missing_field(client):
    payload = dict(SIGNUP)
    del payload["secretAnswer"]
    r = client.post("/api/signup", json=payload)
    assert r.status_code == 400
    assert "secretAnswer" in r.json()["error"]


# ---------------- login ----------------

def test_login_sets_session_cookie(client, signed_up, sent_mail, count_sessions):
    r = client.post("/api/login", json=LOGIN)
    assert r.status_code == 200
    assert r.json() == {"message": "Login successful."}

    cookie = r.headers["set-cookie"].lower()
    assert cookie.startswith("session=")
    assert "httponly" in cookie and "samesite=lax" in cookie
    assert client.cookies.get("session")
    assert count_sessions(signed_up) == 1
    assert sent_mail == ["a@x.com"]


def test_login_failures_are_indistinguishable(client, signed_up, sent_mail):
    wrong_password = client.post("/api/login", json={**LOGIN, "password": "wrong-pass"})
    unknown_email = client.post("/api/login", json={**LOGIN, "email": "nobody@x.com"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert "set-cookie" not in wrong_password.headers
    assert sent_mail == []


def test_login_succeeds_when_notification_fails(client, signed_up, monkeypatch):
    async def _broken_send(email):
        raise OSError("smtp down")

    monkeypatch.setattr(auth_router, "send_login_notification", _broken_send)
    r = client.post("/api/login", json=LOGIN)
    assert r.status_code == 200
    assert client.cookies.get("session")


def test_concurrent_logins_create_independent_records(client, signed_up, sent_mail, count_sessions):
    assert client.post("/api/login", json=LOGIN).status_code == 200
    assert client.post("/api/login", json=LOGIN).status_code == 200
    assert count_sessions(signed_up) == 2


def test_login_requires_captcha_token_when_enabled(client, signed_up, sent_mail, captcha):
    r = client.post("/api/login", json=LOGIN)
    assert r.status_code == 400
    assert "reCAPTCHA" in r.json()["error"]
    assert captcha["tokens"] == []


def test_login_with_valid_captcha(client, signed_up, sent_mail, captcha):
    r = client.post("/api/login", json={**LOGIN, "recaptchaToken": "tok"})
    assert r.status_code == 200
    assert captcha["tokens"] == ["tok"]


def test_failed_captcha_short_circuits_before_credentials(client, signed_up, sent_mail, captcha):
    captcha["result"] = False
    # unknown email would be a 401 if credentials were looked at
    r = client.post("/api/login", json={"email": "nobody@x.com", "password": "x", "recaptchaToken": "tok"})
    assert r.status_code == 400
    assert "reCAPTCHA" in r.json()["error"]


def test_captcha_service_outage_is_server_error(client, signed_up, sent_mail, captcha):
    captcha["result"] = CaptchaServiceError("timeout")
    r = client.post("/api/login", json={**LOGIN, "recaptchaToken": "tok"})
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error."}


def test_login_validation_error(client):
    r = client.post("/api/login", json={"email": "a@x.com", "password": ""})
    assert r.status_code == 400
    assert r.json() == {"error": "Password is required."}


# ---------------- session / logout ----------------

def test_session_without_cookie(client):
    r = client.get("/api/session")
    assert r.status_code == 401
    assert r.json() == {"authenticated": False}


def test_session_with_forged_cookie(client):
    client.cookies.set("session", "forged.token.value")
    r = client.get("/api/session")
    assert r.status_code == 401


def test_logout_without_session_still_succeeds(client):
    r = client.post("/api/logout")
    assert r.status_code == 200
    assert "max-age=0" in r.headers["set-cookie"].lower()


def test_logout_removes_session_record(client, signed_up, sent_mail, count_sessions):
    client.post("/api/login", json=LOGIN)
    assert count_sessions(signed_up) == 1
    assert client.post("/api/logout").status_code == 200
    assert count_sessions(signed_up) == 0


def test_full_signup_login_logout_scenario(client, sent_mail, captcha):
    r = client.post("/api/signup", json=SIGNUP)
    assert r.status_code == 201
    user_id = r.json()["userId"]

    r = client.post("/api/login", json={**LOGIN, "recaptchaToken": "valid"})
    assert r.status_code == 200
    assert client.cookies.get("session")

    r = client.get("/api/session")
    assert r.status_code == 200
    assert r.json() == {"authenticated": True, "user": {"userId": user_id, "email": "a@x.com"}}

    r = client.post("/api/logout")
    assert r.status_code == 200
    assert r.json()["message"]

    r = client.get("/api/session")
    assert r.status_code == 401
    assert r.json() == {"authenticated": False}


# ---------------- store failures ----------------

@pytest.fixture()
def failing_commit(monkeypatch):
    """Make every AsyncSession.commit fail as if the database went away."""
    def _enable():
        async def _commit(self):
            raise OperationalError("COMMIT", {}, Exception("database is unavailable"))

        monkeypatch.setattr(AsyncSession, "commit", _commit)
    return _enable


def test_signup_lost_race_is_rejected_as_duplicate(client, signed_up, fetch_user, monkeypatch):
    real_select = auth_router.select
    # the existence check misses the row a concurrent signup already wrote
    monkeypatch.setattr(auth_router, "select", lambda *cols: real_select(*cols).where(false()))

    r = client.post("/api/signup", json={**SIGNUP, "password": "another1"})
    assert r.status_code == 400
    assert "already registered" in r.json()["error"]
    assert verify_password("secret1", fetch_user("a@x.com").password_hash)


def test_login_store_failure_sets_no_cookie(client, signed_up, sent_mail, failing_commit):
    failing_commit()
    r = client.post("/api/login", json=LOGIN)
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error."}
    assert "set-cookie" not in r.headers
    assert not client.cookies.get("session")
    assert sent_mail == []


def test_logout_store_failure_still_clears_cookie(client, signed_up, sent_mail, failing_commit):
    assert client.post("/api/login", json=LOGIN).status_code == 200
    failing_commit()

    r = client.post("/api/logout")
    assert r.status_code == 500
    assert r.json() == {"error": "Logout failed."}
    cookie = r.headers["set-cookie"].lower()
    assert cookie.startswith("session=")
    assert "max-age=0" in cookie
    assert not client.cookies.get("session")
