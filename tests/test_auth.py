import pytest

from docchat.routes import auth as auth_routes

EMAIL = "carol@docchat.dev"


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    async def fake_send(settings, to, otp):
        sent.append((to, otp))

    monkeypatch.setattr(auth_routes, "send_otp_email", fake_send)
    return sent


def _request_code(client, outbox, email=EMAIL):
    r = client.post("/api/auth/email-otp/send", json={"email": email})
    assert r.status_code == 200
    return outbox[-1][1]


def test_send_code_emails_a_six_digit_code(client, outbox):
    r = client.post("/api/auth/email-otp/send", json={"email": "Carol@DocChat.dev"})

    assert r.status_code == 200
    assert r.json() == {"success": True}
    to, otp = outbox[0]
    assert to == EMAIL
    assert len(otp) == 6 and otp.isdigit()


def test_send_code_rejects_bad_email(client, outbox):
    r = client.post("/api/auth/email-otp/send", json={"email": "not-an-email"})

    assert r.status_code == 400
    assert r.json() == {"detail": "Invalid request body"}
    assert outbox == []


def test_mailer_failure_is_a_500(client, monkeypatch):
    async def broken(settings, to, otp):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(auth_routes, "send_otp_email", broken)

    r = client.post("/api/auth/email-otp/send", json={"email": EMAIL})

    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to send verification code"


def test_verify_signs_up_and_starts_a_session(client, outbox):
    otp = _request_code(client, outbox)

    r = client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": otp})

    assert r.status_code == 200
    body = r.json()
    assert body["user"]["email"] == EMAIL
    assert body["user"]["email_verified"] is True
    assert body["token"]
    assert r.cookies.get("session_token") == body["token"]

    session = client.get("/api/auth/session", headers={"Authorization": f"Bearer {body['token']}"})
    assert session.status_code == 200
    assert session.json()["user"]["id"] == body["user"]["id"]


def test_second_sign_in_reuses_the_user(client, outbox):
    first = client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": _request_code(client, outbox)})
    second = client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": _request_code(client, outbox)})

    assert first.json()["user"]["id"] == second.json()["user"]["id"]
    assert first.json()["token"] != second.json()["token"]


def test_code_is_single_use(client, outbox):
    otp = _request_code(client, outbox)
    assert client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": otp}).status_code == 200

    r = client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": otp})

    assert r.status_code == 401


def test_wrong_code_is_rejected_and_attempts_are_limited(client, outbox, settings):
    otp = _request_code(client, outbox)
    wrong = "000000" if otp != "000000" else "111111"

    for _ in range(settings.otp_max_attempts):
        r = client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": wrong})
        assert r.status_code == 401
        assert r.json()["detail"] == "Invalid or expired code"

    # the right code no longer works once the attempts are used up
    r = client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": otp})
    assert r.status_code == 401


def test_new_code_replaces_the_old_one(client, outbox):
    old = _request_code(client, outbox)
    new = _request_code(client, outbox)
    if old == new:
        pytest.skip("identical codes drawn")

    assert client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": old}).status_code == 401
    assert client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": new}).status_code == 200


def test_session_cookie_authenticates(client, outbox):
    otp = _request_code(client, outbox)
    client.post("/api/auth/email-otp/verify", json={"email": EMAIL, "otp": otp})

    # TestClient keeps the cookie from the verify response
    r = client.get("/api/projects")

    assert r.status_code == 200


def test_sign_out_ends_the_session(client, auth_headers):
    assert client.post("/api/auth/sign-out", headers=auth_headers).status_code == 200

    r = client.get("/api/auth/session", headers=auth_headers)

    assert r.status_code == 401


@pytest.mark.parametrize("path", ["/api/projects", "/api/documents", "/api/chat/conversations", "/api/auth/session"])
def test_protected_routes_need_a_session(client, path):
    assert client.get(path).status_code == 401
    r = client.get(path, headers={"Authorization": "Bearer not-a-real-token"})
    assert r.status_code == 401
    assert r.json() == {"detail": "Unauthorized"}
