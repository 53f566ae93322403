"""Registration, sign-in, sessions, email verification and password reset."""
import re

from tests.conftest import API, PASSWORD

TOKEN_RE = re.compile(r"token=([\w\-.]+)")


def _token_from(mail):
    return TOKEN_RE.search(mail["body"]).group(1)


async def _register(client, **overrides):
    body = {
        "email": "Carol@Example.com",
        "username": "Carol",
        "password": "s3cret-pass",
        "displayName": "Carol",
    }
    body.update(overrides)
    return await client.post(f"{API}/auth/register", json=body)


async def test_register_signs_in_and_sends_verification(client, settings, mailer):
    response = await _register(client)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["email"] == "carol@example.com"
    assert data["user"]["username"] == "carol"
    assert data["user"]["emailVerified"] is False
    assert data["user"]["avatarUrl"]
    assert settings.SESSION_COOKIE_NAME in response.headers["set-cookie"]
    assert "httponly" in response.headers["set-cookie"].lower()

    assert [mail["to"] for mail in mailer.outbox] == ["carol@example.com"]
    assert "/verify-email?token=" in mailer.outbox[0]["body"]

    me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {data['sessionId']}"})
    assert me.json()["data"]["username"] == "carol"


async def test_register_succeeds_when_mail_is_down(client, mailer):
    mailer.failing = True

    response = await _register(client)

    assert response.status_code == 201
    assert mailer.outbox == []


async def test_register_rejects_taken_email_and_username(client):
    await _register(client)

    email = await _register(client, username="carol2")
    username = await _register(client, email="other@example.com")

    assert email.status_code == 409
    assert email.json()["error"]["code"] == "EMAIL_EXISTS"
    assert username.json()["error"]["code"] == "USERNAME_EXISTS"


async def test_register_reports_invalid_fields(client):
    response = await _register(client, email="nope", username="a!", password="short")

    assert response.status_code == 400
    fields = {d["field"] for d in response.json()["error"]["details"]}
    assert fields == {"email", "username", "password"}


async def test_login_and_logout(client, settings, alice):
    bad = await client.post(f"{API}/auth/login", json={"email": alice.email, "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json()["error"]["code"] == "INVALID_CREDENTIALS"

    good = await client.post(f"{API}/auth/login", json={"email": alice.email.upper(), "password": PASSWORD})
    assert good.status_code == 200
    headers = {"Authorization": f"Bearer {good.json()['data']['sessionId']}"}

    assert (await client.get(f"{API}/auth/me", headers=headers)).status_code == 200

    out = await client.post(f"{API}/auth/logout", headers=headers)
    assert out.json()["data"]["message"] == "Logged out successfully"
    assert (await client.get(f"{API}/auth/me", headers=headers)).status_code == 401


async def test_verify_email(client, mailer):
    await _register(client)
    token = _token_from(mailer.outbox[0])

    first = await client.get(f"{API}/auth/verify-email", params={"token": token})
    second = await client.get(f"{API}/auth/verify-email", params={"token": token})

    assert first.json()["data"]["message"] == "Email verified successfully"
    assert second.json()["data"]["message"] == "Email already verified"


async def test_verify_email_rejects_garbage(client):
    response = await client.get(f"{API}/auth/verify-email", params={"token": "garbage"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TOKEN"


async def test_resend_verification_is_limited(client, mailer):
    registered = await _register(client)
    headers = {"Authorization": f"Bearer {registered.json()['data']['sessionId']}"}

    first = await client.post(f"{API}/auth/resend-verification", headers=headers)
    second = await client.post(f"{API}/auth/resend-verification", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 429
    assert len(mailer.outbox) == 2


async def test_forgot_password_does_not_reveal_accounts(client, mailer, alice):
    known = await client.post(f"{API}/auth/forgot-password", json={"email": alice.email})
    unknown = await client.post(f"{API}/auth/forgot-password", json={"email": "ghost@example.com"})

    assert known.json() == unknown.json()
    assert [mail["to"] for mail in mailer.outbox] == [alice.email]


async def test_reset_password_signs_out_everywhere(client, mailer, alice, alice_headers):
    await client.post(f"{API}/auth/forgot-password", json={"email": alice.email})
    token = _token_from(mailer.outbox[0])

    check = await client.get(f"{API}/auth/reset-password", params={"token": token})
    assert check.json()["data"] == {"valid": True}

    reset = await client.post(f"{API}/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert reset.status_code == 200

    assert (await client.get(f"{API}/auth/me", headers=alice_headers)).status_code == 401
    reused = await client.post(f"{API}/auth/reset-password", json={"token": token, "password": "another-pass"})
    assert reused.json()["error"]["code"] == "INVALID_TOKEN"

    login = await client.post(f"{API}/auth/login", json={"email": alice.email, "password": "brand-new-pass"})
    assert login.status_code == 200
