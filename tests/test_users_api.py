"""Users API tests — the credential lifecycle over HTTP.

Learn: Tests cover:
1. Registration, validation errors, duplicates (409)
2. The verification link landing page (HTML)
3. Login → session token, error mapping (404 / 401)
4. The reset flow: request → form page → confirm
5. Protected /me endpoint
"""

import uuid

import pytest

from conftest import token_from
from credentia.auth.tokens import TokenIssuer
from credentia.errors import PersistenceError
from credentia.services.credential_service import CredentialService

REGISTER = "/api/v1/users/register"
AUTHENTICATE = "/api/v1/users/authenticate"
RESET_REQUEST = "/api/v1/users/reset-password"
RESET_CONFIRM = "/api/v1/users/reset-password-now"

ALICE = {"username": "alice", "email": "a@x.com", "password": "Secret123!"}


async def _register(client, **overrides):
    body = {**ALICE, **overrides}
    return await client.post(REGISTER, json=body)


async def _login(client, username="alice", password="Secret123!"):
    return await client.post(
        AUTHENTICATE, json={"username": username, "password": password}
    )


async def _last_token(notifier, mailer, subject):
    await notifier.drain()
    [message] = [m for m in mailer.sent if m.subject == subject][-1:]
    return token_from(message)


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register(client, notifier, mailer):
    r = await _register(client, name="Alice")
    assert r.status_code == 201
    assert r.json() == {
        "success": True,
        "message": "Your account is created please verify your email address.",
    }

    await notifier.drain()
    [message] = mailer.to("a@x.com")
    assert "http://testserver/api/v1/users/verify-now/" in message.text


@pytest.mark.asyncio
async def test_register_duplicate_username(client):
    assert (await _register(client)).status_code == 201
    r = await _register(client, email="other@x.com")
    assert r.status_code == 409
    assert r.json() == {
        "success": False,
        "kind": "conflict",
        "message": "Username is already taken.",
    }


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    assert (await _register(client)).status_code == 201
    r = await _register(client, username="alice2")
    assert r.status_code == 409
    assert r.json()["kind"] == "conflict"
    assert "Email is already registered" in r.json()["message"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"password": "abc"},
        {"email": "not-an-email"},
        {"username": "al"},
        {"username": "has spaces"},
        {"username": ""},
    ],
)
async def test_register_validation(client, overrides):
    r = await _register(client, **overrides)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_register_missing_fields(client):
    r = await client.post(REGISTER, json={"username": "alice"})
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Verification link
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_verify_link(client, notifier, mailer):
    await _register(client)
    code = await _last_token(notifier, mailer, "Verify Account")

    r = await client.get(f"/api/v1/users/verify-now/{code}")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "Account Verified" in r.text
    assert "alice" in r.text

    login = await _login(client)
    assert login.json()["user"]["verified"] is True


@pytest.mark.asyncio
async def test_verify_link_twice(client, notifier, mailer):
    await _register(client)
    code = await _last_token(notifier, mailer, "Verify Account")

    assert (await client.get(f"/api/v1/users/verify-now/{code}")).status_code == 200
    r = await client.get(f"/api/v1/users/verify-now/{code}")
    assert r.status_code == 404
    assert "Invalid or expired verification link." in r.text


@pytest.mark.asyncio
async def test_verify_unknown_code(client):
    r = await client.get("/api/v1/users/verify-now/" + "0" * 40)
    assert r.status_code == 404
    assert r.headers["content-type"].startswith("text/html")


# ═══════════════════════════════════════════════════════════
# Authenticate
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_authenticate(client):
    await _register(client, name="Alice")
    r = await _login(client)
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["token_type"] == "bearer"
    assert data["token"].count(".") == 2

    user = data["user"]
    assert user["username"] == "alice"
    assert user["email"] == "a@x.com"
    assert user["name"] == "Alice"
    assert user["verified"] is False
    for secret in (
        "password", "password_hash", "verification_code",
        "reset_password_token", "reset_password_expires_in",
    ):
        assert secret not in user


@pytest.mark.asyncio
async def test_authenticate_wrong_password(client):
    await _register(client)
    r = await _login(client, password="wrong")
    assert r.status_code == 401
    assert r.json() == {
        "success": False,
        "kind": "unauthorized",
        "message": "Incorrect password.",
    }
    assert "www-authenticate" not in r.headers


@pytest.mark.asyncio
async def test_authenticate_unknown_username(client):
    r = await _login(client, username="ghost")
    assert r.status_code == 404
    assert r.json()["kind"] == "not_found"
    assert r.json()["message"] == "Username is not found."


@pytest.mark.asyncio
async def test_authenticate_missing_password(client):
    r = await client.post(AUTHENTICATE, json={"username": "alice"})
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Current account
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me(client):
    await _register(client)
    token = (await _login(client)).json()["token"]

    r = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["username"] == "alice"
    assert "password_hash" not in r.json()


@pytest.mark.asyncio
async def test_me_requires_token(client):
    r = await client.get("/api/v1/users/me")
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"
    assert r.json() == {
        "success": False,
        "kind": "unauthorized",
        "message": "Authentication required.",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Bearer garbage", "Basic YWxpY2U6cHc=", "Bearer "])
async def test_me_rejects_bad_token(client, header):
    r = await client.get("/api/v1/users/me", headers={"Authorization": header})
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"
    assert r.json()["kind"] == "unauthorized"
    assert "detail" not in r.json()


@pytest.mark.asyncio
async def test_me_token_for_other_key(client):
    forged = TokenIssuer("some-other-secret-0123456789abcdef0123456789abcdef")
    token = forged.issue_session_token(uuid.uuid4())
    r = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_account_gone(client, tokens):
    token = tokens.issue_session_token(uuid.uuid4())
    r = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["kind"] == "unauthorized"
    assert r.headers["www-authenticate"] == "Bearer"


# ═══════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_reset_flow(client, notifier, mailer):
    await _register(client)

    r = await client.put(RESET_REQUEST, json={"email": "a@x.com"})
    assert r.status_code == 200
    assert r.json()["message"] == "Password reset link is sent to your email."
    token = await _last_token(notifier, mailer, "Reset Password")

    form = await client.get(f"{RESET_CONFIRM}/{token}")
    assert form.status_code == 200
    assert form.headers["content-type"].startswith("text/html")
    assert f'value="{token}"' in form.text
    assert RESET_CONFIRM in form.text

    r = await client.post(RESET_CONFIRM, json={"reset_token": token, "password": "NewPass1!"})
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert "reset successfully" in r.json()["message"]

    assert (await _login(client, password="NewPass1!")).status_code == 200
    assert (await _login(client, password="Secret123!")).status_code == 401

    await notifier.drain()
    assert [m.subject for m in mailer.to("a@x.com")] == [
        "Verify Account", "Reset Password", "Password Reset Successful",
    ]


@pytest.mark.asyncio
async def test_reset_request_unknown_email(client):
    r = await client.put(RESET_REQUEST, json={"email": "nobody@x.com"})
    assert r.status_code == 404
    assert r.json()["message"] == "Unable to find the account with this email."


@pytest.mark.asyncio
async def test_reset_request_invalid_email(client):
    r = await client.put(RESET_REQUEST, json={"email": "nope"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_reset_form_invalid_token(client):
    r = await client.get(f"{RESET_CONFIRM}/{'a' * 40}")
    assert r.status_code == 401
    assert "invalid or has expired" in r.text
    assert "<form" not in r.text


@pytest.mark.asyncio
async def test_reset_form_store_failure(client, monkeypatch):
    async def broken(self, token):
        raise PersistenceError()

    monkeypatch.setattr(CredentialService, "validate_reset_token", broken)
    r = await client.get(f"{RESET_CONFIRM}/{'a' * 40}")
    assert r.status_code == 500
    assert r.headers["content-type"].startswith("text/html")
    assert "Reset Failed" in r.text
    assert "Verification Failed" not in r.text


@pytest.mark.asyncio
async def test_reset_confirm_replay(client, notifier, mailer):
    await _register(client)
    await client.put(RESET_REQUEST, json={"email": "a@x.com"})
    token = await _last_token(notifier, mailer, "Reset Password")

    body = {"reset_token": token, "password": "NewPass1!"}
    assert (await client.post(RESET_CONFIRM, json=body)).status_code == 200
    r = await client.post(RESET_CONFIRM, json=body)
    assert r.status_code == 401
    assert r.json()["kind"] == "unauthorized"

    # The form link is dead too.
    assert (await client.get(f"{RESET_CONFIRM}/{token}")).status_code == 401


@pytest.mark.asyncio
async def test_reset_confirm_short_password(client, notifier, mailer):
    await _register(client)
    await client.put(RESET_REQUEST, json={"email": "a@x.com"})
    token = await _last_token(notifier, mailer, "Reset Password")

    r = await client.post(RESET_CONFIRM, json={"reset_token": token, "password": "abc"})
    assert r.status_code == 422
    # Token survives a rejected body.
    assert (await client.get(f"{RESET_CONFIRM}/{token}")).status_code == 200
