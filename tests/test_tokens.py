"""Token issuer tests — one-time tokens and signed session tokens."""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from credentia.auth.tokens import TokenIssuer, issue_one_time_token
from credentia.config import Settings

SECRET = "unit-test-secret-0123456789abcdef0123456789abcdef"


@pytest.fixture()
def issuer() -> TokenIssuer:
    return TokenIssuer(SECRET, session_ttl=timedelta(hours=1))


# ═══════════════════════════════════════════════════════════
# One-time tokens
# ═══════════════════════════════════════════════════════════


def test_one_time_token_shape():
    """160 bits as 40 lowercase hex chars."""
    token = issue_one_time_token()
    assert len(token) == 40
    int(token, 16)
    assert token == token.lower()


def test_one_time_tokens_are_unique():
    tokens = {issue_one_time_token() for _ in range(1000)}
    assert len(tokens) == 1000


def test_issuer_exposes_one_time_tokens(issuer):
    assert len(issuer.issue_one_time_token()) == 40


# ═══════════════════════════════════════════════════════════
# Session tokens
# ═══════════════════════════════════════════════════════════


def test_session_token_round_trip(issuer):
    account_id = uuid.uuid4()
    token = issuer.issue_session_token(account_id, username="alice")
    assert issuer.verify_session_token(token) == account_id


def test_session_token_claims(issuer):
    account_id = uuid.uuid4()
    token = issuer.issue_session_token(account_id, username="alice")
    payload = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert payload["sub"] == str(account_id)
    assert payload["type"] == "session"
    assert payload["username"] == "alice"
    assert payload["exp"] - payload["iat"] == 3600


def test_expired_session_token_rejected(issuer):
    token = issuer.issue_session_token(uuid.uuid4(), expires_in=timedelta(seconds=-5))
    assert issuer.verify_session_token(token) is None


def test_session_token_signed_with_other_key_rejected(issuer):
    other = TokenIssuer("another-secret-0123456789abcdef0123456789abcdef")
    token = other.issue_session_token(uuid.uuid4())
    assert issuer.verify_session_token(token) is None


def test_tampered_payload_rejected(issuer):
    token = issuer.issue_session_token(uuid.uuid4())
    header, _, signature = token.split(".")
    forged_payload = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "type": "session",
            "iat": datetime.now(timezone.utc),
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        "attacker-key-0123456789abcdef0123456789abcdef",
        algorithm="HS256",
    ).split(".")[1]
    assert issuer.verify_session_token(f"{header}.{forged_payload}.{signature}") is None


def test_unsigned_token_rejected(issuer):
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "session", "iat": 0, "exp": 2**31},
        None,
        algorithm="none",
    )
    assert issuer.verify_session_token(token) is None


@pytest.mark.parametrize(
    "garbage",
    ["", "not-a-jwt", "a.b.c", "Bearer xyz", None, 12345, "...."],
)
def test_malformed_input_never_raises(issuer, garbage):
    assert issuer.verify_session_token(garbage) is None


def test_missing_claims_rejected(issuer):
    token = jwt.encode({"sub": str(uuid.uuid4()), "type": "session"}, SECRET, algorithm="HS256")
    assert issuer.verify_session_token(token) is None


def test_wrong_token_type_rejected(issuer):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": str(uuid.uuid4()), "type": "refresh", "iat": now, "exp": now + timedelta(hours=1)},
        SECRET,
        algorithm="HS256",
    )
    assert issuer.verify_session_token(token) is None


def test_non_uuid_subject_rejected(issuer):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"sub": "alice", "type": "session", "iat": now, "exp": now + timedelta(hours=1)},
        SECRET,
        algorithm="HS256",
    )
    assert issuer.verify_session_token(token) is None


def test_from_settings_uses_configured_lifetime():
    cfg = Settings(jwt_secret=SECRET, session_token_expire_minutes=5)
    issuer = TokenIssuer.from_settings(cfg)
    payload = jwt.decode(
        issuer.issue_session_token(uuid.uuid4()), SECRET, algorithms=["HS256"]
    )
    assert payload["exp"] - payload["iat"] == 300
