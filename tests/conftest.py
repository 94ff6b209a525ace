"""Test fixtures — a throwaway SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own SQLite file (via aiosqlite) with the schema
   created from the models. Separate sessions use separate connections,
   so concurrency tests race for real on the database locks and the
   unique constraints.
2. The app's get_db is overridden to hand out sessions from that database.
3. A RecordingMailer replaces the real transport; tests call
   notifier.drain() before looking at what was sent.
"""

import re

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from credentia.auth.tokens import TokenIssuer
from credentia.config import Settings
from credentia.db.engine import get_db
from credentia.db.models import Base
from credentia.mail.dispatcher import NotificationDispatcher
from credentia.mail.transport import Mailer, MailMessage
from credentia.main import create_app
from credentia.services.credential_service import CredentialService

TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789abcdef"

_LINK_TOKEN = re.compile(r"/(?:verify-now|reset-password-now)/([0-9a-f]+)")


class RecordingMailer(Mailer):
    """Keeps every message instead of sending it."""

    def __init__(self):
        super().__init__('"Credentia" <no-reply@example.com>')
        self.sent: list[MailMessage] = []

    async def send(self, message: MailMessage) -> None:
        self.sent.append(message)

    def to(self, address: str) -> list[MailMessage]:
        return [m for m in self.sent if m.to == address]


def token_from(message: MailMessage) -> str:
    """Extract the one-time token from the link in an email."""
    match = _LINK_TOKEN.search(message.text)
    assert match, f"no token link in: {message.text!r}"
    return match.group(1)


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        app_domain="http://testserver",
        environment="development",
        mail_backend="console",
    )


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'credentia.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest_asyncio.fixture()
async def notifier(mailer):
    dispatcher = NotificationDispatcher(mailer)
    yield dispatcher
    await dispatcher.drain()


@pytest.fixture()
def tokens(test_settings) -> TokenIssuer:
    return TokenIssuer.from_settings(test_settings)


@pytest.fixture()
def make_service(tokens, notifier, test_settings):
    """Build a CredentialService around any session."""

    def _make(db: AsyncSession) -> CredentialService:
        return CredentialService(
            db, tokens=tokens, notifier=notifier, settings=test_settings
        )

    return _make


@pytest.fixture()
def service(db_session, make_service) -> CredentialService:
    return make_service(db_session)


@pytest.fixture()
def app(test_settings, session_factory, tokens, notifier):
    app = create_app(test_settings)
    app.state.tokens = tokens
    app.state.notifier = notifier

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
