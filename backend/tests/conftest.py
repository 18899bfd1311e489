from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlsplit

import pytest

from waitlist.auth.links import SignInLinkMinter
from waitlist.email.service import EmailService
from waitlist.signup.service import SignupService
from waitlist.storage.db import Database
from waitlist.storage.memory import InMemoryDocumentStore
from waitlist.storage.sql_store import SqlDocumentStore
from waitlist.storage.store import USERS, DocumentStore

TEST_SECRET = "test-secret-key-with-at-least-32-characters"


@dataclass
class SentEmail:
    to: str
    subject: str
    html: str


class RecordingEmailService(EmailService):
    """Email service that records messages instead of calling Mailgun."""

    def __init__(self, succeed: bool = True):
        super().__init__(
            api_key="key-test",
            domain="mg.example.com",
            from_email="JUNE <hello@example.com>",
            site_url="https://june.money/",
            invites_per_user=5,
        )
        self.succeed = succeed
        self.sent: list[SentEmail] = []
        self.sign_in_links: dict[str, str] = {}

    async def send_sign_in_email(self, to_email: str, sign_in_link: str) -> bool:
        self.sign_in_links[to_email] = sign_in_link
        return await super().send_sign_in_email(to_email, sign_in_link)

    async def send(self, to_email: str, subject: str, html_content: str) -> bool:
        self.sent.append(SentEmail(to_email, subject, html_content))
        return self.succeed


class ScriptedRng:
    """Stand-in for ``secrets.SystemRandom`` that returns preset characters."""

    def __init__(self, chars: str):
        self._chars = iter(chars)

    def choice(self, seq):
        return next(self._chars)


def token_from(link: str) -> str:
    return parse_qs(urlsplit(link).query)["token"][0]


def seed_user(
    store: DocumentStore,
    email: str,
    referral_code: str,
    referral_count: int = 0,
    referred_by: str | None = None,
    created_at: datetime | None = None,
) -> None:
    store.create_if_absent(
        USERS,
        email,
        {
            "referral_code": referral_code,
            "referral_count": referral_count,
            "referred_by": referred_by,
            "created_at": created_at or datetime.utcnow(),
        },
    )


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def sql_store(tmp_path):
    store = SqlDocumentStore(Database(f"sqlite:///{tmp_path / 'waitlist.db'}"))
    store.setup()
    return store


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every document store implementation."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def email_service():
    return RecordingEmailService()


@pytest.fixture
def link_minter():
    return SignInLinkMinter(secret_key=TEST_SECRET, ttl=timedelta(minutes=5))


@pytest.fixture
def signup_service(store, email_service, link_minter):
    return SignupService(
        store=store,
        email_service=email_service,
        link_minter=link_minter,
        verify_url="https://june.money/verify",
        code_prefix="JUNE",
        code_length=6,
        max_code_attempts=10,
        leaderboard_size=10,
    )
