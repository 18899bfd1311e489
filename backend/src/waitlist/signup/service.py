"""Signup flow: sign-in links, verification, leaderboard."""

from dataclasses import dataclass
from datetime import datetime

from waitlist.auth.links import SignInLinkMinter
from waitlist.email.service import EmailService
from waitlist.errors import AlreadyRegistered, MissingInput
from waitlist.logging_config import get_logger
from waitlist.referral.codes import Chooser, ReferralCodeGenerator
from waitlist.referral.tracker import ReferralTracker
from waitlist.settings import settings
from waitlist.storage.db import Database
from waitlist.storage.sql_store import SqlDocumentStore
from waitlist.storage.store import USERS, Document, DocumentStore

logger = get_logger(__name__)

MAX_LEADERBOARD_SIZE = 100


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def mask_email(email: str) -> str:
    """Hide most of the local part: ``jane.doe@x.com`` -> ``ja***@x.com``."""
    local, sep, domain = email.partition("@")
    if not sep:
        return email[:2] + "***"
    return f"{local[:2]}***@{domain}"


@dataclass
class SignInResult:
    """Outcome of a sign-in request."""
    email: str
    referred_by: str | None
    email_sent: bool

    @property
    def referral_applied(self) -> bool:
        return self.referred_by is not None


@dataclass
class VerificationResult:
    """Outcome of verifying an email."""
    user: Document
    created: bool
    referred_by: str | None
    email_sent: bool = False


@dataclass
class LeaderboardEntry:
    rank: int
    email: str
    referral_count: int


class SignupService:
    """Drives an email from first signup to verified waitlist member.

    ``Unknown -> PendingVerification -> Verified``; nothing leaves Verified.
    """

    def __init__(
        self,
        store: DocumentStore,
        email_service: EmailService,
        link_minter: SignInLinkMinter,
        verify_url: str | None = None,
        code_prefix: str | None = None,
        code_length: int | None = None,
        max_code_attempts: int | None = None,
        leaderboard_size: int | None = None,
        rng: Chooser | None = None,
    ):
        self.store = store
        self.email_service = email_service
        self.link_minter = link_minter
        self.verify_url = verify_url or settings.verify_url
        self.code_prefix = code_prefix or settings.referral_code_prefix
        self.code_length = code_length or settings.referral_code_length
        self.max_code_attempts = max_code_attempts or settings.referral_code_max_attempts
        self.leaderboard_size = leaderboard_size or settings.leaderboard_size
        self.rng = rng

    def code_generator(self, store: DocumentStore | None = None) -> ReferralCodeGenerator:
        return ReferralCodeGenerator(
            store or self.store,
            prefix=self.code_prefix,
            length=self.code_length,
            max_attempts=self.max_code_attempts,
            rng=self.rng,
        )

    def tracker(self, store: DocumentStore | None = None) -> ReferralTracker:
        return ReferralTracker(store or self.store)

    # ==================== SIGNUP ====================

    async def request_sign_in(
        self,
        email: str | None,
        referral_code: str | None = None,
        return_url: str | None = None,
    ) -> SignInResult:
        """Record an optional referral and email a sign-in link.

        Args:
            email: Address signing up
            referral_code: Code of the member who invited them
            return_url: Page the sign-in link opens (defaults to settings)

        Returns:
            SignInResult; ``email_sent`` is False when delivery failed

        Raises:
            MissingInput: No email
            AlreadyRegistered: Email is already verified
            InvalidReferralCode: Code belongs to no member
        """
        email = normalize_email(email)
        if not email:
            raise MissingInput("email")

        if self.store.get(USERS, email) is not None:
            logger.info("sign_in_rejected", email=email, reason="already_registered")
            raise AlreadyRegistered(email)

        referred_by = self.tracker().record_signup_referral(email, referral_code)

        link = self.link_minter.mint(email, return_url or self.verify_url)
        logger.info("sign_in_link_generated", email=email, referred=referred_by is not None)

        email_sent = await self.email_service.send_sign_in_email(email, link)
        if not email_sent:
            logger.warning("sign_in_email_not_sent", email=email)

        return SignInResult(email=email, referred_by=referred_by, email_sent=email_sent)

    # ==================== VERIFICATION ====================

    async def verify(self, token: str | None) -> VerificationResult:
        """Verify the email named by a sign-in token."""
        if not token:
            raise MissingInput("token")
        email = self.link_minter.verify(token)
        return await self.verify_email(email)

    async def verify_email(self, email: str | None) -> VerificationResult:
        """Create the member record and settle any pending referral.

        Safe to call repeatedly: once the member exists nothing is generated,
        credited or emailed again.
        """
        email = normalize_email(email)
        if not email:
            raise MissingInput("email")

        existing = self.store.get(USERS, email)
        if existing is not None:
            logger.info("user_already_verified", email=email)
            return VerificationResult(user=existing, created=False, referred_by=existing.get("referred_by"))

        with self.store.transaction() as tx:
            generator = self.code_generator(tx)
            code = generator.generate_unique_code(owner=email)
            created = tx.create_if_absent(
                USERS,
                email,
                {
                    "referral_code": code,
                    "referral_count": 0,
                    "referred_by": None,
                    "created_at": datetime.utcnow(),
                },
            )

            if created:
                referred_by = self.tracker(tx).finalize_referral(email)
            else:
                # Lost the race to a concurrent verification of the same email
                generator.release(code)
                referred_by = None

            user = tx.get(USERS, email)

        if not created:
            logger.info("user_already_verified", email=email, concurrent=True)
            return VerificationResult(user=user, created=False, referred_by=user.get("referred_by"))

        logger.info("user_verified", email=email, referral_code=code, referred_by=referred_by)

        email_sent = await self.email_service.send_welcome_email(email, code)
        if not email_sent:
            logger.warning("welcome_email_not_sent", email=email)

        return VerificationResult(user=user, created=True, referred_by=referred_by, email_sent=email_sent)

    # ==================== LOOKUPS ====================

    def get_user(self, email: str) -> Document | None:
        return self.store.get(USERS, normalize_email(email))

    def validate_code(self, referral_code: str | None) -> bool:
        """Whether a referral code belongs to a verified member."""
        return self.tracker().resolve_code(referral_code) is not None

    def leaderboard(self, limit: int | None = None) -> list[LeaderboardEntry]:
        """Members with the most referrals, earliest signup first on ties."""
        limit = max(1, min(limit or self.leaderboard_size, MAX_LEADERBOARD_SIZE))
        users = self.store.top(USERS, "referral_count", limit)
        return [
            LeaderboardEntry(
                rank=rank,
                email=mask_email(user["email"]),
                referral_count=user["referral_count"],
            )
            for rank, user in enumerate(users, start=1)
        ]

    def member_count(self) -> int:
        return self.store.count(USERS)


def create_signup_service(database_url: str | None = None) -> SignupService:
    """Wire the service to the configured database, Mailgun and JWT links."""
    store = SqlDocumentStore(Database(database_url, echo=settings.env == "development"))
    return SignupService(
        store=store,
        email_service=EmailService(),
        link_minter=SignInLinkMinter(),
    )
