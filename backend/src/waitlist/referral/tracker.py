"""Referral attribution: who invited whom, and how many each user brought in."""

from datetime import datetime

from waitlist.errors import InvalidReferralCode
from waitlist.logging_config import get_logger
from waitlist.referral.codes import normalize_code
from waitlist.storage.store import PENDING_REFERRALS, USERS, DocumentStore

logger = get_logger(__name__)


class ReferralTracker:
    """Records referrals at signup and settles them at verification."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def resolve_code(self, referral_code: str | None) -> str | None:
        """Return the email of the user owning a referral code, if any."""
        if not referral_code or not referral_code.strip():
            return None

        matches = self.store.query(USERS, "referral_code", normalize_code(referral_code), limit=1)
        return matches[0]["email"] if matches else None

    def record_signup_referral(self, email: str, referral_code: str | None = None) -> str | None:
        """Remember which user referred a pending signup.

        Args:
            email: Normalized email of the person signing up
            referral_code: Code supplied with the signup (optional)

        Returns:
            Referrer email, or None when no code was supplied

        Raises:
            InvalidReferralCode: The code belongs to no user
        """
        if not referral_code or not referral_code.strip():
            return None

        code = normalize_code(referral_code)
        referrer = self.resolve_code(code)
        if referrer is None:
            logger.warning("referral_code_invalid", email=email, referral_code=code)
            raise InvalidReferralCode(code)

        self.store.set(
            PENDING_REFERRALS,
            email,
            {"referred_by": referrer, "referral_code": code, "created_at": datetime.utcnow()},
        )
        logger.info("pending_referral_recorded", email=email, referred_by=referrer)
        return referrer

    def finalize_referral(self, email: str) -> str | None:
        """Consume the pending referral for a freshly verified user.

        Call this inside the transaction that created the user; without a
        user record nothing is consumed or credited. The pending
        record is deleted before the referrer is credited, and only the call
        whose delete removed it goes on to increment, so a retry or a racing
        verification cannot count the same referral twice.

        Returns:
            Referrer email if a referral was applied, otherwise None
        """
        pending = self.store.get(PENDING_REFERRALS, email)
        if pending is None:
            return None

        if self.store.get(USERS, email) is None:
            logger.warning("referral_user_missing", email=email, referred_by=pending["referred_by"])
            return None

        if not self.store.delete(PENDING_REFERRALS, email):
            logger.info("pending_referral_already_consumed", email=email)
            return None

        referrer = pending["referred_by"]
        if not self.store.increment(USERS, referrer, "referral_count", 1):
            logger.warning("referrer_missing", email=email, referred_by=referrer)
            return None

        self.store.update(USERS, email, {"referred_by": referrer})
        logger.info("referral_finalized", email=email, referred_by=referrer)
        return referrer
