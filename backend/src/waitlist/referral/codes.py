"""Referral code generation."""

import secrets
import string
from datetime import datetime
from typing import Protocol

from waitlist.errors import CodeGenerationExhausted
from waitlist.logging_config import get_logger
from waitlist.storage.store import REFERRAL_CODES, USERS, DocumentStore

logger = get_logger(__name__)

ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_PREFIX = "JUNE"
DEFAULT_LENGTH = 6
DEFAULT_MAX_ATTEMPTS = 10


class Chooser(Protocol):
    def choice(self, seq: str) -> str: ...


def normalize_code(code: str) -> str:
    return code.strip().upper()


class ReferralCodeGenerator:
    """Issues unique, human-readable referral codes like ``JUNE-AB12C3``.

    A code is handed out only after a claim document keyed by the code has
    been created with ``create_if_absent``, so two generators racing on the
    same candidate cannot both win it.
    """

    def __init__(
        self,
        store: DocumentStore,
        prefix: str = DEFAULT_PREFIX,
        length: int = DEFAULT_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: Chooser | None = None,
    ):
        if length <= 0:
            raise ValueError("length must be positive")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")

        self.store = store
        self.prefix = prefix.upper()
        self.length = length
        self.max_attempts = max_attempts
        self.rng = rng or secrets.SystemRandom()

    def candidate(self) -> str:
        """Draw one code without checking for collisions."""
        suffix = "".join(self.rng.choice(ALPHABET) for _ in range(self.length))
        return f"{self.prefix}-{suffix}"

    def is_well_formed(self, code: str) -> bool:
        prefix, sep, suffix = code.rpartition("-")
        return (
            sep == "-"
            and prefix == self.prefix
            and len(suffix) == self.length
            and all(ch in ALPHABET for ch in suffix)
        )

    def generate_unique_code(self, owner: str | None = None) -> str:
        """Reserve and return a code no user holds.

        Args:
            owner: Email the code is reserved for (stored on the claim)

        Raises:
            CodeGenerationExhausted: No free code within ``max_attempts`` draws
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self.candidate()

            # Users created before claims existed still count as taken
            if self.store.query(USERS, "referral_code", code, limit=1):
                logger.debug("referral_code_collision", code=code, attempt=attempt)
                continue

            claimed = self.store.create_if_absent(
                REFERRAL_CODES,
                code,
                {"email": owner, "created_at": datetime.utcnow()},
            )
            if claimed:
                logger.info("referral_code_created", code=code, owner=owner, attempts=attempt)
                return code

            logger.debug("referral_code_collision", code=code, attempt=attempt)

        logger.error("referral_code_exhausted", attempts=self.max_attempts, owner=owner)
        raise CodeGenerationExhausted(self.max_attempts)

    def release(self, code: str) -> bool:
        """Drop the claim on a code that ended up unused."""
        released = self.store.delete(REFERRAL_CODES, code)
        if released:
            logger.info("referral_code_released", code=code)
        return released
