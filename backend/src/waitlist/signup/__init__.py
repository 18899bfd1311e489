"""Signup flow for the June waitlist."""

from waitlist.signup.service import (
    LeaderboardEntry,
    SignInResult,
    SignupService,
    VerificationResult,
    create_signup_service,
)

__all__ = [
    "LeaderboardEntry",
    "SignInResult",
    "SignupService",
    "VerificationResult",
    "create_signup_service",
]
