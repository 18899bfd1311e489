"""Database models backing the document collections."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class VerifiedUser(Base):
    """A verified waitlist member, keyed by email."""

    __tablename__ = "verified_users"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    referral_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    referral_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    referred_by: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<VerifiedUser(email='{self.email}', code='{self.referral_code}', count={self.referral_count})>"


class PendingReferral(Base):
    """Referral captured at signup, consumed when the email is verified."""

    __tablename__ = "pending_referrals"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    referred_by: Mapped[str] = mapped_column(String(320), nullable=False)
    referral_code: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<PendingReferral(email='{self.email}', referred_by='{self.referred_by}')>"


class ReferralCodeClaim(Base):
    """Reservation of a referral code, keyed by the code itself."""

    __tablename__ = "referral_codes"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ReferralCodeClaim(code='{self.code}', email='{self.email}')>"
