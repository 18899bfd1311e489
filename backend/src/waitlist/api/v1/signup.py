"""Signup API v1 endpoints."""

from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from waitlist.api.deps import get_signup_service
from waitlist.api.rate_limit import SIGN_IN_LIMIT, VERIFY_LIMIT, limiter
from waitlist.logging_config import get_logger
from waitlist.settings import settings
from waitlist.signup.service import SignupService

logger = get_logger(__name__)

router = APIRouter(tags=["signup"])


# ==================== MODELS ====================


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class SignInEmailRequest(BaseModel):
    """Request a magic sign-in link."""
    email: EmailStr | None = None
    referral_code: str | None = Field(default=None, max_length=32)
    return_url: str | None = Field(default=None, max_length=2000)

    @field_validator("email", "referral_code", "return_url", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)


class SignInEmailResponse(BaseModel):
    success: bool = True
    message: str
    email_sent: bool
    referral_applied: bool


class VerifyRequest(BaseModel):
    """Token taken from the sign-in link."""
    token: str | None = None

    @field_validator("token", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return _blank_to_none(v)


class VerifyResponse(BaseModel):
    success: bool = True
    email: str
    referral_code: str
    referral_count: int
    referred_by: str | None = None
    created: bool


# ==================== HELPERS ====================


def _allowed_origins() -> set[str]:
    return {origin.strip().rstrip("/") for origin in settings.allowed_origins.split(",") if origin.strip()}


def _check_return_url(return_url: str | None) -> None:
    """Only send sign-in links that open one of our own sites."""
    if return_url is None:
        return

    parts = urlsplit(return_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    if parts.scheme not in ("http", "https") or origin not in _allowed_origins():
        logger.warning("return_url_rejected", return_url=return_url)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="return_url is not an allowed origin",
        )


# ==================== ENDPOINTS ====================


@router.post("/send-signin-email", response_model=SignInEmailResponse)
@limiter.limit(SIGN_IN_LIMIT)
async def send_signin_email(
    request: Request,
    body: SignInEmailRequest,
    service: SignupService = Depends(get_signup_service),
):
    """Email a magic sign-in link.

    A referral code, if given, must belong to a verified member; it is
    credited once the new address is verified.
    """
    _check_return_url(body.return_url)

    result = await service.request_sign_in(
        email=body.email,
        referral_code=body.referral_code,
        return_url=body.return_url,
    )

    return SignInEmailResponse(
        message="Verification email sent" if result.email_sent else "Verification email could not be sent",
        email_sent=result.email_sent,
        referral_applied=result.referral_applied,
    )


@router.post("/verify-success", response_model=VerifyResponse)
@limiter.limit(VERIFY_LIMIT)
async def verify_success(
    request: Request,
    body: VerifyRequest,
    service: SignupService = Depends(get_signup_service),
):
    """Complete verification for the email named by the sign-in token.

    Calling it again for an already verified email returns the same member.
    """
    result = await service.verify(body.token)
    user = result.user

    return VerifyResponse(
        email=user["email"],
        referral_code=user["referral_code"],
        referral_count=user["referral_count"],
        referred_by=user.get("referred_by"),
        created=result.created,
    )
