"""Referral API v1 endpoints."""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from waitlist.api.deps import get_signup_service
from waitlist.api.rate_limit import VALIDATE_LIMIT, limiter
from waitlist.signup.service import MAX_LEADERBOARD_SIZE, SignupService

router = APIRouter(tags=["referral"])


class LeaderboardEntryResponse(BaseModel):
    rank: int
    email: str
    referral_count: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    total_members: int


class ValidateCodeRequest(BaseModel):
    """Request to validate a referral code."""
    code: str


class ValidateCodeResponse(BaseModel):
    valid: bool


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    limit: int | None = Query(default=None, ge=1, le=MAX_LEADERBOARD_SIZE),
    service: SignupService = Depends(get_signup_service),
):
    """Members with the most referrals. Emails are masked."""
    entries = service.leaderboard(limit)

    return LeaderboardResponse(
        entries=[
            LeaderboardEntryResponse(rank=e.rank, email=e.email, referral_count=e.referral_count)
            for e in entries
        ],
        total_members=service.member_count(),
    )


@router.post("/referral/validate", response_model=ValidateCodeResponse)
@limiter.limit(VALIDATE_LIMIT)
async def validate_referral_code(
    request: Request,
    body: ValidateCodeRequest,
    service: SignupService = Depends(get_signup_service),
):
    """Check a referral code before signup."""
    return ValidateCodeResponse(valid=service.validate_code(body.code))
