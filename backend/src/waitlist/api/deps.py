"""FastAPI dependencies."""

from fastapi import Request

from waitlist.signup.service import SignupService


def get_signup_service(request: Request) -> SignupService:
    """Service instance attached to the app by ``create_app``."""
    return request.app.state.signup_service
