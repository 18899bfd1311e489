"""Per-client request limits for the waitlist API.

Limits come from settings so a deployment can tighten the sign-in endpoint,
which sends email, without a code change.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from waitlist.settings import Settings, settings

SIGN_IN_LIMIT = settings.rate_limit_sign_in
VERIFY_LIMIT = settings.rate_limit_verify
VALIDATE_LIMIT = settings.rate_limit_validate


def limiter_enabled(config: Settings = settings) -> bool:
    """Explicit setting wins; otherwise only production is limited."""
    if config.rate_limit_enabled is not None:
        return config.rate_limit_enabled
    return config.env == "production"


def build_limiter(config: Settings = settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        default_limits=[config.rate_limit_default],
        storage_uri=config.rate_limit_storage_uri,
        enabled=limiter_enabled(config),
    )


# Shared by every router; decorators bind to this instance at import
limiter = build_limiter()
