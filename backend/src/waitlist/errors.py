"""Error types raised by the waitlist services.

Every error carries the HTTP status it maps to and a short machine-readable
code. Input and business-rule errors expose their message to the caller;
infrastructure errors (``public = False``) are reported as a generic failure.
"""


class WaitlistError(Exception):
    """Base class for all waitlist errors."""

    status_code = 400
    code = "waitlist_error"
    public = True

    def __init__(self, message: str | None = None):
        if message is None:
            message = (type(self).__doc__ or self.code).strip().splitlines()[0]
        super().__init__(message)
        self.message = message


class MissingInput(WaitlistError):
    """A required field is missing."""

    code = "missing_input"

    def __init__(self, field: str):
        super().__init__(f"{field.capitalize()} required")
        self.field = field


class AlreadyRegistered(WaitlistError):
    """This email is already verified."""

    status_code = 409
    code = "already_registered"

    def __init__(self, email: str):
        super().__init__(f"{email} is already registered")
        self.email = email


class InvalidReferralCode(WaitlistError):
    """Referral code does not belong to any user."""

    code = "invalid_referral_code"

    def __init__(self, referral_code: str):
        super().__init__(f"Invalid referral code: {referral_code}")
        self.referral_code = referral_code


class InvalidSignInLink(WaitlistError):
    """Sign-in link is invalid or has expired."""

    code = "invalid_sign_in_link"


class StoreUnavailable(WaitlistError):
    """Document store call failed."""

    status_code = 500
    code = "store_unavailable"
    public = False


class CodeGenerationExhausted(WaitlistError):
    """Could not find a free referral code."""

    status_code = 500
    code = "code_generation_exhausted"
    public = False

    def __init__(self, attempts: int):
        super().__init__(f"No free referral code after {attempts} attempts")
        self.attempts = attempts


class EmailDeliveryFailed(WaitlistError):
    """Email could not be delivered.

    Never reaches the caller: the email service logs it and reports False.
    """

    status_code = 502
    code = "email_delivery_failed"
    public = False
