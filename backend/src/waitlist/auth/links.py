"""Magic sign-in links backed by signed JWTs."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from jose import JWTError, jwt

from waitlist.errors import InvalidSignInLink
from waitlist.logging_config import get_logger
from waitlist.settings import settings

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
TOKEN_TYPE = "sign_in"


class SignInLinkMinter:
    """Mints and checks the links sent in sign-in emails.

    The link is the caller's return URL with a ``token`` query parameter.
    The token names the email it was issued for and expires after ``ttl``.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        ttl: timedelta | None = None,
        algorithm: str = JWT_ALGORITHM,
    ):
        self.secret_key = secret_key or settings.jwt_secret_key
        self.ttl = ttl or timedelta(minutes=settings.sign_in_link_ttl_minutes)
        self.algorithm = algorithm

    def create_token(self, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": email,
            "type": TOKEN_TYPE,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def mint(self, email: str, return_url: str) -> str:
        """Build the sign-in URL for an email.

        Args:
            email: Address the link signs in
            return_url: Page the link opens; existing query params are kept

        Returns:
            Sign-in URL
        """
        parts = urlsplit(return_url)
        query = parse_qsl(parts.query, keep_blank_values=True)
        query.append(("token", self.create_token(email)))
        return urlunsplit(parts._replace(query=urlencode(query)))

    def verify(self, token: str) -> str:
        """Return the email a sign-in token was issued for.

        Raises:
            InvalidSignInLink: Bad signature, expired, or not a sign-in token
        """
        if not token:
            raise InvalidSignInLink()

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.debug("sign_in_token_rejected", error=str(e))
            raise InvalidSignInLink() from e

        email = payload.get("sub")
        if payload.get("type") != TOKEN_TYPE or not email:
            logger.debug("sign_in_token_rejected", error="wrong token type")
            raise InvalidSignInLink()

        return email
