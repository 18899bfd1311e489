"""Email service for the June waitlist using Mailgun."""

from html import escape
from typing import Optional

import httpx

from waitlist.errors import EmailDeliveryFailed
from waitlist.logging_config import get_logger
from waitlist.settings import settings

logger = get_logger(__name__)


class EmailService:
    """Email service using the Mailgun messages API.

    Handles transactional emails:
    - Magic sign-in link
    - Welcome email with the member's referral code

    Delivery is best effort: failures are logged and reported as ``False``,
    never raised to the caller.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        domain: Optional[str] = None,
        from_email: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        site_url: Optional[str] = None,
        invites_per_user: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize email service.

        Args default to the values in settings. ``transport`` replaces the
        network layer of the HTTP client (tests use ``httpx.MockTransport``).
        """
        self.api_key = api_key if api_key is not None else settings.mailgun_api_key
        self.domain = domain if domain is not None else settings.mailgun_domain
        self.from_email = from_email or settings.mailgun_from
        self.base_url = (base_url or settings.mailgun_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout_seconds
        self.site_url = site_url or settings.site_url
        self.invites_per_user = invites_per_user or settings.invites_per_user
        self.transport = transport
        self.enabled = bool(self.api_key and self.domain)

        if not self.enabled:
            logger.warning("email_service_disabled", reason="MAILGUN_API_KEY or MAILGUN_DOMAIN not set")

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v3/{self.domain}/messages"

    async def _deliver(self, to_email: str, subject: str, html_content: str) -> str | None:
        """Post one message to Mailgun.

        Returns:
            Mailgun message id

        Raises:
            EmailDeliveryFailed: Network error or non-2xx response
        """
        data = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
        }

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    self.messages_url,
                    auth=("api", self.api_key),
                    data=data,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryFailed(f"Mailgun request failed: {e}") from e

        if response.status_code not in (200, 201, 202):
            raise EmailDeliveryFailed(
                f"Mailgun returned {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json().get("id")
        except ValueError:
            return None

    async def send(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send an email.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.warning("email_not_sent", reason="service_disabled", to=to_email)
            return False

        try:
            message_id = await self._deliver(to_email, subject, html_content)
        except EmailDeliveryFailed as e:
            logger.error("email_send_failed", to=to_email, subject=subject, error=e.message)
            return False

        logger.info("email_sent", to=to_email, subject=subject, message_id=message_id)
        return True

    async def send_sign_in_email(self, to_email: str, sign_in_link: str) -> bool:
        """Send the magic sign-in link.

        Args:
            to_email: User's email address
            sign_in_link: Link that verifies the address when opened

        Returns:
            True if sent successfully
        """
        subject = "Sign in to JUNE 🌞"

        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin:auto; padding: 20px; background: #f5f5f5;">
          <div style="background: linear-gradient(135deg, #004499, #ff7733); padding: 30px; border-radius: 10px; color: white; text-align:center;">
            <h1>Welcome to JUNE</h1>
            <p>Your money's new season begins here.</p>
          </div>
          <div style="padding: 20px; text-align:center; background:white; border-radius: 8px; margin-top:20px;">
            <h2>Hey there 👋</h2>
            <p>Click below to securely verify your email and sign in:</p>
            <a href="{escape(sign_in_link)}" style="display:inline-block; margin-top:20px; padding:12px 24px; background:#004499; color:white; text-decoration:none; border-radius:6px;">Verify &amp; Join JUNE</a>
          </div>
          <p style="font-size:12px; color:#666; margin-top:30px; text-align:center;">
            If you didn't request this, please ignore this email.
          </p>
        </div>
        """

        return await self.send(to_email, subject, html_content)

    async def send_welcome_email(self, to_email: str, referral_code: str) -> bool:
        """Send welcome email after verification.

        Args:
            to_email: User's email address
            referral_code: The member's new referral code

        Returns:
            True if sent successfully
        """
        subject = "Welcome to JUNE 🌞"

        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin:auto; padding: 20px; background: #f5f5f5;">
          <div style="background: linear-gradient(135deg, #004499, #ff7733); padding: 30px; border-radius: 10px; color: white; text-align:center;">
            <h1>You're in early. Welcome to June 🌞</h1>
            <p>You've joined a new kind of savings movement.</p>
          </div>
          <div style="padding: 20px; text-align:center; background:white; border-radius: 8px; margin-top:20px;">
            <h2>Hey there 👋</h2>
            <p>Thanks for verifying your email! You're officially part of JUNE's early access list.</p>
            <p>As one of the first members, you now have {self.invites_per_user} exclusive invites to share with people you care about.</p>
            <p>Each person who joins with your code moves you closer to priority early access when June launches.</p>

            <div style="margin: 30px 0; padding: 20px; background: #f0f7ff; border-radius: 8px; border: 2px dashed #004499;">
              <p style="margin: 0 0 10px 0; color: #666; font-size: 14px;">Your unique referral code:</p>
              <p style="margin: 0; font-size: 24px; font-weight: bold; color: #004499; letter-spacing: 2px;">{referral_code}</p>
              <p style="margin: 15px 0 0 0; color: #666; font-size: 14px;">Share this code with friends and climb the leaderboard! 🚀</p>
            </div>

            <p>We'll keep you posted with updates and exclusive invites soon.</p>
            <a href="{self.site_url}" style="display:inline-block; margin-top:20px; padding:12px 24px; background:#004499; color:white; text-decoration:none; border-radius:6px;">Visit Our Site</a>
          </div>
          <p style="font-size:12px; color:#666; margin-top:30px; text-align:center;">&copy; JUNE. All rights reserved.</p>
        </div>
        """

        return await self.send(to_email, subject, html_content)
