"""
Email relay — the outbound transactional-email collaborator.

The service only ever needs one capability:

    await relay.send(to_address, subject, html_body) -> bool

Two relays are provided:
  - BrevoEmailRelay posts to a Brevo-compatible HTTP API with httpx.
    Every call is bounded by EMAIL_TIMEOUT_SECONDS; a timeout, transport
    error, or non-2xx answer counts as a failed delivery.
  - ConsoleEmailRelay writes the message to the log (local development).

send() never raises for delivery problems; it returns False. Callers treat
False as a hard failure of their operation (see EmailDeliveryError), since a
one-time password that never reached the inbox is useless.

The relay is injected through the get_email_relay dependency so tests can
swap in a recording fake.
"""

import httpx
import structlog

from storefront.config import settings

logger = structlog.get_logger("storefront.mailer")


class EmailRelay:
    """Interface: deliver a single HTML message."""

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        raise NotImplementedError


class BrevoEmailRelay(EmailRelay):
    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender_name: str,
        sender_address: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender_name = sender_name
        self.sender_address = sender_address
        self.timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        payload = {
            "sender": {"name": self.sender_name, "email": self.sender_address},
            "to": [{"email": to_address}],
            "subject": subject,
            "htmlContent": html_body,
        }
        headers = {
            "accept": "application/json",
            "api-key": self.api_key,
            "content-type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error("Email relay timed out", to=to_address, subject=subject)
            return False
        except httpx.HTTPError as exc:
            logger.error("Email relay unreachable", to=to_address, subject=subject, error=str(exc))
            return False

        if response.is_success:
            logger.info("Email sent", to=to_address, subject=subject)
            return True

        logger.error(
            "Email relay rejected message",
            to=to_address,
            subject=subject,
            status_code=response.status_code,
        )
        return False


class ConsoleEmailRelay(EmailRelay):
    """Logs messages instead of sending them."""

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        logger.info("Email (console relay)", to=to_address, subject=subject, body=html_body)
        return True


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def otp_email(code: str, purpose: str) -> tuple[str, str]:
    """Subject and HTML body for a one-time password message."""
    subject = "Your OTP Code"
    body = (
        f"<p>Your OTP for {purpose} is <b>{code}</b>. "
        f"It expires in {settings.OTP_EXPIRE_MINUTES} minutes. "
        "Do not share it with anyone.</p>"
    )
    return subject, body


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------

def build_email_relay() -> EmailRelay:
    if settings.EMAIL_BACKEND == "console":
        return ConsoleEmailRelay()
    return BrevoEmailRelay(
        api_url=settings.EMAIL_API_URL,
        api_key=settings.EMAIL_API_KEY,
        sender_name=settings.EMAIL_SENDER_NAME,
        sender_address=settings.EMAIL_SENDER_ADDRESS,
        timeout_seconds=settings.EMAIL_TIMEOUT_SECONDS,
    )


_email_relay = build_email_relay()


def get_email_relay() -> EmailRelay:
    """FastAPI dependency returning the process-wide relay."""
    return _email_relay
