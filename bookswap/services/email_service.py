"""
bookswap.services.email_service — Transactional Email Delivery
===============================================================

Turns a :class:`~bookswap.engine.events.Notification` into a plain-text
email and hands it to a provider.  Two providers:

* :class:`SendGridEmailSender` — SendGrid v3 HTTP API over ``httpx``.
* :class:`LogOnlyEmailSender` — used when ``SENDGRID_API_KEY`` is unset;
  logs and drops the message so local development works without keys.

Senders raise on failure.  Catching and logging is the dispatcher's job
(:mod:`bookswap.services.notification_service`).
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod

import httpx

from bookswap.config import BookSwapConfig
from bookswap.engine.events import Notification, NotificationKind

logger = logging.getLogger(__name__)

SENDGRID_API = "https://api.sendgrid.com/v3"


# ---------------------------------------------------------------------------
# Message rendering
# ---------------------------------------------------------------------------
def build_message(
    notification: Notification, *, app_name: str, app_url: str
) -> tuple[str, str]:
    """Return ``(subject, body)`` for *notification*."""
    ctx = notification.context
    name = notification.recipient.name
    title = ctx.get("book_title", "your book")

    match notification.kind:
        case NotificationKind.WELCOME:
            subject = f"Welcome to {app_name}"
            lines = [
                f"Hi {name},",
                "Thanks for joining. List a book and start swapping with your neighbours.",
            ]
        case NotificationKind.SWAP_REQUESTED:
            subject = f'New swap request for "{title}"'
            lines = [
                f"Hi {name},",
                f'{ctx.get("requester_name", "Someone")} wants to swap for your book "{title}".',
                "Log in to accept or reject this request.",
            ]
        case NotificationKind.SWAP_ACCEPTED:
            subject = "Your swap request was accepted"
            lines = [
                f"Hi {name},",
                f'{ctx.get("owner_name", "The owner")} has accepted your swap request for "{title}".',
                "Arrange to meet somewhere public to complete the swap.",
            ]
        case NotificationKind.SWAP_REJECTED:
            subject = "Update on your swap request"
            lines = [
                f"Hi {name},",
                f'The swap request for "{title}" was not accepted this time.',
            ]
        case NotificationKind.SWAP_COMPLETED:
            subject = "Swap completed"
            lines = [f"Hi {name},", f'Your swap for "{title}" is complete.']
            badges = ctx.get("badges_earned") or []
            if badges:
                lines.append("New badge earned: " + ", ".join(badges))
        case NotificationKind.TRIAL_ENDING:
            subject = "Your free trial is ending soon"
            trial_end = ctx.get("trial_end")
            lines = [
                f"Hi {name},",
                f"Your trial ends on {trial_end}." if trial_end else "Your trial ends soon.",
            ]
        case _:
            raise ValueError(f"Unknown notification kind: {notification.kind}")

    lines.append(app_url)
    return subject, "\n\n".join(lines)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
class EmailSender(ABC):
    """Abstract email delivery provider."""

    @abstractmethod
    def send(self, to_email: str, to_name: str, subject: str, body: str) -> None:
        """Deliver one message.  Raises on failure."""

    def close(self) -> None:
        """Release any held resources."""


class SendGridEmailSender(EmailSender):
    """Send via the SendGrid v3 ``mail/send`` endpoint."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.from_address = from_address
        self.from_name = from_name
        self._client = client or httpx.Client(
            base_url=SENDGRID_API,
            timeout=10,
            transport=httpx.HTTPTransport(retries=1),
        )
        self._headers = {"Authorization": f"Bearer {api_key}"}

    def send(self, to_email: str, to_name: str, subject: str, body: str) -> None:
        resp = self._client.post(
            "/mail/send",
            headers=self._headers,
            json={
                "personalizations": [{"to": [{"email": to_email, "name": to_name}]}],
                "from": {"email": self.from_address, "name": self.from_name},
                "subject": subject,
                "content": [{"type": "text/plain", "value": body}],
            },
        )
        resp.raise_for_status()
        logger.info("Email sent to %s: %s", to_email, subject)

    def close(self) -> None:
        self._client.close()


class LogOnlyEmailSender(EmailSender):
    def send(self, to_email: str, to_name: str, subject: str, body: str) -> None:
        logger.warning("SendGrid not configured - skipping email: %s", subject)


def create_email_sender(cfg: BookSwapConfig) -> EmailSender:
    """Build the sender for this process from ``SENDGRID_API_KEY``."""
    api_key = os.getenv("SENDGRID_API_KEY", "").strip()
    if not api_key:
        logger.warning("SENDGRID_API_KEY is not set; emails will be logged, not sent")
        return LogOnlyEmailSender()
    return SendGridEmailSender(api_key, cfg.email_from, cfg.app_name)
