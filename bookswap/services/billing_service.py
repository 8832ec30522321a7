"""
bookswap.services.billing_service — Subscription Paywall
=========================================================

Two halves:

* **Entitlement** — :func:`is_entitled` answers "may this user upload a
  book / request a swap?" from the cached ``users.subscription_status``
  column.  Nothing here calls the payment provider, so the check is
  cheap and works while the provider is down.
* **Provider integration** — :class:`PaymentClient` talks to the Stripe
  REST API over ``httpx`` (checkout, cancel).  Provider callbacks are fed
  to :func:`apply_billing_event`, which overwrites the cached status.
  Callbacks arrive in no particular order relative to swap transitions;
  a briefly stale status is tolerated.

Signature verification of callbacks happens before this module is
reached; events arrive here already parsed.
"""

from __future__ import annotations

import logging
import os
from datetime import UTC, datetime

import httpx
from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from bookswap.config import BookSwapConfig
from bookswap.database.engine import get_session
from bookswap.database.models import SubscriptionStatus, User
from bookswap.engine.events import NotificationKind, Recipient
from bookswap.services.exceptions import BillingUnavailable, NotEntitled, NotFound
from bookswap.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

STRIPE_API = "https://api.stripe.com/v1"

ENTITLED_STATUSES: frozenset[str] = frozenset(
    {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING}
)


# ---------------------------------------------------------------------------
# Entitlement
# ---------------------------------------------------------------------------
def is_entitled(user: User) -> bool:
    """True if *user*'s cached subscription status covers paywalled actions."""
    return user.subscription_status in ENTITLED_STATUSES


def require_entitlement(user: User) -> None:
    if not is_entitled(user):
        raise NotEntitled("Active subscription required")


def check_entitlement(engine: Engine, user_id: str) -> bool:
    """Entitlement lookup by id.  Unknown users are not entitled."""
    with Session(engine) as session:
        user = session.get(User, user_id)
        return user is not None and is_entitled(user)


# ---------------------------------------------------------------------------
# Payment provider client
# ---------------------------------------------------------------------------
class PaymentClient:
    """Minimal Stripe client — only the calls the paywall needs.

    Stripe takes form-encoded bodies with bracketed keys for nested
    objects (``metadata[userId]=...``).
    """

    def __init__(
        self,
        secret_key: str,
        price_id: str,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.price_id = price_id
        self._client = client or httpx.Client(
            base_url=STRIPE_API,
            timeout=10,
            transport=httpx.HTTPTransport(retries=1),
        )
        self._headers = {"Authorization": f"Bearer {secret_key}"}

    def _post(self, path: str, data: dict) -> dict:
        try:
            resp = self._client.post(path, data=data, headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Payment provider call failed: POST %s", path)
            raise BillingUnavailable("Payment provider request failed") from exc
        return resp.json()

    def _get(self, path: str, params: dict) -> dict:
        try:
            resp = self._client.get(path, params=params, headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Payment provider call failed: GET %s", path)
            raise BillingUnavailable("Payment provider request failed") from exc
        return resp.json()

    def create_customer(self, *, email: str, user_id: str) -> str:
        body = self._post("/customers", {"email": email, "metadata[userId]": user_id})
        return body["id"]

    def create_checkout_session(
        self,
        *,
        customer_id: str,
        user_id: str,
        trial_period_days: int,
        success_url: str,
        cancel_url: str,
    ) -> str:
        """Start a subscription checkout and return the hosted page URL."""
        body = self._post(
            "/checkout/sessions",
            {
                "customer": customer_id,
                "mode": "subscription",
                "line_items[0][price]": self.price_id,
                "line_items[0][quantity]": 1,
                "subscription_data[trial_period_days]": trial_period_days,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata[userId]": user_id,
            },
        )
        return body["url"]

    def list_active_subscriptions(self, customer_id: str) -> list[dict]:
        body = self._get("/subscriptions", {"customer": customer_id, "status": "active"})
        return body.get("data", [])

    def cancel_subscription(self, subscription_id: str) -> None:
        try:
            resp = self._client.delete(
                f"/subscriptions/{subscription_id}", headers=self._headers
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Payment provider call failed: cancel %s", subscription_id)
            raise BillingUnavailable("Payment provider request failed") from exc

    def close(self) -> None:
        self._client.close()


def create_payment_client() -> PaymentClient | None:
    """Build the client from ``STRIPE_SECRET_KEY`` / ``STRIPE_PRICE_ID``.

    Returns ``None`` when billing isn't configured; billing endpoints then
    answer 503 while the rest of the app keeps working.
    """
    secret_key = os.getenv("STRIPE_SECRET_KEY", "").strip()
    price_id = os.getenv("STRIPE_PRICE_ID", "").strip()
    if not secret_key:
        logger.warning("STRIPE_SECRET_KEY is not set; payment features disabled")
        return None
    if not price_id:
        logger.warning("STRIPE_PRICE_ID is not set; payment features disabled")
        return None
    return PaymentClient(secret_key, price_id)


def _require_client(client: PaymentClient | None) -> PaymentClient:
    if client is None:
        raise BillingUnavailable("Payment system not configured")
    return client


# ---------------------------------------------------------------------------
# User-facing billing operations
# ---------------------------------------------------------------------------
def create_checkout_session(
    engine: Engine,
    client: PaymentClient | None,
    cfg: BookSwapConfig,
    *,
    user_id: str,
) -> str:
    """Return a checkout URL, creating the provider customer on first use."""
    client = _require_client(client)
    with get_session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")

        if not user.billing_customer_id:
            user.billing_customer_id = client.create_customer(
                email=user.email, user_id=user.id,
            )
            logger.info("Created billing customer for user %s", user.id)
        customer_id = user.billing_customer_id

    return client.create_checkout_session(
        customer_id=customer_id,
        user_id=user_id,
        trial_period_days=cfg.trial_period_days,
        success_url=f"{cfg.frontend_url}/?success=true",
        cancel_url=f"{cfg.frontend_url}/?canceled=true",
    )


def cancel_subscription(
    engine: Engine,
    client: PaymentClient | None,
    *,
    user_id: str,
) -> None:
    client = _require_client(client)
    with get_session(engine) as session:
        user = session.get(User, user_id)
        if user is None or not user.billing_customer_id:
            raise NotFound("No subscription found")

        subscriptions = client.list_active_subscriptions(user.billing_customer_id)
        if not subscriptions:
            raise NotFound("No active subscription found")

        client.cancel_subscription(subscriptions[0]["id"])
        user.subscription_status = SubscriptionStatus.CANCELED.value
        logger.info("Subscription canceled for user %s", user.id)


def subscription_status(engine: Engine, *, user_id: str) -> dict:
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return {
            "status": user.subscription_status,
            "is_active": is_entitled(user),
        }


# ---------------------------------------------------------------------------
# Provider callbacks
# ---------------------------------------------------------------------------
def _status_from_subscription(subscription: dict) -> SubscriptionStatus:
    status = subscription.get("status")
    if status == "canceled" or subscription.get("cancel_at_period_end"):
        return SubscriptionStatus.CANCELED
    if status in ("unpaid", "past_due"):
        return SubscriptionStatus.INACTIVE
    if status == "trialing":
        return SubscriptionStatus.TRIALING
    return SubscriptionStatus.ACTIVE


def _user_by_customer(session: Session, customer_id: str | None) -> User | None:
    if not customer_id:
        return None
    return session.scalar(select(User).where(User.billing_customer_id == customer_id))


def apply_billing_event(
    engine: Engine,
    notifier: NotificationDispatcher,
    event_type: str,
    obj: dict,
) -> str | None:
    """Apply one provider callback to the cached subscription status.

    Parameters
    ----------
    event_type : Provider event name, e.g. ``customer.subscription.updated``.
    obj : The event's ``data.object`` payload.

    Returns
    -------
    The new status written, or ``None`` if the event changed nothing
    (unknown type, unknown user, or a notification-only event).
    """
    with get_session(engine) as session:
        if event_type == "checkout.session.completed":
            user_id = (obj.get("metadata") or {}).get("userId")
            user = session.get(User, user_id) if user_id else None
            if user is None:
                logger.warning("Checkout completed for unknown user %r", user_id)
                return None
            if obj.get("customer") and not user.billing_customer_id:
                user.billing_customer_id = obj["customer"]
            new_status = SubscriptionStatus.ACTIVE

        elif event_type == "customer.subscription.deleted":
            user = _user_by_customer(session, obj.get("customer"))
            new_status = SubscriptionStatus.CANCELED

        elif event_type == "customer.subscription.updated":
            user = _user_by_customer(session, obj.get("customer"))
            new_status = _status_from_subscription(obj)

        elif event_type == "invoice.payment_failed":
            user = _user_by_customer(session, obj.get("customer"))
            new_status = SubscriptionStatus.INACTIVE

        elif event_type == "customer.subscription.trial_will_end":
            user = _user_by_customer(session, obj.get("customer"))
            if user is not None:
                trial_end = obj.get("trial_end")
                notifier.notify(
                    NotificationKind.TRIAL_ENDING,
                    Recipient(email=user.email, name=user.name),
                    {
                        "trial_end": (
                            datetime.fromtimestamp(trial_end, UTC).date().isoformat()
                            if trial_end else None
                        ),
                    },
                )
                logger.info("Trial ending notice queued for user %s", user.id)
            return None

        else:
            logger.debug("Ignoring billing event %s", event_type)
            return None

        if user is None:
            logger.warning("Billing event %s for unknown customer", event_type)
            return None

        user.subscription_status = new_status.value
        logger.info(
            "Subscription status for user %s → %s (%s)",
            user.id, new_status, event_type,
        )
        return new_status.value
