"""
bookswap.api.routes.billing — Subscription checkout, cancel & callbacks
========================================================================

The provider's own signature check is done upstream; the callback
endpoint here only accepts events relayed with the shared
``BILLING_WEBHOOK_TOKEN``.
"""

from __future__ import annotations

import logging
import os
import secrets
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, status
from pydantic import BaseModel, Field

from bookswap.api.deps import CurrentUserId, ServicesDep
from bookswap.database.engine import run_db
from bookswap.services import billing_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/billing", tags=["billing"])


class EventData(BaseModel):
    object: dict = Field(default_factory=dict)


class BillingEvent(BaseModel):
    type: str
    data: EventData = Field(default_factory=EventData)


@router.post("/checkout-session")
async def create_checkout_session(user_id: CurrentUserId, services: ServicesDep):
    url = await run_db(
        billing_service.create_checkout_session,
        services.engine, services.payments, services.config,
        user_id=user_id,
    )
    return {"url": url}


@router.post("/cancel")
async def cancel_subscription(user_id: CurrentUserId, services: ServicesDep):
    await run_db(
        billing_service.cancel_subscription,
        services.engine, services.payments,
        user_id=user_id,
    )
    return {"message": "Subscription cancelled"}


@router.get("/status")
async def subscription_status(user_id: CurrentUserId, services: ServicesDep):
    return await run_db(
        billing_service.subscription_status, services.engine, user_id=user_id,
    )


@router.post("/events")
async def billing_event(
    event: BillingEvent,
    services: ServicesDep,
    x_webhook_token: Annotated[str | None, Header()] = None,
):
    expected = os.getenv("BILLING_WEBHOOK_TOKEN", "")
    if not expected:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Billing callbacks not configured")
    if not x_webhook_token or not secrets.compare_digest(x_webhook_token, expected):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid webhook token")

    new_status = await run_db(
        billing_service.apply_billing_event,
        services.engine, services.notifier, event.type, event.data.object,
    )
    return {"received": True, "status": new_status}
