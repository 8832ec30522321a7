"""
bookswap.api.routes.swaps — Swap lifecycle endpoints
=====================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy import Engine

from bookswap.api.deps import CurrentUserId, ServicesDep, get_engine
from bookswap.database.models import SwapRequest
from bookswap.services import swap_service

router = APIRouter(prefix="/swaps", tags=["swaps"])


class SwapCreate(BaseModel):
    book_id: str


def swap_dict(s: SwapRequest) -> dict:
    return {
        "id": s.id,
        "book_id": s.book_id,
        "requester_id": s.requester_id,
        "owner_id": s.owner_id,
        "status": s.status,
        "meeting_location": s.meeting_location,
        "meeting_date": s.meeting_date.isoformat() if s.meeting_date else None,
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "completed_at": s.completed_at.isoformat() if s.completed_at else None,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def request_swap(body: SwapCreate, user_id: CurrentUserId, services: ServicesDep):
    swap = swap_service.request_swap(
        services.engine, services.notifier,
        book_id=body.book_id, requester_id=user_id,
    )
    return swap_dict(swap)


@router.get("")
def list_swaps(
    user_id: CurrentUserId,
    role: Literal["requester", "owner"] | None = Query(None),
    engine: Engine = Depends(get_engine),
):
    """The caller's swaps; ``role=owner`` for incoming, ``requester`` for outgoing."""
    return [swap_dict(s) for s in swap_service.list_user_swaps(engine, user_id, role=role)]


@router.get("/{swap_id}")
def get_swap(swap_id: str, user_id: CurrentUserId, engine: Engine = Depends(get_engine)):
    return swap_dict(swap_service.get_swap(engine, swap_id, viewer_id=user_id))


@router.post("/{swap_id}/accept")
def accept_swap(swap_id: str, user_id: CurrentUserId, services: ServicesDep):
    swap = swap_service.accept_swap(
        services.engine, services.notifier, swap_id=swap_id, acting_user_id=user_id,
    )
    return swap_dict(swap)


@router.post("/{swap_id}/reject")
def reject_swap(swap_id: str, user_id: CurrentUserId, services: ServicesDep):
    swap = swap_service.reject_swap(
        services.engine, services.notifier, swap_id=swap_id, acting_user_id=user_id,
    )
    return swap_dict(swap)


@router.post("/{swap_id}/complete")
def complete_swap(swap_id: str, user_id: CurrentUserId, services: ServicesDep):
    result = swap_service.complete_swap(
        services.engine, services.notifier, swap_id=swap_id, acting_user_id=user_id,
    )
    return {**swap_dict(result.swap), "badges_earned": result.badges_earned}
