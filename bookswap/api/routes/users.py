"""
bookswap.api.routes.users — Members, badges, leaderboard & dashboard
=====================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from bookswap.api.deps import CurrentUserId, ServicesDep, get_engine
from bookswap.database.models import Badge, User
from bookswap.services import badge_service, user_service

router = APIRouter(tags=["users"])


class UserCreate(BaseModel):
    email: str = Field(max_length=255)
    name: str = Field(min_length=1, max_length=100)
    postcode: str = Field(max_length=10)


def _public_user_dict(u: User) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "postcode": u.postcode,
        "subscription_status": u.subscription_status,
        "swaps": u.swaps,
    }


def _badge_dict(b: Badge) -> dict:
    return {
        "name": b.name,
        "created_at": b.created_at.isoformat() if b.created_at else None,
    }


@router.post("/users", status_code=status.HTTP_201_CREATED)
def register(body: UserCreate, services: ServicesDep):
    user = user_service.register_user(
        services.engine, services.notifier,
        email=body.email, name=body.name, postcode=body.postcode,
    )
    return {**_public_user_dict(user), "email": user.email}


@router.get("/users/me")
def me(user_id: CurrentUserId, engine: Engine = Depends(get_engine)):
    user = user_service.get_user(engine, user_id)
    return {**_public_user_dict(user), "email": user.email}


@router.get("/users/{user_id}")
def get_user(user_id: str, engine: Engine = Depends(get_engine)):
    return _public_user_dict(user_service.get_user(engine, user_id))


@router.get("/users/{user_id}/badges")
def get_user_badges(user_id: str, engine: Engine = Depends(get_engine)):
    return [_badge_dict(b) for b in badge_service.get_user_badges(engine, user_id)]


@router.get("/leaderboard/{postcode}")
def leaderboard(postcode: str, engine: Engine = Depends(get_engine)):
    """Members of a postcode ranked by completed swaps."""
    return [
        {
            "rank": entry.rank,
            "user": _public_user_dict(entry.user),
            "badges": [_badge_dict(b) for b in entry.badges],
        }
        for entry in user_service.get_leaderboard(engine, postcode)
    ]


@router.get("/active-areas")
def active_areas(engine: Engine = Depends(get_engine)):
    return user_service.get_active_areas(engine)


@router.get("/dashboard")
def dashboard(user_id: CurrentUserId, engine: Engine = Depends(get_engine)):
    data = user_service.get_dashboard(engine, user_id)
    data["badges"] = [_badge_dict(b) for b in data["badges"]]
    return data
