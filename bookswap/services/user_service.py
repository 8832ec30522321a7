"""
bookswap.services.user_service — Members, Leaderboard & Dashboard
==================================================================

Registration plus the read-side views built on top of user counters:
the per-postcode leaderboard, the "active areas" list and a member's
dashboard summary.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from bookswap.database.engine import get_session
from bookswap.database.models import Badge, Book, User
from bookswap.engine.events import NotificationKind, Recipient
from bookswap.services.badge_service import count_books_uploaded
from bookswap.services.exceptions import ConflictError, NotFound, ValidationError
from bookswap.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

# UK postcode shape, e.g. "SW1A 1AA" / "sw1a1aa".  Not checked for existence.
POSTCODE_RE = re.compile(r"^[A-Z]{1,2}[0-9]{1,2}[A-Z]?\s?[0-9][A-Z]{2}$", re.IGNORECASE)
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ACTIVE_AREAS_LIMIT = 10


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    rank: int
    user: User
    badges: list[Badge]


def normalize_postcode(postcode: str) -> str:
    return postcode.strip().upper()


# ---------------------------------------------------------------------------
# Registration & lookup
# ---------------------------------------------------------------------------
def register_user(
    engine: Engine,
    notifier: NotificationDispatcher,
    *,
    email: str,
    name: str,
    postcode: str,
) -> User:
    """Create a member.  Email is stored lower-case, postcode upper-case.

    Raises
    ------
    ValidationError
        Malformed email, blank name or a postcode that isn't UK-shaped.
    ConflictError
        The email is already registered.
    """
    email = email.strip().lower()
    name = name.strip()
    postcode = normalize_postcode(postcode)

    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    if not name:
        raise ValidationError("Name is required")
    if not POSTCODE_RE.match(postcode):
        raise ValidationError("Invalid postcode")

    try:
        with get_session(engine) as session:
            existing = session.scalar(select(User).where(User.email == email))
            if existing is not None:
                raise ConflictError("Email already registered")
            user = User(email=email, name=name, postcode=postcode)
            session.add(user)
            session.flush()
            session.refresh(user)
    except IntegrityError as exc:
        raise ConflictError("Email already registered") from exc

    logger.info("User registered: %s (%s)", user.id, user.postcode)
    notifier.notify(NotificationKind.WELCOME, Recipient(email=user.email, name=user.name))
    return user


def get_user(engine: Engine, user_id: str) -> User:
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        session.expunge(user)
        return user


# ---------------------------------------------------------------------------
# Read-side views
# ---------------------------------------------------------------------------
def get_leaderboard(engine: Engine, postcode: str) -> list[LeaderboardEntry]:
    """Members of *postcode* ranked by completed swaps, with their badges."""
    with Session(engine) as session:
        users = session.scalars(
            select(User)
            .where(User.postcode == normalize_postcode(postcode))
            .options(selectinload(User.badges))
            .order_by(User.swaps.desc(), User.created_at)
        ).all()
        entries = [
            LeaderboardEntry(rank=i + 1, user=u, badges=list(u.badges))
            for i, u in enumerate(users)
        ]
        session.expunge_all()
        return entries


def get_active_areas(engine: Engine, limit: int = ACTIVE_AREAS_LIMIT) -> list[dict]:
    """Postcodes with the most listed books, with book and member counts."""
    with Session(engine) as session:
        book_counts = dict(session.execute(
            select(Book.postcode, func.count()).group_by(Book.postcode)
        ).all())
        user_counts = dict(session.execute(
            select(User.postcode, func.count()).group_by(User.postcode)
        ).all())

    areas = [
        {
            "postcode": postcode,
            "book_count": book_counts.get(postcode, 0),
            "user_count": user_counts.get(postcode, 0),
        }
        for postcode in book_counts.keys() | user_counts.keys()
    ]
    areas.sort(key=lambda a: (-a["book_count"], -a["user_count"], a["postcode"]))
    return areas[:limit]


def get_dashboard(engine: Engine, user_id: str) -> dict:
    """Progress summary for a member's own dashboard."""
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        badges = session.scalars(
            select(Badge).where(Badge.user_id == user_id).order_by(Badge.created_at)
        ).all()
        return {
            "books_uploaded": count_books_uploaded(session, user_id),
            "swaps_completed": user.swaps,
            "badges_earned": len(badges),
            "badges": list(badges),
            "subscription_status": user.subscription_status,
        }
