"""
bookswap.services.badge_service — Idempotent Badge Awarding
============================================================

Runs the pure evaluator in :mod:`bookswap.engine.badges` against a user's
current counters and inserts whatever is new.  Called from the two places
a counter moves: book creation and swap completion.

Idempotency comes from the existence lookup before insert: the evaluator
is handed the names the user already holds, so re-running on an unchanged
count inserts nothing.  The ``uq_badges_user_name`` constraint backs this
up if two sessions race.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookswap.database.models import Badge, Book, User
from bookswap.engine.badges import BadgeContext, check_badges
from bookswap.services.exceptions import NotFound

logger = logging.getLogger(__name__)


def get_earned_badge_names(session: Session, user_id: str) -> set[str]:
    """Names of the badges *user_id* already holds."""
    rows = session.scalars(select(Badge.name).where(Badge.user_id == user_id)).all()
    return set(rows)


def count_books_uploaded(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count()).select_from(Book).where(Book.owner_id == user_id)
    ) or 0


def award_badges(session: Session, user_id: str, ctx: BadgeContext) -> list[str]:
    """Evaluate *ctx* for *user_id* and insert newly earned badges.

    Runs inside the caller's transaction; the caller commits.  Each insert
    goes through a SAVEPOINT so a concurrent duplicate only skips that one
    badge instead of aborting the caller's transition.

    Returns the names actually inserted.
    """
    earned = get_earned_badge_names(session, user_id)
    awarded: list[str] = []

    for name in check_badges(ctx, earned):
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(Badge(user_id=user_id, name=name))
                session.flush()
        except IntegrityError:
            logger.info("Badge %r already awarded to %s; skipping", name, user_id)
            continue
        awarded.append(name)
        logger.info("Badge awarded: %r → user %s", name, user_id)

    return awarded


def evaluate_badges(engine: Engine, user_id: str) -> list[str]:
    """Recheck every ladder for *user_id* from its stored counters.

    Useful after a data repair or a threshold change; never revokes,
    never duplicates.  Raises :class:`NotFound` for an unknown user.
    """
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        ctx = BadgeContext(
            books_uploaded=count_books_uploaded(session, user_id),
            swaps=user.swaps,
        )
        awarded = award_badges(session, user_id, ctx)
        session.commit()
        return awarded


def get_user_badges(engine: Engine, user_id: str) -> list[Badge]:
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(Badge).where(Badge.user_id == user_id).order_by(Badge.created_at)
        ).all())
