"""
bookswap.services.swap_service — Swap Lifecycle
================================================

Applies the rules in :mod:`bookswap.engine.swaps` to stored rows and fires
the side effects of each move.

Every operation follows the same pattern:
  1. Open one session (one transaction)
  2. Load the swap / book and check the transition is legal
  3. Write the new statuses with compare-and-swap UPDATEs
  4. Apply counters + badges (completion only)
  5. Commit
  6. Queue notifications, only once the commit has landed

Step 3 is what keeps ``books.status`` honest under concurrency: the
UPDATE only matches while the row still has the status we read in step 2,
so when two requests race for one book exactly one of them wins and the
other rolls back with an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import Engine, or_, select, update
from sqlalchemy.orm import Session

from bookswap.database.engine import get_session
from bookswap.database.models import Book, BookStatus, SwapRequest, SwapStatus, User
from bookswap.engine.badges import BadgeContext
from bookswap.engine.events import NotificationKind, Recipient
from bookswap.engine.swaps import SwapAction, Transition, check_request, check_transition
from bookswap.services.badge_service import award_badges
from bookswap.services.billing_service import require_entitlement
from bookswap.services.exceptions import BookSwapError, InvalidOperation, NotFound
from bookswap.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SwapCompletion:
    """Result of :func:`complete_swap`."""

    swap: SwapRequest
    badges_earned: dict[str, list[str]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Compare-and-swap writers
# ---------------------------------------------------------------------------
def set_book_status(
    session: Session,
    book_id: str,
    *,
    expected: BookStatus,
    new: BookStatus,
    error: type[BookSwapError] = InvalidOperation,
    message: str | None = None,
) -> None:
    """Move a book from *expected* to *new*, or raise *error* if it has
    already moved on."""
    result = session.execute(
        update(Book)
        .where(Book.id == book_id, Book.status == expected.value)
        .values(status=new.value)
    )
    if result.rowcount != 1:
        raise error(message or f"Book {book_id} is no longer {expected}")


def set_swap_status(
    session: Session,
    swap_id: str,
    *,
    expected: SwapStatus,
    new: SwapStatus,
    **values,
) -> None:
    result = session.execute(
        update(SwapRequest)
        .where(SwapRequest.id == swap_id, SwapRequest.status == expected.value)
        .values(status=new.value, **values)
    )
    if result.rowcount != 1:
        raise InvalidOperation(f"Swap {swap_id} is no longer {expected}")


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------
def request_swap(
    engine: Engine,
    notifier: NotificationDispatcher,
    *,
    book_id: str,
    requester_id: str,
) -> SwapRequest:
    """Ask for *book_id* on behalf of *requester_id*.

    Creates a ``pending`` request, moves the book to ``pending`` and tells
    the owner.

    Raises
    ------
    NotFound
        Unknown requester, or the book doesn't exist / isn't available.
    InvalidOperation
        The requester owns the book.
    NotEntitled
        The requester's subscription doesn't allow swap requests.  Checked
        only once the book itself could be requested.
    """
    with get_session(engine) as session:
        requester = session.get(User, requester_id)
        if requester is None:
            raise NotFound("User not found")

        book = session.get(Book, book_id)
        if book is None:
            raise NotFound("Book not available")
        check_request(
            book_status=book.status,
            owner_id=book.owner_id,
            requester_id=requester_id,
        )
        # Entitlement comes after availability and ownership.
        require_entitlement(requester)

        set_book_status(
            session, book.id,
            expected=BookStatus.AVAILABLE, new=BookStatus.PENDING,
            error=NotFound, message="Book not available",
        )
        swap = SwapRequest(
            book_id=book.id,
            requester_id=requester.id,
            owner_id=book.owner_id,
            status=SwapStatus.PENDING.value,
        )
        session.add(swap)
        session.flush()
        session.refresh(swap)

        owner = session.get(User, book.owner_id)
        notice = (
            Recipient(email=owner.email, name=owner.name),
            {"book_title": book.title, "requester_name": requester.name},
        )

    logger.info("Swap requested: %s for book %s by user %s", swap.id, book_id, requester_id)
    notifier.notify(NotificationKind.SWAP_REQUESTED, *notice)
    return swap


# ---------------------------------------------------------------------------
# Accept / reject / complete
# ---------------------------------------------------------------------------
def _begin_transition(
    session: Session,
    action: SwapAction,
    swap_id: str,
    actor_id: str,
) -> tuple[SwapRequest, Transition]:
    swap = session.get(SwapRequest, swap_id)
    if swap is None:
        raise NotFound("Swap not found")
    transition = check_transition(
        action,
        status=swap.status,
        actor_id=actor_id,
        owner_id=swap.owner_id,
        requester_id=swap.requester_id,
    )
    return swap, transition


def _apply_transition(
    session: Session,
    swap: SwapRequest,
    transition: Transition,
    **values,
) -> None:
    set_swap_status(
        session, swap.id,
        expected=transition.source, new=transition.target, **values,
    )
    if transition.book_status is not None:
        set_book_status(
            session, swap.book_id,
            expected=BookStatus.PENDING, new=transition.book_status,
        )


def accept_swap(
    engine: Engine,
    notifier: NotificationDispatcher,
    *,
    swap_id: str,
    acting_user_id: str,
) -> SwapRequest:
    """Owner accepts a pending request.  The book stays ``pending``."""
    with get_session(engine) as session:
        swap, transition = _begin_transition(
            session, SwapAction.ACCEPT, swap_id, acting_user_id,
        )
        _apply_transition(session, swap, transition)

        requester = session.get(User, swap.requester_id)
        owner = session.get(User, swap.owner_id)
        notice = (
            Recipient(email=requester.email, name=requester.name),
            {"book_title": swap.book.title, "owner_name": owner.name},
        )

    logger.info("Swap accepted: %s by user %s", swap_id, acting_user_id)
    notifier.notify(NotificationKind.SWAP_ACCEPTED, *notice)
    return swap


def reject_swap(
    engine: Engine,
    notifier: NotificationDispatcher,
    *,
    swap_id: str,
    acting_user_id: str,
) -> SwapRequest:
    """Owner rejects a pending request.  The book goes back to ``available``."""
    with get_session(engine) as session:
        swap, transition = _begin_transition(
            session, SwapAction.REJECT, swap_id, acting_user_id,
        )
        _apply_transition(session, swap, transition)

        requester = session.get(User, swap.requester_id)
        notice = (
            Recipient(email=requester.email, name=requester.name),
            {"book_title": swap.book.title},
        )

    logger.info("Swap rejected: %s by user %s", swap_id, acting_user_id)
    notifier.notify(NotificationKind.SWAP_REJECTED, *notice)
    return swap


def complete_swap(
    engine: Engine,
    notifier: NotificationDispatcher,
    *,
    swap_id: str,
    acting_user_id: str,
) -> SwapCompletion:
    """Either party confirms an accepted swap took place.

    Marks the swap ``completed``, the book ``swapped``, bumps both users'
    swap counters, runs the swap badge ladder for both and notifies both
    (with any badge just earned).
    """
    with get_session(engine) as session:
        swap, transition = _begin_transition(
            session, SwapAction.COMPLETE, swap_id, acting_user_id,
        )
        _apply_transition(session, swap, transition, completed_at=datetime.now(UTC))

        participant_ids = [swap.requester_id, swap.owner_id]
        session.execute(
            update(User)
            .where(User.id.in_(participant_ids))
            .values(swaps=User.swaps + 1)
            .execution_options(synchronize_session=False)
        )

        result = SwapCompletion(swap=swap)
        notices = []
        for user_id in participant_ids:
            user = session.get(User, user_id, populate_existing=True)
            earned = award_badges(session, user.id, BadgeContext(swaps=user.swaps))
            result.badges_earned[user.id] = earned
            notices.append((
                Recipient(email=user.email, name=user.name),
                {"book_title": swap.book.title, "badges_earned": earned},
            ))

        session.refresh(swap)

    logger.info("Swap completed: %s confirmed by user %s", swap_id, acting_user_id)
    for notice in notices:
        notifier.notify(NotificationKind.SWAP_COMPLETED, *notice)
    return result


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_swap(engine: Engine, swap_id: str, *, viewer_id: str) -> SwapRequest:
    """A single swap, visible to its two participants only."""
    with Session(engine) as session:
        swap = session.get(SwapRequest, swap_id)
        if swap is None or viewer_id not in (swap.owner_id, swap.requester_id):
            raise NotFound("Swap not found")
        session.expunge(swap)
        return swap


def list_user_swaps(
    engine: Engine,
    user_id: str,
    *,
    role: str | None = None,
) -> list[SwapRequest]:
    """Swaps *user_id* takes part in, newest first.

    ``role`` narrows to ``"requester"`` (outgoing) or ``"owner"``
    (incoming); ``None`` returns both.
    """
    if role == "requester":
        clause = SwapRequest.requester_id == user_id
    elif role == "owner":
        clause = SwapRequest.owner_id == user_id
    elif role is None:
        clause = or_(SwapRequest.requester_id == user_id, SwapRequest.owner_id == user_id)
    else:
        raise ValueError(f"Unknown role: {role!r}")

    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(SwapRequest).where(clause).order_by(SwapRequest.created_at.desc())
        ).all())
