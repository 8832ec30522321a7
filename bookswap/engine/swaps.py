"""
bookswap.engine.swaps — Swap Transition Rules
==============================================

The swap lifecycle as data::

    pending ──accept──▶ accepted ──complete──▶ completed
       │
       └──reject──▶ rejected

Only the book owner may accept or reject.  Either party may complete.
``rejected`` and ``completed`` are terminal.

Pure rules — no database I/O.  :mod:`bookswap.services.swap_service`
loads the rows, asks this module whether the move is legal, then writes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from bookswap.database.models import BookStatus, SwapStatus
from bookswap.services.exceptions import Forbidden, InvalidOperation, NotFound


class SwapAction(enum.StrEnum):
    ACCEPT = "accept"
    REJECT = "reject"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class Transition:
    """One edge of the lifecycle.

    ``book_status`` is the status the book moves to, or ``None`` when the
    book is left alone (accept keeps it ``pending``).
    """

    source: SwapStatus
    target: SwapStatus
    book_status: BookStatus | None
    owner_only: bool


TRANSITIONS: dict[SwapAction, Transition] = {
    SwapAction.ACCEPT: Transition(
        source=SwapStatus.PENDING,
        target=SwapStatus.ACCEPTED,
        book_status=None,
        owner_only=True,
    ),
    SwapAction.REJECT: Transition(
        source=SwapStatus.PENDING,
        target=SwapStatus.REJECTED,
        book_status=BookStatus.AVAILABLE,
        owner_only=True,
    ),
    SwapAction.COMPLETE: Transition(
        source=SwapStatus.ACCEPTED,
        target=SwapStatus.COMPLETED,
        book_status=BookStatus.SWAPPED,
        owner_only=False,
    ),
}

TERMINAL_STATUSES: frozenset[SwapStatus] = frozenset(
    {SwapStatus.REJECTED, SwapStatus.COMPLETED}
)


def check_request(*, book_status: str, owner_id: str, requester_id: str) -> None:
    """Validate a new swap request against the target book.

    Raises
    ------
    NotFound
        The book isn't available (pending or already swapped).
    InvalidOperation
        The requester owns the book.
    """
    if book_status != BookStatus.AVAILABLE:
        raise NotFound("Book not available")
    if owner_id == requester_id:
        raise InvalidOperation("Cannot request your own book")


def check_transition(
    action: SwapAction,
    *,
    status: str,
    actor_id: str,
    owner_id: str,
    requester_id: str,
) -> Transition:
    """Return the :class:`Transition` for *action* if *actor_id* may apply
    it to a swap currently in *status*.

    Authorization is checked before state: a non-party is refused with
    :class:`Forbidden` whatever the swap's status.
    """
    transition = TRANSITIONS[action]

    allowed = {owner_id} if transition.owner_only else {owner_id, requester_id}
    if actor_id not in allowed:
        raise Forbidden(f"Not authorized to {action} this swap")

    if status != transition.source:
        raise InvalidOperation(
            f"Cannot {action} a swap that is {status} "
            f"(expected {transition.source})"
        )
    return transition
