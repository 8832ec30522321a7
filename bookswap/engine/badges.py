"""
bookswap.engine.badges — Badge Threshold Evaluation
====================================================

Maps a user's counters to the badges they newly qualify for.  Each
counter has a ladder of ``threshold → badge name`` rungs; every rung the
counter has reached and the user doesn't already hold is returned.

This module is pure calculation — no database I/O.  Persisting the result
(and the existence check that keeps it idempotent) lives in
:mod:`bookswap.services.badge_service`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Badge ladders — (threshold, badge name), ascending
# ---------------------------------------------------------------------------
BOOK_BADGES: tuple[tuple[int, str], ...] = (
    (1, "Book Uploader"),
    (5, "5 Books"),
    (10, "10 Books"),
)

SWAP_BADGES: tuple[tuple[int, str], ...] = (
    (1, "First Swap"),
    (5, "5 Swaps"),
    (10, "10 Swaps"),
)

# Counter name → ladder
BADGE_LADDERS: dict[str, tuple[tuple[int, str], ...]] = {
    "books_uploaded": BOOK_BADGES,
    "swaps": SWAP_BADGES,
}

ALL_BADGE_NAMES: frozenset[str] = frozenset(
    name for ladder in BADGE_LADDERS.values() for _, name in ladder
)


# ---------------------------------------------------------------------------
# Badge context — counters passed to the evaluator
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeContext:
    """Snapshot of a user's counters.

    ``None`` means "this counter was not part of the event" and its ladder
    is skipped, so a swap completion never re-checks book badges and
    vice versa.
    """

    books_uploaded: int | None = None
    swaps: int | None = None


def _reached(ladder: tuple[tuple[int, str], ...], count: int) -> list[str]:
    return [name for threshold, name in ladder if count >= threshold]


# ---------------------------------------------------------------------------
# Main check function
# ---------------------------------------------------------------------------
def check_badges(ctx: BadgeContext, already_earned: set[str]) -> list[str]:
    """Return the badge names newly earned for *ctx*.

    Parameters
    ----------
    ctx : Current counters.
    already_earned : Badge names the user already holds.

    Returns
    -------
    Newly earned names in ladder order.  Calling again with the same
    counters and the updated ``already_earned`` returns an empty list.
    """
    newly_earned: list[str] = []

    for counter, ladder in BADGE_LADDERS.items():
        count = getattr(ctx, counter)
        if count is None:
            continue
        for name in _reached(ladder, count):
            if name in already_earned or name in newly_earned:
                continue
            newly_earned.append(name)
            logger.debug("Badge threshold reached: %s (%s=%d)", name, counter, count)

    return newly_earned
