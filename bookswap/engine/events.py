"""
bookswap.engine.events — Notification Envelope
===============================================

Every side-channel message (request received, swap accepted, trial ending,
...) is normalised into a :class:`Notification` before it is handed to the
outbound queue.  The envelope is immutable and carries plain values only,
so it is safe to pass to the worker thread after the session has closed.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

__all__ = ["NotificationKind", "Recipient", "Notification"]


class NotificationKind(enum.StrEnum):
    WELCOME = "welcome"
    SWAP_REQUESTED = "swap_requested"
    SWAP_ACCEPTED = "swap_accepted"
    SWAP_REJECTED = "swap_rejected"
    SWAP_COMPLETED = "swap_completed"
    TRIAL_ENDING = "trial_ending"


@dataclass(frozen=True, slots=True)
class Recipient:
    email: str
    name: str


@dataclass(frozen=True, slots=True)
class Notification:
    """One outbound message.

    ``context`` holds the kind-specific values used to render it, e.g.
    ``{"book_title": "Dune", "requester_name": "Bea"}``.
    """

    kind: NotificationKind
    recipient: Recipient
    context: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
