"""
bookswap.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users          — Members, their postcode, subscription status and swap counter
- books          — Listed books with a denormalised owner/postcode snapshot
- swap_requests  — One request per (book, requester) attempt and its lifecycle
- badges         — Earned achievement markers, one per (user, name)
"""

from __future__ import annotations

import enum
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all BookSwap ORM models."""


# ---------------------------------------------------------------------------
# Enums — persisted as their string values
# ---------------------------------------------------------------------------
class SubscriptionStatus(enum.StrEnum):
    """Cached billing state; only the billing service writes it."""
    INACTIVE = "inactive"
    TRIALING = "trialing"
    ACTIVE = "active"
    CANCELED = "canceled"


class BookCondition(enum.StrEnum):
    LIKE_NEW = "like-new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class BookType(enum.StrEnum):
    ADULT = "adult"
    CHILDREN = "children"


class BookStatus(enum.StrEnum):
    AVAILABLE = "available"
    PENDING = "pending"
    SWAPPED = "swapped"


class SwapStatus(enum.StrEnum):
    """Swap lifecycle: pending → accepted/rejected, accepted → completed."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    postcode: Mapped[str] = mapped_column(String(10), nullable=False)
    subscription_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionStatus.INACTIVE.value,
    )
    billing_customer_id: Mapped[str | None] = mapped_column(String(100), default=None)
    swaps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    books: Mapped[list[Book]] = relationship(back_populates="owner")
    badges: Mapped[list[Badge]] = relationship(
        back_populates="user", order_by="Badge.created_at"
    )

    __table_args__ = (
        Index("ix_users_postcode_swaps", "postcode", "swaps"),
        Index("ix_users_billing_customer", "billing_customer_id"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name!r} postcode={self.postcode!r}>"


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------
class Book(Base):
    """A listed book.

    ``owner_name`` and ``postcode`` are copied from the owner when the book
    is created and are never re-derived afterwards.
    """
    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    author: Mapped[str] = mapped_column(String(200), nullable=False)
    isbn: Mapped[str | None] = mapped_column(String(20), default=None)
    image: Mapped[str | None] = mapped_column(Text, default=None)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    condition: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookCondition.GOOD.value,
    )
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookType.ADULT.value,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookStatus.AVAILABLE.value,
    )
    postcode: Mapped[str] = mapped_column(String(10), nullable=False)
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    owner_name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    owner: Mapped[User] = relationship(back_populates="books")

    __table_args__ = (
        Index("ix_books_postcode_status", "postcode", "status"),
        Index("ix_books_owner", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<Book id={self.id} title={self.title!r} status={self.status}>"


# ---------------------------------------------------------------------------
# Swap requests
# ---------------------------------------------------------------------------
class SwapRequest(Base):
    __tablename__ = "swap_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id"), nullable=False
    )
    requester_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    owner_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SwapStatus.PENDING.value,
    )
    # Informational only; meetups are arranged off-platform.
    meeting_location: Mapped[str | None] = mapped_column(Text, default=None)
    meeting_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    book: Mapped[Book] = relationship()

    __table_args__ = (
        Index("ix_swap_requests_book_status", "book_id", "status"),
        Index("ix_swap_requests_requester", "requester_id"),
        Index("ix_swap_requests_owner", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<SwapRequest id={self.id} book={self.book_id} status={self.status}>"


# ---------------------------------------------------------------------------
# Badges — earned markers, never revoked
# ---------------------------------------------------------------------------
class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="badges")

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_badges_user_name"),
    )

    def __repr__(self) -> str:
        return f"<Badge user={self.user_id} name={self.name!r}>"
