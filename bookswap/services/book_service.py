"""
bookswap.services.book_service — Book Listings
===============================================

Create, browse and delete listed books.  Creating a book is paywalled
and bumps the owner's upload count, so it also runs the book badge
ladder.  Book *status* is never written here; that belongs to the swap
lifecycle in :mod:`bookswap.services.swap_service`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from bookswap.database.engine import get_session
from bookswap.database.models import (
    Book,
    BookCondition,
    BookStatus,
    BookType,
    SwapRequest,
    User,
)
from bookswap.engine.badges import BadgeContext
from bookswap.services.badge_service import award_badges, count_books_uploaded
from bookswap.services.billing_service import require_entitlement
from bookswap.services.exceptions import Forbidden, InvalidOperation, NotFound, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NewBook:
    """Owner-supplied fields for a new listing."""

    title: str
    author: str
    isbn: str | None = None
    image: str | None = None
    description: str | None = None
    condition: str = BookCondition.GOOD.value
    type: str = BookType.ADULT.value


def _validate(data: NewBook) -> None:
    if not data.title.strip():
        raise ValidationError("Title is required")
    if not data.author.strip():
        raise ValidationError("Author is required")
    if data.condition not in {c.value for c in BookCondition}:
        raise ValidationError(f"Unknown condition: {data.condition!r}")
    if data.type not in {t.value for t in BookType}:
        raise ValidationError(f"Unknown book type: {data.type!r}")


def create_book(engine: Engine, *, owner_id: str, data: NewBook) -> tuple[Book, list[str]]:
    """List a new book for *owner_id*.

    The owner's name and postcode are copied onto the book as they are
    right now; later profile changes don't move existing listings.

    Returns ``(book, badges_earned)``.

    Raises
    ------
    NotFound
        Unknown owner.
    NotEntitled
        The owner's subscription doesn't allow uploads.
    ValidationError
        Missing title/author or unknown condition/type.
    """
    _validate(data)
    with get_session(engine) as session:
        owner = session.get(User, owner_id)
        if owner is None:
            raise NotFound("User not found")
        require_entitlement(owner)

        book = Book(
            title=data.title.strip(),
            author=data.author.strip(),
            isbn=data.isbn,
            image=data.image,
            description=data.description,
            condition=data.condition,
            type=data.type,
            status=BookStatus.AVAILABLE.value,
            postcode=owner.postcode,
            owner_id=owner.id,
            owner_name=owner.name,
        )
        session.add(book)
        session.flush()
        session.refresh(book)

        ctx = BadgeContext(books_uploaded=count_books_uploaded(session, owner.id))
        badges = award_badges(session, owner.id, ctx)

        logger.info("Book listed: %r (%s) by user %s", book.title, book.id, owner.id)
        return book, badges


def delete_book(engine: Engine, *, book_id: str, acting_user_id: str) -> None:
    """Remove a listing.  Only the owner may, only while it's available, and
    only if no swap was ever requested for it (swap history is kept)."""
    with get_session(engine) as session:
        book = session.get(Book, book_id)
        if book is None:
            raise NotFound("Book not found")
        if book.owner_id != acting_user_id:
            raise Forbidden("Not authorized")
        if book.status != BookStatus.AVAILABLE:
            raise InvalidOperation(f"Cannot delete a book that is {book.status}")
        has_history = session.scalar(
            select(SwapRequest.id).where(SwapRequest.book_id == book_id).limit(1)
        )
        if has_history is not None:
            raise InvalidOperation("Cannot delete a book with swap history")
        session.delete(book)
        logger.info("Book deleted: %s by user %s", book_id, acting_user_id)


def get_book(engine: Engine, book_id: str) -> Book:
    with Session(engine) as session:
        book = session.get(Book, book_id)
        if book is None:
            raise NotFound("Book not found")
        session.expunge(book)
        return book


def list_books(engine: Engine, postcode: str | None = None) -> list[Book]:
    """Available books, newest first, optionally for one postcode."""
    query = select(Book).where(Book.status == BookStatus.AVAILABLE.value)
    if postcode:
        query = query.where(Book.postcode == postcode.strip().upper())
    query = query.order_by(Book.created_at.desc())

    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(query).all())


def list_user_books(engine: Engine, user_id: str) -> list[Book]:
    """Every book *user_id* has listed, whatever its status."""
    with Session(engine, expire_on_commit=False) as session:
        return list(session.scalars(
            select(Book).where(Book.owner_id == user_id).order_by(Book.created_at.desc())
        ).all())
