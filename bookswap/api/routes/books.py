"""
bookswap.api.routes.books — Book listings
==========================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from bookswap.api.deps import CurrentUserId, ServicesDep, get_engine
from bookswap.database.models import Book, BookCondition, BookType
from bookswap.services import book_service

router = APIRouter(tags=["books"])


class BookCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    author: str = Field(min_length=1, max_length=200)
    isbn: str | None = Field(default=None, max_length=20)
    image: str | None = None
    description: str | None = None
    condition: BookCondition = BookCondition.GOOD
    type: BookType = BookType.ADULT


def book_dict(b: Book) -> dict:
    return {
        "id": b.id,
        "title": b.title,
        "author": b.author,
        "isbn": b.isbn,
        "image": b.image,
        "description": b.description,
        "condition": b.condition,
        "type": b.type,
        "status": b.status,
        "postcode": b.postcode,
        "owner_id": b.owner_id,
        "owner_name": b.owner_name,
        "created_at": b.created_at.isoformat() if b.created_at else None,
    }


@router.get("/books")
def list_books(
    postcode: str | None = Query(None, max_length=10),
    engine: Engine = Depends(get_engine),
):
    """Available books, optionally for one postcode."""
    return [book_dict(b) for b in book_service.list_books(engine, postcode)]


@router.get("/books/{book_id}")
def get_book(book_id: str, engine: Engine = Depends(get_engine)):
    return book_dict(book_service.get_book(engine, book_id))


@router.get("/my-books")
def my_books(user_id: CurrentUserId, engine: Engine = Depends(get_engine)):
    return [book_dict(b) for b in book_service.list_user_books(engine, user_id)]


@router.post("/books", status_code=status.HTTP_201_CREATED)
def create_book(body: BookCreate, user_id: CurrentUserId, services: ServicesDep):
    book, badges = book_service.create_book(
        services.engine,
        owner_id=user_id,
        data=book_service.NewBook(
            title=body.title,
            author=body.author,
            isbn=body.isbn,
            image=body.image,
            description=body.description,
            condition=body.condition.value,
            type=body.type.value,
        ),
    )
    return {**book_dict(book), "badges_earned": badges}


@router.delete("/books/{book_id}")
def delete_book(book_id: str, user_id: CurrentUserId, engine: Engine = Depends(get_engine)):
    book_service.delete_book(engine, book_id=book_id, acting_user_id=user_id)
    return {"success": True}
