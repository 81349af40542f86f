"""
Book, requestor and request models for Library Service.
"""

import math
from datetime import datetime, timezone
from enum import IntEnum
from typing import Generic, List, Optional, TypeVar
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


T = TypeVar("T")

EMPTY_ID = UUID(int=0)


class BookStatus(IntEnum):
    """Book availability status."""
    NONE = 0
    AVAILABLE = 1
    BORROWED = 2
    LOST = 3
    RESERVED = 4


def is_empty_id(value: Optional[UUID]) -> bool:
    """True for a missing or all-zero identifier."""
    return value is None or value == EMPTY_ID


def normalize_title(title: str) -> str:
    """Canonical form used to match titles and build cache keys."""
    return (title or "").strip().lower()


class Book(BaseModel):
    """Book stored in the catalogue."""
    id: UUID = Field(default_factory=uuid4)
    title: str = ""
    author: str = ""
    isbn: str = ""
    publisher: str = ""
    description: str = ""
    quantity: int = 0
    release_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: BookStatus = BookStatus.NONE


class BookRequestor(BaseModel):
    """Person borrowing books, identified by contact number."""
    id: UUID = Field(default_factory=uuid4)
    first_name: str = ""
    last_name: str = ""
    contact_number: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class BookRequest(BaseModel):
    """Borrow request linking a book to a requestor."""
    id: UUID = Field(default_factory=uuid4)
    book_id: UUID
    book_requestor_id: UUID
    request_date: datetime
    return_date: datetime
    book: Optional[Book] = None
    book_requestor: Optional[BookRequestor] = None

    def to_details(self) -> "BookRequestDetails":
        """Flatten into the listing/detail projection."""
        return BookRequestDetails(
            id=self.id,
            book_title=self.book.title if self.book else "",
            author=self.book.author if self.book else "",
            requestor=self.book_requestor.full_name if self.book_requestor else "",
            contact_number=self.book_requestor.contact_number if self.book_requestor else "",
            request_date=self.request_date,
            return_date=self.return_date,
        )


class BookRequestDetails(BaseModel):
    """Flattened view of a book request."""
    id: UUID
    book_title: str
    author: str
    requestor: str
    contact_number: str
    request_date: datetime
    return_date: datetime


class BookDto(BaseModel):
    """Payload for creating or updating a book."""
    id: Optional[UUID] = Field(None, description="Book ID, generated on create when omitted")
    title: str = Field(..., description="Book title")
    author: str = Field("", description="Author")
    isbn: str = Field("", description="ISBN")
    publisher: str = Field("", description="Publisher")
    description: str = Field("", description="Description")
    quantity: int = Field(0, ge=0, description="Copies held")
    release_date: Optional[datetime] = Field(None, description="Release date")
    status: BookStatus = Field(BookStatus.NONE, description="Availability status")

    def to_book(self, book_id: UUID) -> Book:
        data = self.model_dump(exclude={"id"}, exclude_none=True)
        return Book(id=book_id, **data)


class BookRequestDto(BaseModel):
    """Payload for creating or updating a book request."""
    id: Optional[UUID] = Field(None, description="Book request ID, required on update")
    book_title: str = Field(..., description="Title of the requested book")
    first_name: str = Field("", description="Requestor first name")
    last_name: str = Field("", description="Requestor last name")
    contact_number: str = Field("", description="Requestor contact number")


class BooksFilter(BaseModel):
    """Filter for book listings."""
    page_index: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=100)
    title: str = ""
    author: str = ""
    isbn: str = ""
    status: Optional[BookStatus] = None


class BookRequestFilter(BaseModel):
    """Filter for book request listings."""
    page_index: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=100)
    requestor_name: str = ""
    book_title: str = ""
    request_date: Optional[datetime] = None


class PaginationResult(BaseModel, Generic[T]):
    """One page of results plus the unpaged total."""
    items: List[T]
    total_count: int
    total_pages: int
    page_number: int
    page_size: int

    @classmethod
    def build(cls, items: List[T], total_count: int, page_number: int, page_size: int) -> "PaginationResult[T]":
        return cls(
            items=items,
            total_count=total_count,
            total_pages=math.ceil(total_count / page_size) if page_size else 0,
            page_number=page_number,
            page_size=page_size,
        )
