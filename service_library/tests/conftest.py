"""
Shared fixtures for Library Service tests.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import UUID

from service_library.app.cache.redis_cache import RedisCache
from service_library.app.domain.models import Book, BookRequest, BookRequestor, BookStatus
from service_library.app.persistence.postgres import PostgreSQLPersistence


BOOK_ID = UUID("6f1c2a34-0d6b-4a38-9a53-5b2f4c1e9a01")
REQUESTOR_ID = UUID("8b7e5d41-3c2a-4f19-b6d0-2e4a9c7f1b02")
REQUEST_ID = UUID("1a2b3c4d-5e6f-4a7b-8c9d-0e1f2a3b4c03")


@pytest.fixture
def persistence():
    """Persistence gateway double; every query finds nothing by default."""
    mock = AsyncMock(spec=PostgreSQLPersistence)
    mock.get_book.return_value = None
    mock.get_book_by_title.return_value = None
    mock.get_requestor_by_contact.return_value = None
    mock.get_book_request.return_value = None
    return mock


@pytest.fixture
def cache():
    """Cache gateway double that always misses."""
    mock = AsyncMock(spec=RedisCache)
    mock.get.return_value = None
    mock.set.return_value = True
    mock.remove.return_value = True
    return mock


@pytest.fixture
def clean_code_book():
    """Book titled Clean Code."""
    return Book(
        id=BOOK_ID,
        title="Clean Code",
        author="Robert C. Martin",
        isbn="9780132350884",
        publisher="Prentice Hall",
        quantity=3,
        release_date=datetime(2008, 8, 1, tzinfo=timezone.utc),
        status=BookStatus.AVAILABLE
    )


@pytest.fixture
def jane_doe():
    """Existing requestor."""
    return BookRequestor(
        id=REQUESTOR_ID,
        first_name="Jane",
        last_name="Doe",
        contact_number="555-0100"
    )


@pytest.fixture
def stored_request(clean_code_book, jane_doe):
    """Book request as loaded from the store, with book and requestor joined."""
    requested = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    return BookRequest(
        id=REQUEST_ID,
        book_id=clean_code_book.id,
        book_requestor_id=jane_doe.id,
        request_date=requested,
        return_date=datetime(2024, 3, 8, 9, 30, tzinfo=timezone.utc),
        book=clean_code_book,
        book_requestor=jane_doe
    )
