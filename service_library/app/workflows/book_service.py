"""
Book workflow: catalogue CRUD with cache-aside reads.
"""

from typing import Optional
from uuid import UUID, uuid4

from ..cache.policy import CacheNamespace, book_key, request_book_key, ttl_for
from ..domain.models import Book, BookDto, BooksFilter, PaginationResult, is_empty_id
from ..domain.results import Err, Ok, ServiceResult
from .base import Workflow, workflow_operation


class BookService(Workflow):
    """Orchestrates book storage and the book cache."""

    logger_name = "library.workflows.books"

    @workflow_operation("add_book")
    async def add_book(self, book_dto: Optional[BookDto]) -> ServiceResult[Book]:
        if book_dto is None:
            return Err.validation("Book data is null.")

        book_id = uuid4() if is_empty_id(book_dto.id) else book_dto.id
        added = await self.persistence.add_book(book_dto.to_book(book_id))

        await self.cache.remove(book_key(added.id))

        self.logger.info("Book added", book_id=str(added.id))
        return Ok(added)

    @workflow_operation("update_book")
    async def update_book(self, book_dto: Optional[BookDto]) -> ServiceResult[Book]:
        if book_dto is None or is_empty_id(book_dto.id):
            return Err.validation("Invalid book data.")

        existing = await self.persistence.get_book(book_dto.id)
        if existing is None:
            return Err.not_found("Book not found.")

        updated = await self.persistence.update_book(book_dto.to_book(book_dto.id))

        await self.cache.remove(book_key(updated.id))
        # Title lookups made by the request workflow still hold the old row
        await self.cache.remove(request_book_key(existing.title))

        self.logger.info("Book updated", book_id=str(updated.id))
        return Ok(updated)

    @workflow_operation("delete_book")
    async def delete_book(self, book_id: Optional[UUID]) -> ServiceResult[Book]:
        if is_empty_id(book_id):
            return Err.validation("Invalid book ID.")

        deleted = await self.persistence.delete_book(book_id)

        await self.cache.remove(book_key(book_id))
        await self.cache.remove(request_book_key(deleted.title))

        self.logger.info("Book deleted", book_id=str(book_id))
        return Ok(deleted)

    @workflow_operation("get_book")
    async def get_book(self, book_id: Optional[UUID]) -> ServiceResult[Book]:
        if is_empty_id(book_id):
            return Err.validation("Invalid book ID.")

        book = await self._read_through(
            book_key(book_id),
            Book,
            ttl_for(CacheNamespace.BOOK),
            lambda: self.persistence.get_book(book_id)
        )
        if book is None:
            return Err.not_found("Book not found.")

        return Ok(book)

    @workflow_operation("get_books")
    async def get_books(self, books_filter: Optional[BooksFilter]) -> ServiceResult[PaginationResult[Book]]:
        if books_filter is None:
            return Err.validation("Invalid filter data.")

        items, total = await self.persistence.list_books(books_filter)

        return Ok(PaginationResult[Book].build(
            items=items,
            total_count=total,
            page_number=books_filter.page_index,
            page_size=books_filter.page_size
        ))
