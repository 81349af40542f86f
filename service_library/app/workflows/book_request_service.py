"""
Book request workflow.

Creating a request resolves the book by title and the requestor by contact
number, each through its own cache namespace, before anything is written:

    title -> bookrequest:book:{title}            (10 min)
    contact -> bookrequest:requestor:{contact}   (10 min)
    request id -> bookrequest:{id}               (5 min, read path only)

A missing book short-circuits with a NotFound result. A missing requestor is
created with an insert that yields to any concurrent insert for the same
contact number, so both callers end up with the same row. The request
itself is invalidated in the cache after every write.

The requestor insert and the request insert are separate statements; a
failure between them leaves a requestor without requests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID

from ..cache.policy import (
    CacheNamespace, book_request_key, request_book_key, request_requestor_key, ttl_for
)
from ..domain.models import (
    Book, BookRequest, BookRequestDetails, BookRequestDto, BookRequestFilter,
    BookRequestor, PaginationResult, is_empty_id
)
from ..domain.results import Err, Ok, ServiceResult
from .base import Workflow, workflow_operation


RETURN_PERIOD = timedelta(days=7)


class BookRequestService(Workflow):
    """Orchestrates book requests, requestor resolution and their caches."""

    logger_name = "library.workflows.book_requests"

    @workflow_operation("add_book_request")
    async def add_book_request(self, request_dto: Optional[BookRequestDto]) -> ServiceResult[BookRequest]:
        if request_dto is None:
            return Err.validation("Book request data is null.")
        if not request_dto.book_title or not request_dto.book_title.strip():
            return Err.validation("Book title is required.")
        if not request_dto.contact_number:
            return Err.validation("Contact number is required.")

        book = await self._resolve_book(request_dto.book_title)
        if book is None:
            return Err.not_found(f"Book with title '{request_dto.book_title}' not found.")

        requestor, created = await self._resolve_requestor(request_dto)

        now = datetime.now(timezone.utc)
        stored = await self.persistence.add_book_request(BookRequest(
            book_id=book.id,
            book_requestor_id=requestor.id,
            request_date=now,
            return_date=now + RETURN_PERIOD
        ))

        await self.cache.remove(book_request_key(stored.id))

        if self.metrics:
            self.metrics.record_book_request(new_requestor=created)
        self.logger.info(
            "Book request added",
            request_id=str(stored.id),
            book_id=str(book.id),
            requestor_id=str(requestor.id),
            requestor_created=created
        )
        return Ok(stored.model_copy(update={"book": book, "book_requestor": requestor}))

    @workflow_operation("update_book_request")
    async def update_book_request(self, request_dto: Optional[BookRequestDto]) -> ServiceResult[BookRequest]:
        if request_dto is None or is_empty_id(request_dto.id):
            return Err.validation("Invalid book request data.")

        existing = await self.persistence.get_book_request(request_dto.id)
        if existing is None:
            return Err.not_found("Book request not found.")

        book = await self.persistence.get_book_by_title(request_dto.book_title)
        if book is None:
            return Err.not_found(f"Book with title '{request_dto.book_title}' not found.")

        updated = await self.persistence.update_book_request(
            existing.model_copy(update={"book_id": book.id, "book": book})
        )

        await self.cache.remove(book_request_key(updated.id))

        self.logger.info("Book request updated", request_id=str(updated.id), book_id=str(book.id))
        return Ok(updated)

    @workflow_operation("delete_book_request")
    async def delete_book_request(self, request_id: Optional[UUID]) -> ServiceResult[BookRequest]:
        if is_empty_id(request_id):
            return Err.validation("Invalid book request ID.")

        existing = await self.persistence.get_book_request(request_id)
        if existing is None:
            return Err.not_found("Book request not found.")

        await self.persistence.delete_book_request(request_id)

        await self.cache.remove(book_request_key(request_id))

        self.logger.info("Book request deleted", request_id=str(request_id))
        return Ok(existing)

    @workflow_operation("get_book_request")
    async def get_book_request(self, request_id: Optional[UUID]) -> ServiceResult[BookRequestDetails]:
        if is_empty_id(request_id):
            return Err.validation("Invalid book request ID.")

        request = await self._read_through(
            book_request_key(request_id),
            BookRequest,
            ttl_for(CacheNamespace.BOOK_REQUEST),
            lambda: self.persistence.get_book_request(request_id)
        )
        if request is None:
            return Err.not_found("Book request not found.")

        return Ok(request.to_details())

    @workflow_operation("get_book_requests")
    async def get_book_requests(
        self, request_filter: Optional[BookRequestFilter]
    ) -> ServiceResult[PaginationResult[BookRequestDetails]]:
        if request_filter is None:
            return Err.validation("Invalid filter data.")

        items, total = await self.persistence.list_book_request_details(request_filter)

        return Ok(PaginationResult[BookRequestDetails].build(
            items=items,
            total_count=total,
            page_number=request_filter.page_index,
            page_size=request_filter.page_size
        ))

    async def _resolve_book(self, title: str) -> Optional[Book]:
        return await self._read_through(
            request_book_key(title),
            Book,
            ttl_for(CacheNamespace.REQUEST_BOOK),
            lambda: self.persistence.get_book_by_title(title)
        )

    async def _resolve_requestor(self, request_dto: BookRequestDto) -> Tuple[BookRequestor, bool]:
        """Return the requestor for the contact number and whether it was just created."""
        key = request_requestor_key(request_dto.contact_number)

        requestor = await self.cache.get(key, BookRequestor)
        if requestor is not None:
            return requestor, False

        created = False
        requestor = await self.persistence.get_requestor_by_contact(request_dto.contact_number)
        if requestor is None:
            candidate = BookRequestor(
                first_name=request_dto.first_name,
                last_name=request_dto.last_name,
                contact_number=request_dto.contact_number
            )
            requestor = await self.persistence.add_requestor(candidate)
            created = requestor.id == candidate.id

        await self.cache.set(key, requestor, ttl_for(CacheNamespace.REQUEST_REQUESTOR))
        return requestor, created
