"""
Library service for the Library System.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import Body, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.errors import STATUS_BY_KIND, ErrorResponse, ValidationError

from .cache.redis_cache import RedisCache
from .domain.models import BookDto, BookRequestDto, BookRequestFilter, BooksFilter, BookStatus
from .domain.results import Err, ServiceResult
from .persistence.postgres import PostgreSQLPersistence
from .workflows.book_request_service import BookRequestService
from .workflows.book_service import BookService


class LibraryService(BaseService):
    """Library service implementation."""

    def __init__(self):
        super().__init__("library", 8000)

        # Initialize components
        self.persistence = PostgreSQLPersistence(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool_size,
            max_size=self.config.postgres_max_pool_size,
            command_timeout=self.config.postgres_command_timeout
        )
        self.cache = RedisCache(
            self.config.redis_url,
            key_prefix=self.config.cache_key_prefix,
            metrics=self.metrics
        )
        self.books = BookService(self.persistence, self.cache, self.metrics)
        self.book_requests = BookRequestService(self.persistence, self.cache, self.metrics)

        self._setup_library_routes()

    def _respond(self, result: ServiceResult, operation: str, success_status: int = 200) -> JSONResponse:
        """Translate a workflow result into the response envelope."""
        if isinstance(result, Err):
            self.logger.warning(
                "Operation failed",
                operation=operation,
                kind=result.kind.value,
                message=result.message
            )
            return JSONResponse(
                status_code=STATUS_BY_KIND[result.kind],
                content=ErrorResponse.for_kind(result.kind, result.message).model_dump()
            )

        return JSONResponse(
            status_code=success_status,
            content={
                "success": True,
                "data": jsonable_encoder(result.data),
                "message": result.message
            }
        )

    def _setup_library_routes(self):
        """Set up library-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "library",
                "message": "Library System - Library Service",
                "version": "1.0.0",
                "capabilities": ["books", "book_requests", "caching", "persistence"]
            }

        # Books

        @self.app.get("/api/books")
        async def get_books(
            page_index: int = Query(1, ge=1, alias="pageIndex", description="Page number"),
            page_size: int = Query(10, ge=1, le=100, alias="pageSize", description="Items per page"),
            title: str = Query("", description="Title substring"),
            author: str = Query("", description="Author substring"),
            isbn: str = Query("", description="ISBN substring"),
            status: Optional[BookStatus] = Query(None, description="Exact status")
        ):
            """List books with optional filtering."""
            books_filter = BooksFilter(
                page_index=page_index,
                page_size=page_size,
                title=title,
                author=author,
                isbn=isbn,
                status=status
            )
            return self._respond(await self.books.get_books(books_filter), "get_books")

        @self.app.get("/api/books/{book_id}")
        async def get_book(book_id: UUID):
            """Get a book by ID."""
            return self._respond(await self.books.get_book(book_id), "get_book")

        @self.app.post("/api/books")
        async def add_book(book: BookDto = Body(...)):
            """Create a book."""
            return self._respond(await self.books.add_book(book), "add_book", success_status=201)

        @self.app.put("/api/books/{book_id}")
        async def update_book(book_id: UUID, book: BookDto = Body(...)):
            """Update a book."""
            if book.id is not None and book.id != book_id:
                raise ValidationError("ID in route does not match ID in the body.")
            book = book.model_copy(update={"id": book_id})
            return self._respond(await self.books.update_book(book), "update_book")

        @self.app.delete("/api/books/{book_id}")
        async def delete_book(book_id: UUID):
            """Delete a book."""
            return self._respond(await self.books.delete_book(book_id), "delete_book")

        # Book requests

        @self.app.get("/api/bookrequests")
        async def get_book_requests(
            page_index: int = Query(1, ge=1, alias="pageIndex", description="Page number"),
            page_size: int = Query(10, ge=1, le=100, alias="pageSize", description="Items per page"),
            requestor_name: str = Query("", alias="requestorName", description="Requestor name substring"),
            book_title: str = Query("", alias="bookTitle", description="Book title substring"),
            request_date: Optional[datetime] = Query(None, alias="requestDate", description="Request day")
        ):
            """List book requests with optional filtering."""
            request_filter = BookRequestFilter(
                page_index=page_index,
                page_size=page_size,
                requestor_name=requestor_name,
                book_title=book_title,
                request_date=request_date
            )
            return self._respond(await self.book_requests.get_book_requests(request_filter), "get_book_requests")

        @self.app.get("/api/bookrequests/{request_id}")
        async def get_book_request(request_id: UUID):
            """Get a book request by ID."""
            return self._respond(await self.book_requests.get_book_request(request_id), "get_book_request")

        @self.app.post("/api/bookrequests")
        async def add_book_request(book_request: BookRequestDto = Body(...)):
            """Create a book request."""
            return self._respond(
                await self.book_requests.add_book_request(book_request),
                "add_book_request",
                success_status=201
            )

        @self.app.put("/api/bookrequests/{request_id}")
        async def update_book_request(request_id: UUID, book_request: BookRequestDto = Body(...)):
            """Point a book request at a different book."""
            if book_request.id is not None and book_request.id != request_id:
                raise ValidationError("ID in route does not match ID in the body.")
            book_request = book_request.model_copy(update={"id": request_id})
            return self._respond(
                await self.book_requests.update_book_request(book_request),
                "update_book_request"
            )

        @self.app.delete("/api/bookrequests/{request_id}")
        async def delete_book_request(request_id: UUID):
            """Delete a book request."""
            return self._respond(
                await self.book_requests.delete_book_request(request_id),
                "delete_book_request"
            )

    async def _check_dependencies(self):
        """Check library service dependencies."""
        dependencies = {}

        try:
            dependencies["redis"] = "ok" if await self.cache.health_check() else "error"
        except Exception:
            dependencies["redis"] = "error"

        try:
            dependencies["postgres"] = "ok" if await self.persistence.health_check() else "error"
        except Exception:
            dependencies["postgres"] = "error"

        return dependencies

    async def start(self):
        """Start library service components."""
        await self.persistence.start()
        await self.cache.start()

        self.logger.info("Library service started")

    async def stop(self):
        """Stop library service components."""
        await self.persistence.stop()
        await self.cache.stop()

        self.logger.info("Library service stopped")


def create_app():
    """Create library service application."""
    service = LibraryService()
    return service.app


if __name__ == "__main__":
    service = LibraryService()
    service.run()
