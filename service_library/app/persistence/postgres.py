"""
PostgreSQL persistence layer for Library Service.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Tuple
from uuid import UUID

import asyncpg

from shared.logging import get_logger
from shared.errors import LibraryException, NotFoundError, StoreError
from ..domain.models import (
    Book, BookStatus, BookRequestor, BookRequest, BookRequestDetails,
    BooksFilter, BookRequestFilter, normalize_title
)


_BOOK_COLUMNS = "id, title, author, isbn, publisher, description, quantity, release_date, status"

_REQUEST_FROM = """
    FROM book_requests br
    JOIN books b ON b.id = br.book_id
    JOIN book_requestors r ON r.id = br.book_requestor_id
"""

_REQUEST_SELECT = f"""
    SELECT
        br.id, br.book_id, br.book_requestor_id, br.request_date, br.return_date,
        b.title AS book_title, b.author AS book_author, b.isbn AS book_isbn,
        b.publisher AS book_publisher, b.description AS book_description,
        b.quantity AS book_quantity, b.release_date AS book_release_date,
        b.status AS book_status,
        r.first_name AS requestor_first_name, r.last_name AS requestor_last_name,
        r.contact_number AS requestor_contact_number
    {_REQUEST_FROM}
"""


class _Where:
    """Accumulates WHERE clauses with numbered asyncpg placeholders."""

    def __init__(self):
        self.clauses: List[str] = []
        self.args: List[Any] = []

    def add(self, template: str, value: Any):
        self.args.append(value)
        self.clauses.append(template.format(n=len(self.args)))

    @property
    def sql(self) -> str:
        return f"WHERE {' AND '.join(self.clauses)}" if self.clauses else ""

    def page(self, page_index: int, page_size: int) -> Tuple[str, List[Any]]:
        """LIMIT/OFFSET suffix and the full argument list."""
        n = len(self.args)
        offset = (page_index - 1) * page_size
        return f"LIMIT ${n + 1} OFFSET ${n + 2}", [*self.args, page_size, offset]


def build_book_filters(books_filter: BooksFilter) -> _Where:
    """Translate a BooksFilter into SQL conditions."""
    where = _Where()
    if books_filter.title:
        where.add("strpos(lower(title), lower(${n})) > 0", books_filter.title)
    if books_filter.author:
        where.add("strpos(lower(author), lower(${n})) > 0", books_filter.author)
    if books_filter.isbn:
        where.add("strpos(isbn, ${n}) > 0", books_filter.isbn)
    if books_filter.status is not None:
        where.add("status = ${n}", int(books_filter.status))
    return where


def build_request_filters(request_filter: BookRequestFilter) -> _Where:
    """Translate a BookRequestFilter into SQL conditions over the joined projection."""
    where = _Where()
    if request_filter.book_title and request_filter.book_title.strip():
        where.add("strpos(lower(b.title), lower(${n})) > 0", request_filter.book_title.strip())
    if request_filter.requestor_name and request_filter.requestor_name.strip():
        where.add(
            "strpos(lower(r.first_name || ' ' || r.last_name), lower(${n})) > 0",
            request_filter.requestor_name.strip()
        )
    if request_filter.request_date is not None:
        where.add("(br.request_date AT TIME ZONE 'UTC')::date = ${n}", _utc_date(request_filter.request_date))
    return where


def _utc_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


class PostgreSQLPersistence:
    """PostgreSQL persistence layer for books and book requests."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10, command_timeout: float = 30):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("library.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StoreError(f"PostgreSQL start failed: {e}")

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    @asynccontextmanager
    async def _connection(self, operation: str):
        """Acquire a pooled connection, converting driver failures to StoreError."""
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except LibraryException:
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            self.logger.error("Database operation failed", operation=operation, error=str(e))
            raise StoreError(f"An error occurred while {operation}: {e}") from e

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS books (
                    id UUID PRIMARY KEY,
                    title VARCHAR(300) NOT NULL,
                    author VARCHAR(200) NOT NULL DEFAULT '',
                    isbn VARCHAR(32) NOT NULL DEFAULT '',
                    publisher VARCHAR(200) NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    quantity INTEGER NOT NULL DEFAULT 0,
                    release_date TIMESTAMP WITH TIME ZONE NOT NULL,
                    status SMALLINT NOT NULL DEFAULT 0
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS book_requestors (
                    id UUID PRIMARY KEY,
                    first_name VARCHAR(100) NOT NULL DEFAULT '',
                    last_name VARCHAR(100) NOT NULL DEFAULT '',
                    contact_number VARCHAR(50) NOT NULL
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS book_requests (
                    id UUID PRIMARY KEY,
                    book_id UUID NOT NULL REFERENCES books(id) ON DELETE CASCADE,
                    book_requestor_id UUID NOT NULL REFERENCES book_requestors(id) ON DELETE CASCADE,
                    request_date TIMESTAMP WITH TIME ZONE NOT NULL,
                    return_date TIMESTAMP WITH TIME ZONE NOT NULL
                );
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_books_title_lower ON books(lower(title));
            """)
            # Resolve-or-create relies on this to stay single-row under concurrent inserts
            await conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_book_requestors_contact ON book_requestors(contact_number);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_book_requests_book ON book_requests(book_id);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_book_requests_requestor ON book_requests(book_requestor_id);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_book_requests_request_date ON book_requests(request_date);
            """)

    # Books

    async def get_book(self, book_id: UUID) -> Optional[Book]:
        """Load a book by ID."""
        async with self._connection("loading the book") as conn:
            row = await conn.fetchrow(f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = $1", book_id)
            return self._row_to_book(row) if row else None

    async def get_book_by_title(self, title: str) -> Optional[Book]:
        """Load a book by title, ignoring case and surrounding whitespace."""
        async with self._connection("loading the book by title") as conn:
            row = await conn.fetchrow(f"""
                SELECT {_BOOK_COLUMNS} FROM books
                WHERE lower(title) = $1
                ORDER BY id
                LIMIT 1
            """, normalize_title(title))
            return self._row_to_book(row) if row else None

    async def list_books(self, books_filter: BooksFilter) -> Tuple[List[Book], int]:
        """Return one page of books matching filter and the total match count."""
        where = build_book_filters(books_filter)
        limit, args = where.page(books_filter.page_index, books_filter.page_size)

        async with self._connection("listing books") as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM books {where.sql}", *where.args)
            rows = await conn.fetch(f"""
                SELECT {_BOOK_COLUMNS} FROM books {where.sql}
                ORDER BY title ASC, id ASC
                {limit}
            """, *args)

            return [self._row_to_book(row) for row in rows], total or 0

    async def add_book(self, book: Book) -> Book:
        """Insert a book."""
        async with self._connection("adding the book") as conn:
            row = await conn.fetchrow(f"""
                INSERT INTO books ({_BOOK_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {_BOOK_COLUMNS}
            """,
                book.id, book.title, book.author, book.isbn, book.publisher,
                book.description, book.quantity, book.release_date, int(book.status)
            )

            self.logger.info("Book added", book_id=str(book.id), title=book.title)
            return self._row_to_book(row)

    async def update_book(self, book: Book) -> Book:
        """Overwrite a stored book; raises NotFoundError when absent."""
        async with self._connection("updating the book") as conn:
            row = await conn.fetchrow(f"""
                UPDATE books SET
                    title = $2,
                    author = $3,
                    isbn = $4,
                    publisher = $5,
                    description = $6,
                    quantity = $7,
                    release_date = $8,
                    status = $9
                WHERE id = $1
                RETURNING {_BOOK_COLUMNS}
            """,
                book.id, book.title, book.author, book.isbn, book.publisher,
                book.description, book.quantity, book.release_date, int(book.status)
            )

            if not row:
                self.logger.warning("Book not found for update", book_id=str(book.id))
                raise NotFoundError("Book not found.")

            self.logger.info("Book updated", book_id=str(book.id))
            return self._row_to_book(row)

    async def delete_book(self, book_id: UUID) -> Book:
        """Delete a book and, by cascade, its requests; raises NotFoundError when absent."""
        async with self._connection("deleting the book") as conn:
            row = await conn.fetchrow(
                f"DELETE FROM books WHERE id = $1 RETURNING {_BOOK_COLUMNS}", book_id
            )

            if not row:
                self.logger.warning("Book not found for deletion", book_id=str(book_id))
                raise NotFoundError("Book not found.")

            self.logger.info("Book deleted", book_id=str(book_id))
            return self._row_to_book(row)

    # Requestors

    async def get_requestor_by_contact(self, contact_number: str) -> Optional[BookRequestor]:
        """Load a requestor by contact number."""
        async with self._connection("loading the book requestor") as conn:
            row = await conn.fetchrow("""
                SELECT id, first_name, last_name, contact_number
                FROM book_requestors WHERE contact_number = $1
            """, contact_number)
            return self._row_to_requestor(row) if row else None

    async def add_requestor(self, requestor: BookRequestor) -> BookRequestor:
        """Insert a requestor unless one with the same contact number exists.

        Returns the stored row, which is the pre-existing requestor when a
        concurrent call won the insert.
        """
        async with self._connection("adding the book requestor") as conn:
            row = await conn.fetchrow("""
                INSERT INTO book_requestors (id, first_name, last_name, contact_number)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (contact_number) DO NOTHING
                RETURNING id, first_name, last_name, contact_number
            """, requestor.id, requestor.first_name, requestor.last_name, requestor.contact_number)

            if row:
                self.logger.info("Book requestor added", requestor_id=str(requestor.id))
                return self._row_to_requestor(row)

            row = await conn.fetchrow("""
                SELECT id, first_name, last_name, contact_number
                FROM book_requestors WHERE contact_number = $1
            """, requestor.contact_number)

            if not row:
                raise StoreError("Failed to save book requestor.")

            self.logger.info("Book requestor already present", requestor_id=str(row["id"]))
            return self._row_to_requestor(row)

    # Book requests

    async def get_book_request(self, request_id: UUID) -> Optional[BookRequest]:
        """Load a book request with its book and requestor."""
        async with self._connection("loading the book request") as conn:
            row = await conn.fetchrow(f"{_REQUEST_SELECT} WHERE br.id = $1", request_id)
            return self._row_to_request(row) if row else None

    async def list_book_request_details(self, request_filter: BookRequestFilter) -> Tuple[List[BookRequestDetails], int]:
        """Return one page of flattened book requests and the total match count."""
        where = build_request_filters(request_filter)
        limit, args = where.page(request_filter.page_index, request_filter.page_size)

        async with self._connection("listing book requests") as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) {_REQUEST_FROM} {where.sql}", *where.args)
            rows = await conn.fetch(f"""
                {_REQUEST_SELECT} {where.sql}
                ORDER BY br.request_date DESC, br.id ASC
                {limit}
            """, *args)

            return [self._row_to_request(row).to_details() for row in rows], total or 0

    async def add_book_request(self, request: BookRequest) -> BookRequest:
        """Insert a book request."""
        async with self._connection("adding the book request") as conn:
            try:
                row = await conn.fetchrow("""
                    INSERT INTO book_requests (id, book_id, book_requestor_id, request_date, return_date)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING id, book_id, book_requestor_id, request_date, return_date
                """,
                    request.id, request.book_id, request.book_requestor_id,
                    request.request_date, request.return_date
                )
            except asyncpg.ForeignKeyViolationError as e:
                self.logger.warning("Book request references missing rows", request_id=str(request.id))
                raise NotFoundError("Referenced book or book requestor not found.") from e

            self.logger.info("Book request added", request_id=str(request.id), book_id=str(request.book_id))
            return BookRequest(**dict(row))

    async def update_book_request(self, request: BookRequest) -> BookRequest:
        """Persist the book reference and dates; raises NotFoundError when absent."""
        async with self._connection("updating the book request") as conn:
            try:
                row = await conn.fetchrow("""
                    UPDATE book_requests SET
                        book_id = $2,
                        request_date = $3,
                        return_date = $4
                    WHERE id = $1
                    RETURNING id
                """, request.id, request.book_id, request.request_date, request.return_date)
            except asyncpg.ForeignKeyViolationError as e:
                raise NotFoundError("Referenced book not found.") from e

            if not row:
                self.logger.warning("Book request not found for update", request_id=str(request.id))
                raise NotFoundError("Book request not found.")

            row = await conn.fetchrow(f"{_REQUEST_SELECT} WHERE br.id = $1", request.id)

            self.logger.info("Book request updated", request_id=str(request.id))
            return self._row_to_request(row)

    async def delete_book_request(self, request_id: UUID) -> BookRequest:
        """Delete a book request; raises NotFoundError when absent."""
        async with self._connection("deleting the book request") as conn:
            row = await conn.fetchrow("""
                DELETE FROM book_requests WHERE id = $1
                RETURNING id, book_id, book_requestor_id, request_date, return_date
            """, request_id)

            if not row:
                self.logger.warning("Book request not found for deletion", request_id=str(request_id))
                raise NotFoundError("Book request not found.")

            self.logger.info("Book request deleted", request_id=str(request_id))
            return BookRequest(**dict(row))

    def _row_to_book(self, row) -> Book:
        """Convert database row to Book."""
        return Book(
            id=row['id'],
            title=row['title'],
            author=row['author'],
            isbn=row['isbn'],
            publisher=row['publisher'],
            description=row['description'],
            quantity=row['quantity'],
            release_date=row['release_date'],
            status=BookStatus(row['status'])
        )

    def _row_to_requestor(self, row) -> BookRequestor:
        return BookRequestor(
            id=row['id'],
            first_name=row['first_name'],
            last_name=row['last_name'],
            contact_number=row['contact_number']
        )

    def _row_to_request(self, row) -> BookRequest:
        """Convert a joined request row to BookRequest with book and requestor attached."""
        return BookRequest(
            id=row['id'],
            book_id=row['book_id'],
            book_requestor_id=row['book_requestor_id'],
            request_date=row['request_date'],
            return_date=row['return_date'],
            book=Book(
                id=row['book_id'],
                title=row['book_title'],
                author=row['book_author'],
                isbn=row['book_isbn'],
                publisher=row['book_publisher'],
                description=row['book_description'],
                quantity=row['book_quantity'],
                release_date=row['book_release_date'],
                status=BookStatus(row['book_status'])
            ),
            book_requestor=BookRequestor(
                id=row['book_requestor_id'],
                first_name=row['requestor_first_name'],
                last_name=row['requestor_last_name'],
                contact_number=row['requestor_contact_number']
            )
        )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False
