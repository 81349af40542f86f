"""
Unit tests for Library main service.
"""

import pytest
from unittest.mock import AsyncMock, patch
from uuid import uuid4
from fastapi.testclient import TestClient

from service_library.app.domain.models import Book, BookRequestDetails, PaginationResult
from service_library.app.domain.results import Err, Ok
from service_library.app.main import LibraryService, create_app


class TestLibraryService:
    """Test cases for LibraryService."""

    @pytest.fixture
    def library_service(self):
        """Create LibraryService instance."""
        return LibraryService()

    @pytest.fixture
    def client(self, library_service):
        """Create test client; lifespan hooks are not run."""
        return TestClient(library_service.app)

    @pytest.fixture
    def book_payload(self, clean_code_book):
        return {
            "title": clean_code_book.title,
            "author": clean_code_book.author,
            "isbn": clean_code_book.isbn,
            "quantity": clean_code_book.quantity,
            "status": int(clean_code_book.status)
        }

    def test_create_app(self):
        """Test application factory."""
        app = create_app()
        paths = {route.path for route in app.routes}

        assert "/api/books" in paths
        assert "/api/bookrequests/{request_id}" in paths

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["service"] == "library"
        assert "book_requests" in data["capabilities"]

    def test_health_endpoint_without_backends(self, client):
        """Test health reports unreachable dependencies."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "degraded"
        assert data["dependencies"] == {"redis": "error", "postgres": "error"}

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint."""
        client.get("/")
        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'http_requests_total{method="GET",route="/",status_code="200"}' in response.text

    def test_request_id_echoed(self, client):
        """Test the request ID header is propagated."""
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_get_book(self, library_service, client, clean_code_book):
        """Test a found book is wrapped in the success envelope."""
        with patch.object(library_service.books, "get_book", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = Ok(clean_code_book)

            response = client.get(f"/api/books/{clean_code_book.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == ""
        assert body["data"]["id"] == str(clean_code_book.id)
        assert body["data"]["title"] == "Clean Code"
        mock_get.assert_called_once_with(clean_code_book.id)

    def test_get_book_not_found(self, library_service, client):
        """Test NotFound results map to 404."""
        with patch.object(library_service.books, "get_book", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = Err.not_found("Book not found.")

            response = client.get(f"/api/books/{uuid4()}")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["message"] == "Book not found."
        assert body["code"] == "NOT_FOUND"

    def test_get_book_malformed_id(self, client):
        """Test a non-UUID identifier is rejected as a validation failure."""
        response = client.get("/api/books/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_add_book_created(self, library_service, client, book_payload, clean_code_book):
        """Test create returns 201."""
        with patch.object(library_service.books, "add_book", new_callable=AsyncMock) as mock_add:
            mock_add.return_value = Ok(clean_code_book)

            response = client.post("/api/books", json=book_payload)

        assert response.status_code == 201
        assert response.json()["data"]["isbn"] == "9780132350884"
        assert mock_add.call_args.args[0].title == "Clean Code"

    def test_add_book_store_failure(self, library_service, client, book_payload):
        """Test Store results map to 500 with the message intact."""
        with patch.object(library_service.books, "add_book", new_callable=AsyncMock) as mock_add:
            mock_add.return_value = Err.store("An error occurred: pool closed")

            response = client.post("/api/books", json=book_payload)

        assert response.status_code == 500
        assert response.json()["message"] == "An error occurred: pool closed"

    def test_update_book_uses_route_id(self, library_service, client, book_payload, clean_code_book):
        """Test the route ID is applied to the payload."""
        with patch.object(library_service.books, "update_book", new_callable=AsyncMock) as mock_update:
            mock_update.return_value = Ok(clean_code_book)

            response = client.put(f"/api/books/{clean_code_book.id}", json=book_payload)

        assert response.status_code == 200
        assert mock_update.call_args.args[0].id == clean_code_book.id

    def test_update_book_id_mismatch(self, library_service, client, book_payload, clean_code_book):
        """Test a body ID that disagrees with the route is rejected."""
        with patch.object(library_service.books, "update_book", new_callable=AsyncMock) as mock_update:
            response = client.put(
                f"/api/books/{clean_code_book.id}",
                json={**book_payload, "id": str(uuid4())}
            )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        mock_update.assert_not_called()

    def test_delete_book(self, library_service, client, clean_code_book):
        """Test delete returns the removed book."""
        with patch.object(library_service.books, "delete_book", new_callable=AsyncMock) as mock_delete:
            mock_delete.return_value = Ok(clean_code_book)

            response = client.delete(f"/api/books/{clean_code_book.id}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == str(clean_code_book.id)

    def test_get_books_query_aliases(self, library_service, client, clean_code_book):
        """Test paging and filter parameters reach the workflow."""
        page = PaginationResult[Book].build(items=[clean_code_book], total_count=11, page_number=2, page_size=5)

        with patch.object(library_service.books, "get_books", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = Ok(page)

            response = client.get("/api/books", params={"pageIndex": 2, "pageSize": 5, "title": "Code"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total_count"] == 11
        assert data["total_pages"] == 3
        assert len(data["items"]) == 1

        books_filter = mock_list.call_args.args[0]
        assert (books_filter.page_index, books_filter.page_size, books_filter.title) == (2, 5, "Code")

    def test_get_books_page_size_limit(self, client):
        """Test oversized pages are rejected."""
        response = client.get("/api/books", params={"pageSize": 500})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_add_book_request_created(self, library_service, client, stored_request):
        """Test create request returns 201."""
        with patch.object(library_service.book_requests, "add_book_request", new_callable=AsyncMock) as mock_add:
            mock_add.return_value = Ok(stored_request)

            response = client.post("/api/bookrequests", json={
                "book_title": "Clean Code",
                "first_name": "Jane",
                "last_name": "Doe",
                "contact_number": "555-0100"
            })

        assert response.status_code == 201
        assert response.json()["data"]["book_requestor"]["contact_number"] == "555-0100"

    def test_add_book_request_unknown_title(self, library_service, client):
        """Test unknown titles map to 404."""
        with patch.object(library_service.book_requests, "add_book_request", new_callable=AsyncMock) as mock_add:
            mock_add.return_value = Err.not_found("Book with title 'Missing' not found.")

            response = client.post("/api/bookrequests", json={"book_title": "Missing", "contact_number": "1"})

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_get_book_requests_filters(self, library_service, client, stored_request):
        """Test request listing parameters reach the workflow."""
        details = stored_request.to_details()
        page = PaginationResult[BookRequestDetails].build(items=[details], total_count=1, page_number=1, page_size=10)

        with patch.object(library_service.book_requests, "get_book_requests", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = Ok(page)

            response = client.get("/api/bookrequests", params={
                "requestorName": "Jane",
                "bookTitle": "Clean",
                "requestDate": "2024-03-01T00:00:00Z"
            })

        assert response.status_code == 200
        assert response.json()["data"]["items"][0]["requestor"] == "Jane Doe"

        request_filter = mock_list.call_args.args[0]
        assert request_filter.requestor_name == "Jane"
        assert request_filter.book_title == "Clean"
        assert request_filter.request_date.day == 1

    def test_update_book_request_validation(self, library_service, client, stored_request):
        """Test Validation results map to 400."""
        with patch.object(library_service.book_requests, "update_book_request", new_callable=AsyncMock) as mock_update:
            mock_update.return_value = Err.validation("Invalid book request data.")

            response = client.put(f"/api/bookrequests/{stored_request.id}", json={"book_title": "Clean Code"})

        assert response.status_code == 400
        assert mock_update.call_args.args[0].id == stored_request.id

    def test_delete_book_request(self, library_service, client, stored_request):
        """Test delete request returns the removed request."""
        with patch.object(library_service.book_requests, "delete_book_request", new_callable=AsyncMock) as mock_delete:
            mock_delete.return_value = Ok(stored_request)

            response = client.delete(f"/api/bookrequests/{stored_request.id}")

        assert response.status_code == 200
        mock_delete.assert_called_once_with(stored_request.id)
