"""
Library Service package for the Library System.

This package manages books and the borrow requests filed against them.
It provides:

- app.main: API surface for books, book requests and health.
- app.domain: Entity, DTO, filter and result models.
- app.workflows: Book and book request orchestration (store + cache).
- app.persistence: PostgreSQL storage for books, requestors and requests.
- app.cache: Redis-backed cache-aside storage and its TTL policy.

Guidelines:
- The service is stateless; rely on external cache/DB.
- Workflows never raise; they return Ok/Err results.
- Writes invalidate cache entries, reads populate them.
"""
