"""
Persistence package for Library Service.

PostgreSQL storage for books, requestors and book requests.
"""
