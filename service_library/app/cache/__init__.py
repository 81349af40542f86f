"""
Cache package for Library Service.

Provides a Redis-backed cache-aside store for books, requestors and book
requests, with a fixed TTL per key namespace.
"""
