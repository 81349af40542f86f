"""
Cache key namespaces and their TTLs.
"""

from enum import Enum
from typing import Any, Dict

from ..domain.models import normalize_title


class CacheNamespace(str, Enum):
    """Cache key namespaces."""
    BOOK = "book"
    BOOK_REQUEST = "bookrequest"
    REQUEST_BOOK = "bookrequest:book"
    REQUEST_REQUESTOR = "bookrequest:requestor"


CACHE_TTL_SECONDS: Dict[CacheNamespace, int] = {
    CacheNamespace.BOOK: 5 * 60,
    CacheNamespace.BOOK_REQUEST: 5 * 60,
    CacheNamespace.REQUEST_BOOK: 10 * 60,
    CacheNamespace.REQUEST_REQUESTOR: 10 * 60,
}


def cache_key(namespace: CacheNamespace, identity: Any) -> str:
    """Build the cache key for an entity in a namespace."""
    return f"{namespace.value}:{identity}"


def namespace_of(key: str) -> str:
    """Return the namespace a key belongs to, preferring the most specific one."""
    for namespace in sorted(CacheNamespace, key=lambda ns: len(ns.value), reverse=True):
        if key.startswith(f"{namespace.value}:"):
            return namespace.value
    return "unknown"


def ttl_for(namespace: CacheNamespace) -> int:
    return CACHE_TTL_SECONDS[namespace]


def book_key(book_id) -> str:
    return cache_key(CacheNamespace.BOOK, book_id)


def book_request_key(request_id) -> str:
    return cache_key(CacheNamespace.BOOK_REQUEST, request_id)


def request_book_key(title: str) -> str:
    # Title lookups are case-insensitive, so the key is too
    return cache_key(CacheNamespace.REQUEST_BOOK, normalize_title(title))


def request_requestor_key(contact_number: str) -> str:
    return cache_key(CacheNamespace.REQUEST_REQUESTOR, contact_number)
