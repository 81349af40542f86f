"""
Common plumbing for workflows: failure conversion, timing and cache-aside reads.
"""

import functools
from contextlib import nullcontext
from typing import Awaitable, Callable, Optional, Type, TypeVar

from pydantic import BaseModel

from shared.errors import LibraryException
from shared.logging import bind_operation, get_logger
from shared.metrics import MetricsCollector

from ..cache.redis_cache import RedisCache
from ..domain.results import Err
from ..persistence.postgres import PostgreSQLPersistence


M = TypeVar("M", bound=BaseModel)


def workflow_operation(name: str):
    """Turn any exception raised by a workflow method into an Err result."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self: "Workflow", *args, **kwargs):
            timer = self.metrics.time_workflow(name) if self.metrics else nullcontext()
            with timer, bind_operation(name):
                try:
                    return await func(self, *args, **kwargs)
                except LibraryException as e:
                    self.logger.warning(
                        "Workflow operation failed",
                        operation=name,
                        code=e.code,
                        error=e.message
                    )
                    return Err.from_exception(e)
                except Exception as e:
                    self.logger.error("Unexpected workflow error", operation=name, error=str(e), exc_info=True)
                    if self.metrics:
                        self.metrics.record_error("WORKFLOW_ERROR")
                    return Err.store(f"An error occurred: {e}")

        return wrapper
    return decorator


class Workflow:
    """Base class holding the shared store and cache collaborators."""

    logger_name = "library.workflows"

    def __init__(
        self,
        persistence: PostgreSQLPersistence,
        cache: RedisCache,
        metrics: Optional[MetricsCollector] = None
    ):
        self.persistence = persistence
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger(self.logger_name)

    async def _read_through(
        self,
        key: str,
        model: Type[M],
        ttl_seconds: int,
        loader: Callable[[], Awaitable[Optional[M]]]
    ) -> Optional[M]:
        """Serve key from cache, or load it and populate the cache on a store hit."""
        cached = await self.cache.get(key, model)
        if cached is not None:
            return cached

        value = await loader()
        if value is not None:
            await self.cache.set(key, value, ttl_seconds)
        return value
