"""Base task class with common functionality.

Provides a foundation for all Celery tasks with:
- Running async services inside Celery's sync workers
- Error handling and logging
- Retry logic
"""

import asyncio
import functools
import logging
from typing import Any, Callable, TypeVar

from celery import Task

from pledge.core.celery_app import celery_app
from pledge.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableTask(Task):
    """Task with automatic retry on failure.

    Retries with exponential backoff on transient errors. Validation errors
    are never retried.
    """

    abstract = True
    autoretry_for = (Exception,)
    dont_autoretry_for = (ValidationError,)
    retry_backoff = True
    retry_backoff_max = 600  # Max 10 minutes
    retry_jitter = True
    max_retries = 3

    def on_failure(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Log task failure."""
        logger.error(
            f"Task {self.name} failed after {self.request.retries} retries: {exc}",
            extra={"task_id": task_id, "task_name": self.name},
        )

    def on_retry(
        self,
        exc: Exception,
        task_id: str,
        args: tuple,
        kwargs: dict,
        einfo: Any,
    ) -> None:
        """Log task retry."""
        logger.warning(
            f"Task {self.name} retrying "
            f"(attempt {self.request.retries + 1}/{self.max_retries}): {exc}",
            extra={"task_id": task_id, "task_name": self.name},
        )


def run_async(coro: Any) -> Any:
    """Run a coroutine on the worker's event loop.

    The loop is kept between tasks so pooled DB and RPC connections stay
    bound to one loop.
    """
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    if loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def async_task(
    *args: Any,
    bind: bool = True,
    base: type[Task] = RetryableTask,
    **kwargs: Any,
) -> Callable:
    """Decorator for async Celery tasks.

    Wraps async functions to run in Celery's sync context.

    @param bind - Bind task instance to first argument
    @param base - Base task class to use
    @returns Decorated task function

    Example:
        @async_task(queue="high")
        async def reconcile_purchase(self, purchase: dict) -> dict:
            ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @celery_app.task(*args, bind=bind, base=base, **kwargs)
        @functools.wraps(func)
        def wrapper(*task_args: Any, **task_kwargs: Any) -> T:
            return run_async(func(*task_args, **task_kwargs))

        return wrapper

    return decorator
