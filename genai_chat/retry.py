"""Retry logic for DynamoDB calls using tenacity."""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import StorageError

F = TypeVar("F", bound=Callable[..., Any])

THROTTLING_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
        "InternalServerError",
    }
)


def is_throttling_error(exc: BaseException) -> bool:
    """Return True for DynamoDB errors worth retrying."""
    if not isinstance(exc, ClientError):
        return False
    return exc.response.get("Error", {}).get("Code") in THROTTLING_ERROR_CODES


def with_storage_retry(
    operation: str,
    max_retries: int = 3,
) -> Callable[[F], F]:
    """Decorator adding retry logic to async repository methods.

    Args:
        operation: Name of the operation for log and error messages
        max_retries: Maximum number of attempts

    Returns:
        Decorated function with retry logic. Errors that survive the
        retries surface as StorageError.

    """

    def decorator(func: F) -> F:
        @retry(
            retry=retry_if_exception(is_throttling_error),
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"{operation} attempt {retry_state.attempt_number}: {retry_state.outcome.exception() if retry_state.outcome else 'Unknown error'}",
            ),
        )
        async def attempt(*args: Any, **kwargs: Any) -> Any:
            return await func(*args, **kwargs)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await attempt(*args, **kwargs)
            except (ClientError, BotoCoreError) as e:
                logger.error(f"{operation} failed: {e}")
                raise StorageError(f"{operation} failed: {e}") from e

        return wrapper  # type: ignore[return-value,no-any-return]

    return decorator
