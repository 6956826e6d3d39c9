"""
Timeout utilities for calls to external identity providers.
"""

import asyncio
import builtins
from collections.abc import Awaitable
from typing import TypeVar

from src.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TimeoutError(Exception):
    """Custom timeout exception with context."""

    def __init__(self, operation: str, timeout: float, details: str = ""):
        self.operation = operation
        self.timeout = timeout
        self.details = details
        super().__init__(
            f"{operation} timed out after {timeout}s{f': {details}' if details else ''}"
        )


async def with_timeout(awaitable: Awaitable[T], timeout: float, operation_name: str) -> T:
    """
    Await an operation with a deadline.

    Args:
        awaitable: Coroutine or awaitable to run
        timeout: Timeout in seconds
        operation_name: Description of the operation for error messages

    Returns:
        Result of the operation

    Raises:
        TimeoutError: If the operation does not finish within the deadline
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except builtins.TimeoutError:
        logger.error(f"Operation '{operation_name}' timed out after {timeout}s")
        raise TimeoutError(operation_name, timeout)
