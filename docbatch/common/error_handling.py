"""
Centralized error handling for docbatch.

Every public operation returns a Result envelope instead of raising:
store and input failures are converted into failed envelopes at the
operation boundary by the store_operation decorator.
"""

import logging
from functools import wraps
from typing import Callable

from bson.errors import BSONError
from pymongo.errors import PyMongoError

from .result import Result


class DocBatchError(Exception):
    """Base class for errors raised inside docbatch."""


class StoreNotInitializedError(DocBatchError):
    """Raised when an operation is issued against a handle that was never initialized."""

    def __init__(self, message: str = "Store handle is not initialized. Call initialize() first."):
        super().__init__(message)


class MalformedInputError(DocBatchError):
    """Raised when an operation receives arguments it cannot act on."""


class HandlerError(DocBatchError):
    """
    Raised when a caller-supplied window handler fails.

    Attributes:
        cause: Exception raised by the handler, if any
    """

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


# Failures that become failed envelopes. Anything else is a programming error.
ENVELOPED_ERRORS = (DocBatchError, PyMongoError, BSONError)


def describe_error(error: Exception) -> str:
    """Human-readable message for an exception, never empty."""
    message = str(error)
    return message if message else type(error).__name__


def store_operation(operation_name: str, critical: bool = False):
    """
    Decorator wrapping a public store operation in the Result envelope.

    - Result return values pass through unchanged
    - DocBatchError, PyMongoError and BSONError become Result.fail(<message>)
    - Failures are logged at WARNING (ERROR with traceback if critical)

    Args:
        operation_name: Human-readable operation name used in log lines
        critical: If True, logs failures at ERROR level with stack trace

    Usage:
        @store_operation("bulk update")
        def bulk_update(store, collection, updates, omits=None):
            ...
            return Result.ok(report)
    """

    def decorator(func: Callable[..., Result]) -> Callable[..., Result]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Result:
            logger = logging.getLogger(func.__module__)
            try:
                return func(*args, **kwargs)
            except ENVELOPED_ERRORS as e:
                log_level = logging.ERROR if critical else logging.WARNING
                logger.log(
                    log_level,
                    f"[{operation_name}] ✗ Failed: {describe_error(e)}",
                    exc_info=critical,
                )
                return Result.fail(describe_error(e))

        return wrapper

    return decorator
