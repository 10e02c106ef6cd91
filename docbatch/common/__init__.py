"""
Shared configuration, logging, error handling and helpers for docbatch.
"""

from .result import Result
from .error_handling import (
    DocBatchError,
    StoreNotInitializedError,
    MalformedInputError,
    HandlerError,
    store_operation,
)

__all__ = [
    "Result",
    "DocBatchError",
    "StoreNotInitializedError",
    "MalformedInputError",
    "HandlerError",
    "store_operation",
]
