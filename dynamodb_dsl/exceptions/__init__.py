# Base exception class
from .base import DynamoDBWrapperError

from .domain_exceptions import (
    CompileError,
    ConflictError,
    ConnectionError,
    ItemNotFoundError,
    MarshalError,
    RetryableError,
    ValidationError,
)

__all__ = [
    # Base exception
    "DynamoDBWrapperError",

    # Domain exceptions (alphabetically ordered)
    "CompileError",
    "ConflictError",
    "ConnectionError",
    "ItemNotFoundError",
    "MarshalError",
    "RetryableError",
    "ValidationError",
]
