"""
Domain exceptions for dynamodb_dsl.

Organized by category:
1. Input errors (DSL compilation, wire marshalling, request validation)
2. Resource not found errors
3. Conflict and conditional errors
4. Infrastructure and retry errors

Compile and marshal errors are local to the caller and can be fixed by
correcting the input. Store errors are never retried by this library.
"""

from typing import Any, Dict, Optional

from .base import DynamoDBWrapperError


# =============================================================================
# Input Errors
# =============================================================================

class ValidationError(DynamoDBWrapperError):
    """Raised when caller input or a store request fails validation."""

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None, original_error: Optional[Exception] = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            errors: Dictionary of field-level validation errors
            original_error: The original exception that caused this error
        """
        self.errors = errors or {}
        context = {}
        if self.errors:
            context['validation_errors'] = self.errors
        super().__init__(message, original_error, context)


class CompileError(ValidationError):
    """Raised when a DSL string cannot be compiled.

    Used for:
    - Unbalanced parentheses in the expression or in a TAG(...) literal
    - Unterminated quoted strings and quoted attribute names
    - Invalid explicit-constructor payloads (e.g. ``BOOL(maybe)``)

    ``offset`` is the character (str index) offset in ``source`` where the
    unparsed remainder starts, or None when it cannot be determined.
    ``byte_offset`` is the same position counted in UTF-8 bytes.
    """

    def __init__(self, message: str, source: str = "", offset: Optional[int] = None):
        self.source = source
        self.offset = offset
        self.byte_offset = None if offset is None else len(source[:offset].encode("utf-8"))
        errors = {}
        if offset is not None:
            errors['offset'] = offset
            errors['byte_offset'] = self.byte_offset
            errors['remainder'] = source[offset:]
        super().__init__(message, errors)


class MarshalError(ValidationError):
    """Raised when a wire value cannot be converted back to a plain value."""

    def __init__(self, message: str, wire_value: Any = None, original_error: Optional[Exception] = None):
        self.wire_value = wire_value
        super().__init__(message, {'wire_value': wire_value}, original_error)


# =============================================================================
# Resource Not Found Errors
# =============================================================================

class ItemNotFoundError(DynamoDBWrapperError):
    """Raised when a specific item or table is not found in DynamoDB."""

    def __init__(self, table_name: str, key: dict, original_error: Optional[Exception] = None):
        """Initialize item not found error.

        Args:
            table_name: Name of the DynamoDB table
            key: The key that was not found
            original_error: The original exception that caused this error
        """
        self.table_name = table_name
        self.key = key
        message = f"Item not found in table '{table_name}' with key: {key}"
        context = {
            'table_name': table_name,
            'key': key
        }
        super().__init__(message, original_error, context)


# =============================================================================
# Conflict and Conditional Errors
# =============================================================================

class ConflictError(DynamoDBWrapperError):
    """Raised when a conditional write fails because of existing data.

    Used for:
    - ConditionalCheckFailedException (e.g. ``put_new`` on an existing key)
    - Transaction conflicts reported by the store
    """

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_id = resource_id
        context = {}
        if resource_id:
            context['resource_id'] = resource_id
        super().__init__(message, original_error, context)


# =============================================================================
# Infrastructure and Retry Errors
# =============================================================================

class ConnectionError(DynamoDBWrapperError):
    """Raised when the DynamoDB client cannot be created or reached.

    Used for:
    - Network connectivity issues
    - Authentication/authorization failures
    - Unknown error codes from the service
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, original_error, context)


class RetryableError(DynamoDBWrapperError):
    """Raised for throttling and transient service failures.

    The library does not retry; callers (or the botocore retry config) decide.
    """

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        self.retry_after_seconds = retry_after_seconds
        context = {}
        if retry_after_seconds:
            context['retry_after_seconds'] = retry_after_seconds
        super().__init__(message, original_error, context)
