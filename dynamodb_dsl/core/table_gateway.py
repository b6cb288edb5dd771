"""
Thin DynamoDB Table Gateway

Wraps the boto3 low-level DynamoDB client for one table. The low-level client
speaks the tagged attribute-value format, which is what the compiler and the
marshaller produce and consume, so requests pass through unchanged.

The gateway is responsible for:
- Creating the boto3 client from DynamoDBConfig (retries/timeouts are handed to
  botocore, never implemented here)
- Injecting the table name into every request
- Mapping botocore ClientErrors to domain exceptions
- Resolving the table's key schema from DescribeTable

It is the page-fetch and schema collaborator used by PageIterator and Table.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConflictError,
    ConnectionError,
    ItemNotFoundError,
    RetryableError,
    ValidationError,
)
from ..models.schema import TableSchema
from .keys import schema_from_description

logger = logging.getLogger(__name__)

_CONFLICT_CODES = {
    'ConditionalCheckFailedException': "Conditional check failed",
    'TransactionConflictException': "Transaction conflict",
    'ResourceInUseException': "Resource in use",
    'DuplicateTransactionException': "Duplicate transaction",
}

_RETRYABLE_CODES = {
    'ProvisionedThroughputExceededException': "Throttling",
    'RequestLimitExceeded': "Throttling",
    'ThrottlingException': "Throttling/rate limiting",
    'TooManyRequestsException': "Throttling/rate limiting",
    'InternalServerError': "Service unavailable",
    'ServiceUnavailable': "Service unavailable",
    'ServiceUnavailableException': "Service unavailable",
    'InternalFailure': "Service error",
    'TransactionCanceledException': "Transaction issue",
    'TransactionInProgressException': "Transaction issue",
    'RequestTimeoutException': "Request timeout",
}

_VALIDATION_CODES = {
    'ValidationException': "Validation failed",
    'ItemCollectionSizeLimitExceededException': "Item collection size limit exceeded",
    'LimitExceededException': "DynamoDB limit exceeded",
    'IdempotentParameterMismatchException': "Idempotent parameter mismatch",
}

_AUTH_CODES = {
    'UnrecognizedClientException': "Authentication/authorization failed",
    'AccessDeniedException': "Authentication/authorization failed",
    'InvalidSignatureException': "Invalid endpoint or signature",
    'IncompleteSignatureException': "Invalid endpoint or signature",
    'ExpiredTokenException': "Token expired",
}


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Map a botocore ClientError to a domain exception.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "Query", "PutItem")
        table_name: The DynamoDB table name
        resource_id: Optional resource identifier for context

    Returns:
        ConflictError, RetryableError, ValidationError, ItemNotFoundError or
        ConnectionError, with ``original_error`` set to ``error``
    """
    error_code = error.response.get('Error', {}).get('Code', 'Unknown')
    error_message = error.response.get('Error', {}).get('Message', str(error))

    context = f"{operation} on {table_name}"
    if resource_id:
        context += f" (resource: {resource_id})"
    full_message = f"{context}: {error_message}"

    if error_code in _CONFLICT_CODES:
        return ConflictError(f"{_CONFLICT_CODES[error_code]} - {full_message}", resource_id, original_error=error)

    if error_code in _RETRYABLE_CODES:
        return RetryableError(f"{_RETRYABLE_CODES[error_code]} - {full_message}", original_error=error)

    if error_code in _VALIDATION_CODES:
        return ValidationError(f"{_VALIDATION_CODES[error_code]} - {full_message}", original_error=error)

    if error_code == 'ResourceNotFoundException':
        if resource_id:
            return ItemNotFoundError(table_name, {'resource_id': resource_id}, original_error=error)
        return ConnectionError(f"Table not found - {full_message}", original_error=error)

    if error_code in _AUTH_CODES:
        return ConnectionError(f"{_AUTH_CODES[error_code]} - {full_message}", original_error=error)

    logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
    return ConnectionError(f"DynamoDB operation failed - {full_message}", original_error=error)


class TableGateway:
    """
    Thin gateway for one DynamoDB table over the low-level client.

    Every method takes the raw boto3 request parameters (minus TableName) and
    returns the raw response.
    """

    def __init__(self, config: DynamoDBConfig, table_name: str):
        """Initialize table gateway.

        Args:
            config: DynamoDB configuration
            table_name: Full name of the DynamoDB table
        """
        self.config = config
        self.table_name = table_name
        self._client = None

        if config.enable_debug_logging:
            logging.getLogger("dynamodb_dsl").setLevel(logging.DEBUG)

    @property
    def client(self):
        """Lazy initialization of the low-level DynamoDB client."""
        if self._client is None:
            try:
                session = boto3.Session(region_name=self.config.region_name)

                client_kwargs: Dict[str, Any] = {
                    'region_name': self.config.region_name,
                    'config': Config(
                        retries={'max_attempts': self.config.retries},
                        max_pool_connections=self.config.max_pool_connections,
                        read_timeout=self.config.timeout_seconds,
                        connect_timeout=self.config.timeout_seconds
                    ),
                }
                if self.config.endpoint_url:
                    client_kwargs['endpoint_url'] = self.config.endpoint_url

                self._client = session.client('dynamodb', **client_kwargs)
            except Exception as e:
                logger.error(f"Failed to create DynamoDB client: {e}")
                raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e
        return self._client

    def _invoke(self, operation: str, method: str, params: Dict[str, Any], resource_id: Optional[str] = None) -> Dict[str, Any]:
        try:
            return getattr(self.client, method)(**params)
        except ClientError as e:
            raise map_dynamodb_error(e, operation, self.table_name, resource_id) from e

    def _call(self, operation: str, method: str, resource_id: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        return self._invoke(operation, method, {'TableName': self.table_name, **kwargs}, resource_id)

    def describe_table(self) -> Dict[str, Any]:
        """Return the ``Table`` section of DescribeTable."""
        return self._call("DescribeTable", "describe_table")['Table']

    def describe_schema(self) -> TableSchema:
        """Resolve the table's hash/range key names and types."""
        schema = schema_from_description(self.describe_table())
        logger.debug(f"Resolved schema for {self.table_name}: {schema}")
        return schema

    def query(self, **kwargs) -> Dict[str, Any]:
        """Execute a Query. Returns the raw response (Items, LastEvaluatedKey)."""
        return self._call("Query", "query", **kwargs)

    def scan(self, **kwargs) -> Dict[str, Any]:
        """Execute a Scan. Returns the raw response (Items, LastEvaluatedKey)."""
        if 'Limit' not in kwargs:
            logger.debug(f"Scan on {self.table_name} without Limit")
        return self._call("Scan", "scan", **kwargs)

    def get_item(self, **kwargs) -> Dict[str, Any]:
        return self._call("GetItem", "get_item", **kwargs)

    def put_item(self, **kwargs) -> Dict[str, Any]:
        response = self._call("PutItem", "put_item", **kwargs)
        logger.info(f"Put item in {self.table_name}")
        return response

    def update_item(self, **kwargs) -> Dict[str, Any]:
        response = self._call("UpdateItem", "update_item", **kwargs)
        logger.info(f"Updated item in {self.table_name}: {kwargs.get('Key')}")
        return response

    def delete_item(self, **kwargs) -> Dict[str, Any]:
        response = self._call("DeleteItem", "delete_item", **kwargs)
        logger.info(f"Deleted item from {self.table_name}: {kwargs.get('Key')}")
        return response

    def batch_write_item(self, requests: List[Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        """Execute one BatchWriteItem for this table.

        Args:
            requests: PutRequest/DeleteRequest entries (at most 25)
            **kwargs: Extra top-level parameters (e.g. ReturnConsumedCapacity)

        Returns:
            The raw response; ``UnprocessedItems`` is left to the caller
        """
        params = {'RequestItems': {self.table_name: requests}, **kwargs}
        response = self._invoke("BatchWriteItem", "batch_write_item", params)
        logger.info(f"Batch wrote {len(requests)} requests to {self.table_name}")
        return response

    def batch_get_item(self, keys: List[Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        """Execute one BatchGetItem for this table.

        ``kwargs`` go into the table's request entry (ProjectionExpression,
        ConsistentRead, ...).
        """
        params = {'RequestItems': {self.table_name: {'Keys': keys, **kwargs}}}
        return self._invoke("BatchGetItem", "batch_get_item", params)


def create_table_gateway(config: DynamoDBConfig, table_name: str) -> TableGateway:
    """
    Factory function to create a TableGateway instance.

    Args:
        config: DynamoDB configuration
        table_name: Base table name, prefixed via ``config.get_table_name``

    Returns:
        Configured TableGateway instance
    """
    return TableGateway(config, config.get_table_name(table_name))
