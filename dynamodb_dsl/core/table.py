"""
Bound table handle.

Combines a TableGateway with the table's resolved key schema so callers can
read and write with plain values and DSL strings:

    >>> table = Table.bind(create_table_gateway(config, "events"))
    >>> table.put("acme", 1588867110000, {"score": 12, "tags": ["a", "b"]})
    >>> table.update("acme", 1588867110000, "SET score = score + 1")
    {'tenant': 'acme', 'ts': 1588867110000, 'score': 13, 'tags': ['a', 'b']}
    >>> for entry in table.query("tenant = 'acme' AND ts > 0").add_filter("score > 10"):
    ...     print(entry.key, entry.value)

The schema is resolved once, at bind time, and never changes afterwards.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..exceptions import ItemNotFoundError, RetryableError, ValidationError
from ..models.enums import LiteralGrammar, ScanMethod
from ..models.schema import TableSchema
from .compiler import compile_expression
from .iterator import PageIterator
from .keys import key_of
from .marshaller import from_item, to_item
from .table_gateway import TableGateway

logger = logging.getLogger(__name__)

BATCH_WRITE_SIZE = 25
BATCH_READ_SIZE = 100


class Table:
    """DSL-driven access to one DynamoDB table."""

    def __init__(
        self,
        gateway: TableGateway,
        schema: Optional[TableSchema] = None,
        grammar: Optional[LiteralGrammar] = None,
        decimal_numbers: Optional[bool] = None
    ):
        """Initialize the handle.

        Args:
            gateway: Gateway for the table
            schema: Resolved key schema; an unresolved schema makes every
                keyed operation fail until the handle is rebound
            grammar: Literal grammar, defaults to ``gateway.config.literal_grammar``
            decimal_numbers: Decode N as Decimal, defaults to the config value
        """
        self.gateway = gateway
        self.schema = schema or TableSchema()
        self.grammar = LiteralGrammar(grammar if grammar is not None else gateway.config.literal_grammar)
        self.decimal_numbers = gateway.config.decimal_numbers if decimal_numbers is None else decimal_numbers

    @classmethod
    def bind(cls, gateway: TableGateway, **kwargs) -> 'Table':
        """Resolve the key schema through DescribeTable and return a handle."""
        return cls(gateway, gateway.describe_schema(), **kwargs)

    @property
    def table_name(self) -> str:
        return self.gateway.table_name

    def key_of(self, hash_value: Any, range_value: Any = None) -> Dict[str, Dict[str, Any]]:
        """Typed key map, or ``{}`` while the schema is not resolved."""
        return key_of(self.schema, hash_value, range_value)

    def _require_key(self, hash_value: Any, range_value: Any) -> Dict[str, Dict[str, Any]]:
        key = self.key_of(hash_value, range_value)
        if not key:
            raise ValidationError(f"Key schema for table '{self.table_name}' is not resolved")
        if self.schema.range_key and range_value is None:
            raise ValidationError(
                f"Table '{self.table_name}' requires a range key value",
                {'range_key': self.schema.range_key}
            )
        return key

    def _compile(self, dsl: Optional[str], start_index: int = 1):
        return compile_expression(dsl, self.grammar, start_index)

    def _iterator(self, dsl: str, method: ScanMethod, projection: Optional[str], limit: Optional[int], **options) -> PageIterator:
        fetch = self.gateway.query if method is ScanMethod.QUERY else self.gateway.scan
        iterator = PageIterator(
            self._compile(dsl),
            fetch,
            self.schema,
            method=method,
            limit=limit,
            grammar=self.grammar,
            decimal_numbers=self.decimal_numbers,
            table_name=self.table_name,
            **options
        )
        if projection:
            iterator.set_projection(projection)
        return iterator

    def query(self, dsl: str, projection: Optional[str] = None, limit: Optional[int] = None, **options) -> PageIterator:
        """Lazy Query over a key condition.

        Raises:
            ValidationError: If the key condition is empty or binds no values
            CompileError: If ``dsl`` is malformed
        """
        compiled = self._compile(dsl)
        if compiled.is_empty or not compiled.values:
            raise ValidationError(
                "Query needs a key condition with at least one value",
                {'KeyConditionExpression': dsl}
            )
        return self._iterator(dsl, ScanMethod.QUERY, projection, limit, **options)

    def scan(self, dsl: str = "", projection: Optional[str] = None, limit: Optional[int] = None, **options) -> PageIterator:
        """Lazy Scan, optionally filtered by ``dsl``."""
        return self._iterator(dsl, ScanMethod.SCAN, projection, limit, **options)

    def get(self, hash_value: Any, range_value: Any = None, projection: Optional[str] = None) -> Dict[str, Any]:
        """Fetch one item as a plain dict.

        Raises:
            ItemNotFoundError: If no item has this key
        """
        key = self._require_key(hash_value, range_value)
        params: Dict[str, Any] = {'Key': key}
        if projection:
            params['ProjectionExpression'] = projection

        response = self.gateway.get_item(**params)
        item = response.get('Item')
        if not item:
            raise ItemNotFoundError(self.table_name, key)
        return from_item(item, self.decimal_numbers)

    def _put_params(self, hash_value: Any, range_value: Any, value: Mapping[str, Any]) -> Dict[str, Any]:
        key = self._require_key(hash_value, range_value)
        item = to_item(value)
        item.update(key)
        return {'Item': item}

    def put(self, hash_value: Any, range_value: Any, value: Mapping[str, Any], **options) -> None:
        """Write ``value`` under the key, replacing any existing item."""
        params = self._put_params(hash_value, range_value, value)
        params.update(options)
        self.gateway.put_item(**params)

    def put_new(self, hash_value: Any, range_value: Any, value: Mapping[str, Any]) -> None:
        """Write ``value`` only if no item exists under the key.

        Raises:
            ConflictError: If the item already exists
        """
        params = self._put_params(hash_value, range_value, value)
        guard = compile_expression(f"attribute_not_exists(`{self.schema.hash_key}`)")
        params.update(guard.to_params('ConditionExpression'))
        self.gateway.put_item(**params)

    def update(
        self,
        hash_value: Any,
        range_value: Any,
        dsl: str,
        condition: Optional[str] = None
    ) -> Dict[str, Any]:
        """Apply an update expression and return the item after the update.

        Args:
            hash_value: Partition key value
            range_value: Sort key value, None for hash-only tables
            dsl: Update expression, e.g. ``"SET n = n + 1 REMOVE old"``
            condition: Optional condition expression guarding the update

        Returns:
            All attributes of the updated item, unmarshalled

        Raises:
            ValidationError: If ``dsl`` compiles to nothing
            ConflictError: If ``condition`` does not hold
        """
        key = self._require_key(hash_value, range_value)
        compiled = self._compile(dsl)
        if compiled.is_empty:
            raise ValidationError("Update expression is empty", {'UpdateExpression': dsl})

        params: Dict[str, Any] = {'Key': key, 'ReturnValues': 'ALL_NEW'}
        params.update(compiled.to_params('UpdateExpression'))

        if condition:
            guard = self._compile(condition, compiled.last_index + 1)
            params['ConditionExpression'] = guard.expression
            if guard.names:
                params.setdefault('ExpressionAttributeNames', {}).update(guard.names)
            if guard.values:
                params.setdefault('ExpressionAttributeValues', {}).update(guard.values)

        response = self.gateway.update_item(**params)
        return from_item(response.get('Attributes'), self.decimal_numbers)

    def delete(self, hash_value: Any, range_value: Any = None) -> None:
        """Delete the item under the key. Deleting a missing item is a no-op."""
        key = self._require_key(hash_value, range_value)
        self.gateway.delete_item(Key=key)

    def batch_write(self, entries: Iterable[Tuple[Any, Any, Optional[Mapping[str, Any]]]]) -> None:
        """Put or delete many items with BatchWriteItem.

        Each entry is ``(hash_value, range_value, value)``. A ``value`` of None
        deletes the item under the key; anything else is written as a put.
        Requests go out in chunks of 25.

        Raises:
            RetryableError: If the store left requests unprocessed. They are
                available as ``error.unprocessed``.
        """
        requests: List[Dict[str, Any]] = []
        for hash_value, range_value, value in entries:
            if value is None:
                requests.append({'DeleteRequest': {'Key': self._require_key(hash_value, range_value)}})
            else:
                requests.append({'PutRequest': self._put_params(hash_value, range_value, value)})

        unprocessed: List[Dict[str, Any]] = []
        for i in range(0, len(requests), BATCH_WRITE_SIZE):
            response = self.gateway.batch_write_item(requests[i:i + BATCH_WRITE_SIZE])
            unprocessed.extend(response.get('UnprocessedItems', {}).get(self.table_name, []))

        if unprocessed:
            logger.warning(f"Batch write on {self.table_name} left {len(unprocessed)} requests unprocessed")
            error = RetryableError(f"{len(unprocessed)} of {len(requests)} batch write requests were not processed")
            error.unprocessed = unprocessed
            raise error

    def batch_read(self, keys: Iterable[Tuple[Any, Any]], projection: Optional[str] = None) -> List[Dict[str, Any]]:
        """Fetch many items by ``(hash_value, range_value)`` with BatchGetItem.

        Missing keys are skipped and the store does not preserve request order.

        Raises:
            RetryableError: If some keys were left unprocessed
        """
        wire_keys = [self._require_key(hash_value, range_value) for hash_value, range_value in keys]
        options: Dict[str, Any] = {}
        if projection:
            options['ProjectionExpression'] = projection

        items: List[Dict[str, Any]] = []
        unprocessed: List[Dict[str, Any]] = []
        for i in range(0, len(wire_keys), BATCH_READ_SIZE):
            response = self.gateway.batch_get_item(wire_keys[i:i + BATCH_READ_SIZE], **options)
            items.extend(response.get('Responses', {}).get(self.table_name, []))
            unprocessed.extend(response.get('UnprocessedKeys', {}).get(self.table_name, {}).get('Keys', []))

        if unprocessed:
            logger.warning(f"Batch read on {self.table_name} left {len(unprocessed)} keys unprocessed")
            error = RetryableError(f"{len(unprocessed)} of {len(wire_keys)} batch read keys were not processed")
            error.unprocessed = unprocessed
            raise error
        return [from_item(item, self.decimal_numbers) for item in items]

    def count(self, manual: bool = False, dsl: str = "") -> int:
        """Number of items in the table.

        By default this is the ``ItemCount`` from DescribeTable, which the
        store refreshes only periodically. ``manual=True`` (or a filter in
        ``dsl``) counts with a ``Select=COUNT`` scan over every page instead.
        """
        compiled = self._compile(dsl)
        if not manual and compiled.is_empty:
            return int(self.gateway.describe_table().get('ItemCount', 0))

        params: Dict[str, Any] = {'Select': 'COUNT'}
        if not compiled.is_empty:
            params.update(compiled.to_params('FilterExpression'))

        total = 0
        while True:
            response = self.gateway.scan(**params)
            total += response.get('Count', 0)
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return total
            params['ExclusiveStartKey'] = last_key
