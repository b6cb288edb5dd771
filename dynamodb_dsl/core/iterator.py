"""
Paginated Iterator

Wraps a page-returning read (Query or Scan) as a lazy, forward-only Python
iterator of IteratorEntry objects.

- Pages are fetched one at a time, only when the buffer is empty; there is no
  read-ahead and never more than one fetch in flight. A pull normally makes
  exactly one fetch. The exception is a page that comes back empty but carries
  a continuation token: the same pull then fetches the following page, and
  keeps doing so until an item arrives or the token runs out.
- Each raw item is unmarshalled and its hash/range attributes are moved into
  ``entry.key``.
- A ``Limit`` stops the iteration after the first page even when the store
  returned a LastEvaluatedKey. This is deliberate: ``Limit`` bounds one
  request, not the result count.
- A failing fetch is not raised. It is yielded as a final entry whose ``err``
  is set, after which the iterator is exhausted.

Iterators are not restartable; build a new one to read again.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from botocore.exceptions import ClientError

from ..exceptions import ValidationError
from ..models.entries import IteratorEntry
from ..models.enums import LiteralGrammar, ScanMethod
from ..models.expressions import CompiledExpression
from ..models.schema import TableSchema
from .compiler import compile_expression
from .keys import split_item
from .table_gateway import map_dynamodb_error

logger = logging.getLogger(__name__)

FetchPage = Callable[..., Dict[str, Any]]


class PageIterator:
    """
    Lazy iterator over the pages of a Query or Scan.

    Each pull serves one buffered entry and fetches one page when the buffer is
    empty. Empty pages with a continuation token are skipped within the same
    pull, so a pull may issue several sequential fetches in that case.

    Example:
        >>> it = PageIterator(compile_expression("tenant = 'acme'"), gateway.query, schema)
        >>> it.add_filter("score > 10").set_projection("score, ts")
        >>> for entry in it:
        ...     if entry.err:
        ...         raise entry.err
        ...     print(entry.key, entry.value)
    """

    def __init__(
        self,
        compiled: CompiledExpression,
        fetch: FetchPage,
        schema: TableSchema,
        method: ScanMethod = ScanMethod.QUERY,
        limit: Optional[int] = None,
        grammar: LiteralGrammar = LiteralGrammar.AUTO,
        decimal_numbers: bool = False,
        table_name: str = "",
        **options: Any
    ):
        """Initialize the iterator. No request is made until the first pull.

        Args:
            compiled: Key condition (query) or filter (scan) expression
            fetch: Callable taking boto3 request kwargs and returning a page
                response with ``Items`` and optional ``LastEvaluatedKey``
            schema: Key schema of the table being read
            method: ScanMethod.QUERY or ScanMethod.SCAN
            limit: Page size; iteration stops after the first page when set
            grammar: Literal grammar used by ``add_filter``
            decimal_numbers: Decode N values as Decimal
            table_name: Used for error messages only
            **options: Extra request parameters (IndexName, ScanIndexForward, ...)
        """
        self.method = ScanMethod(method)
        self.schema = schema
        self.grammar = LiteralGrammar(grammar)
        self.decimal_numbers = decimal_numbers
        self.table_name = table_name
        self._fetch = fetch

        expression_field = 'KeyConditionExpression' if self.method is ScanMethod.QUERY else 'FilterExpression'
        self._params: Dict[str, Any] = dict(options)
        self._params.update(compiled.to_params(expression_field))
        if limit is not None:
            self._params['Limit'] = limit

        self._next_index = compiled.last_index + 1
        self._buffer: Deque[IteratorEntry] = deque()
        self._started = False
        self._exhausted = False

    @property
    def params(self) -> Dict[str, Any]:
        """Copy of the request parameters for the next fetch."""
        return dict(self._params)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def _ensure_not_started(self, operation: str) -> None:
        if self._started:
            raise ValidationError(f"{operation}() must be called before the first pull")

    def add_filter(self, dsl: str) -> 'PageIterator':
        """Compile ``dsl`` and set it as (or AND it onto) the FilterExpression.

        Placeholders continue from the ones already in the request, so the
        merged name/value maps never collide.
        """
        self._ensure_not_started("add_filter")
        compiled = compile_expression(dsl, self.grammar, self._next_index)
        if compiled.is_empty:
            return self

        self._next_index = max(self._next_index, compiled.last_index + 1)

        existing = self._params.get('FilterExpression')
        if existing:
            self._params['FilterExpression'] = f"({existing}) AND ({compiled.expression})"
        else:
            self._params['FilterExpression'] = compiled.expression

        if compiled.names:
            self._params.setdefault('ExpressionAttributeNames', {}).update(compiled.names)
        if compiled.values:
            self._params.setdefault('ExpressionAttributeValues', {}).update(compiled.values)
        return self

    def set_projection(self, dsl: str) -> 'PageIterator':
        """Set the ProjectionExpression verbatim."""
        self._ensure_not_started("set_projection")
        self._params['ProjectionExpression'] = dsl
        return self

    def __iter__(self) -> 'PageIterator':
        return self

    def __next__(self) -> IteratorEntry:
        self._started = True
        while not self._buffer and not self._exhausted:
            self._fetch_page()
        if self._buffer:
            return self._buffer.popleft()
        raise StopIteration

    def _to_entry(self, item: Dict[str, Any]) -> IteratorEntry:
        key, value = split_item(self.schema, item, self.decimal_numbers)
        return IteratorEntry(key=key, value=value)

    def _fetch_page(self) -> None:
        operation = "Query" if self.method is ScanMethod.QUERY else "Scan"
        try:
            response = self._fetch(**self._params)
            entries = [self._to_entry(item) for item in response.get('Items') or []]
        except Exception as e:
            err = map_dynamodb_error(e, operation, self.table_name) if isinstance(e, ClientError) else e
            logger.error(f"{operation} page fetch on {self.table_name or 'table'} failed: {err}")
            self._buffer.append(IteratorEntry(err=err))
            self._exhausted = True
            return

        self._buffer.extend(entries)
        last_key = response.get('LastEvaluatedKey')
        logger.debug(f"{operation} page returned {len(entries)} items (more={last_key is not None})")

        if last_key is None or 'Limit' in self._params:
            self._exhausted = True
        else:
            self._params['ExclusiveStartKey'] = last_key
