"""
Key Codec

Builds typed key maps for a bound table and splits key attributes out of
returned items. Key attribute types come from the table definition, never
from the Python type of the value.
"""

import logging
from typing import Any, Dict, List, Mapping, Tuple

from ..exceptions import ValidationError
from ..models.enums import KeyType, WireTag
from ..models.schema import TableSchema
from .marshaller import format_number, from_item, from_wire

logger = logging.getLogger(__name__)


def _wrap_key_value(key_type: str, value: Any) -> Dict[str, Any]:
    if key_type == KeyType.N.value:
        return {WireTag.N.value: value if isinstance(value, str) else format_number(value)}
    if key_type == KeyType.B.value:
        return {WireTag.B.value: value.encode("utf-8") if isinstance(value, str) else bytes(value)}
    return {WireTag.S.value: str(value)}


def key_of(schema: TableSchema, hash_value: Any, range_value: Any = None) -> Dict[str, Dict[str, Any]]:
    """Build the Key map for ``hash_value`` (and ``range_value``).

    Returns an empty dict when the schema has not been resolved yet, so callers
    can tell the table is not ready. A range value is ignored for hash-only
    tables.

    Examples:
        >>> schema = TableSchema(hash_key="tenant", hash_type="S", range_key="ts", range_type="N")
        >>> key_of(schema, "acme", 1588867110000)
        {'tenant': {'S': 'acme'}, 'ts': {'N': '1588867110000'}}
    """
    if not schema.is_ready:
        return {}

    key = {schema.hash_key: _wrap_key_value(schema.hash_type, hash_value)}

    if range_value is not None:
        if schema.range_key and schema.range_type:
            key[schema.range_key] = _wrap_key_value(schema.range_type, range_value)
        else:
            logger.debug(f"Ignoring range value for hash-only key '{schema.hash_key}'")

    return key


def split_item(
    schema: TableSchema,
    item: Mapping[str, Dict[str, Any]],
    decimal_numbers: bool = False
) -> Tuple[List[Any], Dict[str, Any]]:
    """Split a raw item into ``([hash, range?], remaining attributes)``.

    Both parts are unmarshalled. Key attributes missing from the item (for
    example when a projection left them out) are omitted from the key list.
    """
    attributes = dict(item)
    key = []
    for name in schema.key_names:
        if name in attributes:
            key.append(from_wire(attributes.pop(name), decimal_numbers))
    return key, from_item(attributes, decimal_numbers)


def schema_from_description(table: Mapping[str, Any]) -> TableSchema:
    """Resolve a TableSchema from a DescribeTable ``Table`` description.

    Raises:
        ValidationError: If the description has no HASH key
    """
    key_schema = table.get('KeySchema') or []
    definitions = {
        definition['AttributeName']: definition['AttributeType']
        for definition in table.get('AttributeDefinitions') or []
    }

    hash_key = next((k['AttributeName'] for k in key_schema if k['KeyType'] == 'HASH'), None)
    range_key = next((k['AttributeName'] for k in key_schema if k['KeyType'] == 'RANGE'), None)

    if hash_key is None:
        raise ValidationError(
            f"Table '{table.get('TableName')}' description has no HASH key",
            {'KeySchema': key_schema}
        )

    return TableSchema(
        hash_key=hash_key,
        hash_type=definitions.get(hash_key),
        range_key=range_key,
        range_type=definitions.get(range_key) if range_key else None,
    )
