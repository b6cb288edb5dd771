"""
Core components of the DSL layer.

- compiler: DSL string -> CompiledExpression
- marshaller: plain values <-> DynamoDB wire values
- keys: typed key maps from a resolved TableSchema
- iterator: lazy paginated Query/Scan
- TableGateway: thin wrapper over the boto3 low-level client
- Table: bound handle combining all of the above
"""

from .compiler import compile_expression, tokenize
from .iterator import PageIterator
from .keys import key_of, schema_from_description, split_item
from .marshaller import Shape, classify, from_item, from_wire, to_item, to_wire
from .table import Table
from .table_gateway import TableGateway, create_table_gateway, map_dynamodb_error

__all__ = [
    # Compiler
    "compile_expression",
    "tokenize",

    # Marshaller
    "Shape",
    "classify",
    "from_item",
    "from_wire",
    "to_item",
    "to_wire",

    # Key codec
    "key_of",
    "schema_from_description",
    "split_item",

    # Iteration and table access
    "PageIterator",
    "Table",
    "TableGateway",
    "create_table_gateway",
    "map_dynamodb_error",
]
