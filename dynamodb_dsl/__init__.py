from .config import DynamoDBConfig
from .exceptions import (
    CompileError,
    ConflictError,
    ConnectionError,
    DynamoDBWrapperError,
    ItemNotFoundError,
    MarshalError,
    RetryableError,
    ValidationError,
)
from .models import (
    CompiledExpression,
    IteratorEntry,
    TableSchema,
    # Enums
    KeyType,
    LiteralGrammar,
    ScanMethod,
    WireTag,
)
from .core import (
    PageIterator,
    Table,
    TableGateway,
    compile_expression,
    create_table_gateway,
    from_item,
    from_wire,
    key_of,
    to_item,
    to_wire,
)

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "DynamoDBConfig",

    # Exceptions
    "CompileError",
    "ConflictError",
    "ConnectionError",
    "DynamoDBWrapperError",
    "ItemNotFoundError",
    "MarshalError",
    "RetryableError",
    "ValidationError",

    # Models
    "CompiledExpression",
    "IteratorEntry",
    "TableSchema",

    # Enums
    "KeyType",
    "LiteralGrammar",
    "ScanMethod",
    "WireTag",

    # DSL and marshalling
    "compile_expression",
    "from_item",
    "from_wire",
    "key_of",
    "to_item",
    "to_wire",

    # Table access
    "PageIterator",
    "Table",
    "TableGateway",
    "create_table_gateway",
]
