from .entries import IteratorEntry
from .enums import KeyType, LiteralGrammar, ScanMethod, WireTag
from .expressions import CompiledExpression
from .schema import TableSchema

__all__ = [
    "CompiledExpression",
    "IteratorEntry",
    "TableSchema",
    # Enums
    "KeyType",
    "LiteralGrammar",
    "ScanMethod",
    "WireTag",
]
