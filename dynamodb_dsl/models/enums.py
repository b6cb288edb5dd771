from enum import Enum


class WireTag(str, Enum):
    """Type descriptors of the DynamoDB attribute-value format."""
    S = "S"
    N = "N"
    BOOL = "BOOL"
    NULL = "NULL"
    B = "B"
    M = "M"
    L = "L"
    SS = "SS"
    NS = "NS"
    BS = "BS"


class KeyType(str, Enum):
    """Attribute types allowed for table key attributes."""
    S = "S"
    N = "N"
    B = "B"


class LiteralGrammar(str, Enum):
    """Literal syntax accepted by the DSL compiler.

    AUTO infers literal types from the text (``'str'``, ``10``, ``<bin>``,
    ``null``/``true``/``false``). EXPLICIT requires ``TAG(payload)`` values and
    ``$(path)`` names.
    """
    AUTO = "auto"
    EXPLICIT = "explicit"


class ScanMethod(str, Enum):
    """Read operations that return pages."""
    QUERY = "query"
    SCAN = "scan"
