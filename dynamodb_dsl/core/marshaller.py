"""
Type Marshaller

Converts plain Python values to DynamoDB's tagged attribute-value format and
back. Every value is classified once into a closed set of shapes, and each
shape has exactly one encoder:

    str                           -> S
    int / float / Decimal         -> N    (finite only, decimal string)
    bool                          -> BOOL
    None                          -> NULL (payload True)
    bytes / bytearray / memoryview-> B
    datetime / date               -> S    (ISO-8601)
    mapping                       -> M    (recursive)
    sequence of bytes             -> BS
    sequence of str               -> SS
    sequence of numbers           -> NS
    any other sequence            -> L    (recursive, each element wrapped)
    anything else                 -> NULL

Set tags need every element to share one kind; empty and mixed sequences
become L. ``to_wire`` never raises. ``from_wire`` raises MarshalError for
values that are not valid wire values.
"""

import logging
import math
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ..exceptions import MarshalError
from ..models.enums import WireTag

logger = logging.getLogger(__name__)

WireValue = Dict[str, Any]

_SEQUENCE_TYPES = (list, tuple, set, frozenset)
_BINARY_TYPES = (bytes, bytearray, memoryview)


class Shape(Enum):
    """Closed set of plain-value shapes the marshaller understands."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    BINARY = "binary"
    TIMESTAMP = "timestamp"
    MAP = "map"
    LIST = "list"
    STRING_SET = "string_set"
    NUMBER_SET = "number_set"
    BINARY_SET = "binary_set"
    UNSUPPORTED = "unsupported"


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a number here
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _scalar_shape(value: Any) -> Shape:
    if value is None:
        return Shape.NULL
    if isinstance(value, bool):
        return Shape.BOOLEAN
    if isinstance(value, str):
        return Shape.STRING
    if _is_number(value):
        return Shape.NUMBER if _is_finite(value) else Shape.UNSUPPORTED
    if isinstance(value, _BINARY_TYPES):
        return Shape.BINARY
    if isinstance(value, (datetime, date)):
        return Shape.TIMESTAMP
    return Shape.UNSUPPORTED


def _is_finite(number: Any) -> bool:
    if isinstance(number, Decimal):
        return number.is_finite()
    if isinstance(number, float):
        return math.isfinite(number)
    return True


def classify(value: Any) -> Shape:
    """Resolve the shape of a plain value."""
    if isinstance(value, Mapping):
        return Shape.MAP
    if isinstance(value, _SEQUENCE_TYPES):
        elements = list(value)
        if not elements:
            return Shape.LIST
        kinds = {_scalar_shape(element) for element in elements}
        if kinds == {Shape.STRING}:
            return Shape.STRING_SET
        if kinds == {Shape.NUMBER}:
            return Shape.NUMBER_SET
        if kinds == {Shape.BINARY}:
            return Shape.BINARY_SET
        return Shape.LIST
    return _scalar_shape(value)


def format_number(number: Any) -> str:
    """Serialize a finite number as the decimal string DynamoDB stores."""
    return str(number)


def parse_number(text: str, decimal_numbers: bool = False) -> Any:
    """Parse an N payload back to int/float, or Decimal when requested."""
    try:
        if decimal_numbers:
            return Decimal(text)
        if any(ch in text for ch in ".eE"):
            return float(text)
        return int(text)
    except (ValueError, InvalidOperation, TypeError) as e:
        raise MarshalError(f"Invalid number payload: {text!r}", {WireTag.N.value: text}, e) from e


def _to_bytes(value: Any) -> bytes:
    return bytes(value)


_ENCODERS: Dict[Shape, Callable[[Any], WireValue]] = {
    Shape.STRING: lambda v: {WireTag.S.value: v},
    Shape.NUMBER: lambda v: {WireTag.N.value: format_number(v)},
    Shape.BOOLEAN: lambda v: {WireTag.BOOL.value: v},
    Shape.NULL: lambda v: {WireTag.NULL.value: True},
    Shape.BINARY: lambda v: {WireTag.B.value: _to_bytes(v)},
    Shape.TIMESTAMP: lambda v: {WireTag.S.value: v.isoformat()},
    Shape.MAP: lambda v: {WireTag.M.value: to_item(v)},
    Shape.LIST: lambda v: {WireTag.L.value: [to_wire(element) for element in v]},
    Shape.STRING_SET: lambda v: {WireTag.SS.value: list(v)},
    Shape.NUMBER_SET: lambda v: {WireTag.NS.value: [format_number(n) for n in v]},
    Shape.BINARY_SET: lambda v: {WireTag.BS.value: [_to_bytes(b) for b in v]},
}


def to_wire(value: Any) -> WireValue:
    """Convert a plain value to a single-tag wire value.

    Examples:
        >>> to_wire(1)
        {'N': '1'}
        >>> to_wire(["x", "y"])
        {'SS': ['x', 'y']}
        >>> to_wire([1, "x"])
        {'L': [{'N': '1'}, {'S': 'x'}]}
    """
    shape = classify(value)
    encoder = _ENCODERS.get(shape)
    if encoder is None:
        logger.warning(f"Cannot marshal value of type {type(value).__name__}; storing NULL")
        return {WireTag.NULL.value: True}
    return encoder(value)


def to_item(mapping: Mapping) -> Dict[str, WireValue]:
    """Convert a mapping of attribute names to plain values into an item."""
    return {str(name): to_wire(value) for name, value in mapping.items()}


def _decode_list(payload: Any, decimal_numbers: bool) -> list:
    return [from_wire(element, decimal_numbers) for element in payload]


def _decode_map(payload: Any, decimal_numbers: bool) -> dict:
    return from_item(payload, decimal_numbers)


_DECODERS: Dict[str, Callable[[Any, bool], Any]] = {
    WireTag.S.value: lambda p, d: p,
    WireTag.N.value: lambda p, d: parse_number(p, d),
    WireTag.BOOL.value: lambda p, d: bool(p),
    WireTag.NULL.value: lambda p, d: None,
    WireTag.B.value: lambda p, d: p,
    WireTag.M.value: _decode_map,
    WireTag.L.value: _decode_list,
    WireTag.SS.value: lambda p, d: list(p),
    WireTag.NS.value: lambda p, d: [parse_number(n, d) for n in p],
    WireTag.BS.value: lambda p, d: list(p),
}


def from_wire(wire: WireValue, decimal_numbers: bool = False) -> Any:
    """Convert a single-tag wire value back to a plain value.

    Args:
        wire: Wire value such as ``{'N': '10'}``
        decimal_numbers: Return numbers as Decimal instead of int/float

    Raises:
        MarshalError: If ``wire`` does not carry exactly one known tag
    """
    if not isinstance(wire, Mapping) or len(wire) != 1:
        raise MarshalError("Wire value must carry exactly one type tag", wire)

    (tag, payload), = wire.items()
    decoder = _DECODERS.get(tag)
    if decoder is None:
        raise MarshalError(f"Unknown wire type tag: {tag!r}", wire)
    return decoder(payload, decimal_numbers)


def from_item(item: Optional[Mapping], decimal_numbers: bool = False) -> Dict[str, Any]:
    """Convert a DynamoDB item (name -> wire value) into a plain dict."""
    if not item:
        return {}
    return {name: from_wire(wire, decimal_numbers) for name, wire in item.items()}
