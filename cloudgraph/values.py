"""Structured-value model shared by every traversal in the engine.

Raw vendor records are held as plain JSON-compatible Python values:
None, bool, int/float, str, list and dict. Rather than probing each value
ad hoc, traversal code classifies it once with kind_of() and dispatches
on the resulting ValueKind. Anything outside the model classifies as
None and is treated by callers as "no match".
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

StructuredValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


class ValueKind(str, Enum):
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    LIST = "list"
    MAP = "map"


def kind_of(value: Any) -> Optional[ValueKind]:
    """Classify a value, or return None if it is outside the model."""
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.LIST
    if isinstance(value, dict):
        return ValueKind.MAP
    return None


def is_scalar(value: Any) -> bool:
    return kind_of(value) in (ValueKind.BOOLEAN, ValueKind.NUMBER, ValueKind.STRING)


def from_native(obj: Any) -> StructuredValue:
    """Convert an SDK response into the structured-value model.

    Mappings and sequences are copied recursively, datetimes become ISO
    strings and Decimals become floats. Any other type raises TypeError.
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Mapping):
        return {str(k): from_native(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [from_native(v) for v in obj]
    raise TypeError(f"Type {type(obj)} not representable as a structured value")


def stringify(value: Any) -> Optional[str]:
    """Render a scalar leaf as a string; non-scalars render as None."""
    kind = kind_of(value)
    if kind is ValueKind.STRING:
        return value
    if kind is ValueKind.BOOLEAN:
        return "true" if value else "false"
    if kind is ValueKind.NUMBER:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value) if isinstance(value, int) else repr(value)
    return None
