"""Field path resolution over structured values.

A path is a dot-separated list of segments:

    VpcId                      plain key
    SecurityGroups[]           descend into the key, flatten one level
    Tags[Name]                 {Key, Value} pair lookup by Key

Segments compose left to right over a working set of values, so
"Reservations[].Instances[].InstanceId" flattens reservations, then
instances, then reads each InstanceId. A path that does not match simply
yields nothing; resolution never raises for missing or oddly shaped data.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, List, Tuple, Union

from .errors import PathSyntaxError
from .values import ValueKind, kind_of, stringify

_SEGMENT_RE = re.compile(r"^(?P<key>[^\[\]]+)(?:\[(?P<index>[^\[\]]*)\])?$")

# Tag-style pair field names, exact casing first
_PAIR_FIELDS = (("Key", "Value"), ("key", "value"))

_MISSING = object()


@dataclass(frozen=True)
class KeySegment:
    key: str

    def apply(self, values: Iterable[Any]) -> List[Any]:
        out = []
        for value in values:
            if kind_of(value) is ValueKind.MAP and self.key in value:
                out.append(value[self.key])
        return out


@dataclass(frozen=True)
class ArraySegment:
    key: str

    def apply(self, values: Iterable[Any]) -> List[Any]:
        out: List[Any] = []
        for value in values:
            if kind_of(value) is not ValueKind.MAP:
                continue
            items = value.get(self.key)
            if kind_of(items) is ValueKind.LIST:
                out.extend(items)
        return out


@dataclass(frozen=True)
class KeyedSegment:
    key: str
    index_key: str

    def apply(self, values: Iterable[Any]) -> List[Any]:
        out = []
        for value in values:
            if kind_of(value) is not ValueKind.MAP:
                continue
            items = value.get(self.key)
            if kind_of(items) is not ValueKind.LIST:
                continue
            for item in items:
                matched = _pair_value(item, self.index_key)
                if matched is not _MISSING:
                    out.append(matched)
        return out


Segment = Union[KeySegment, ArraySegment, KeyedSegment]


def _pair_value(item: Any, index_key: str) -> Any:
    if kind_of(item) is not ValueKind.MAP:
        return _MISSING
    for key_field, value_field in _PAIR_FIELDS:
        if item.get(key_field) == index_key and value_field in item:
            return item[value_field]
    return _MISSING


@lru_cache(maxsize=1024)
def parse_path(path: str) -> Tuple[Segment, ...]:
    """Parse a path expression into segments.

    Raises:
        PathSyntaxError: If the path or any of its segments is malformed
    """
    if not isinstance(path, str) or not path.strip():
        raise PathSyntaxError(str(path), "path is empty")

    segments: List[Segment] = []
    for raw in path.split("."):
        match = _SEGMENT_RE.match(raw)
        if match is None:
            raise PathSyntaxError(path, f"bad segment {raw!r}")
        key = match.group("key")
        index = match.group("index")
        if index is None:
            segments.append(KeySegment(key))
        elif index == "":
            segments.append(ArraySegment(key))
        else:
            segments.append(KeyedSegment(key, index))
    return tuple(segments)


def has_array_segment(path: str) -> bool:
    """Whether the path flattens an array and so may yield several values."""
    return any(isinstance(seg, ArraySegment) for seg in parse_path(path))


def resolve_raw(value: Any, path: str) -> List[Any]:
    """Evaluate a path and return the matched sub-values, unreduced."""
    working: List[Any] = [value]
    for segment in parse_path(path):
        working = segment.apply(working)
        if not working:
            return []
    return working


def resolve(value: Any, path: str) -> List[str]:
    """Evaluate a path and return its scalar leaves as strings.

    Nested lists are flattened, nulls and maps are dropped.
    """
    out: List[str] = []
    _collect_leaves(resolve_raw(value, path), out)
    return out


def _collect_leaves(values: Iterable[Any], out: List[str]) -> None:
    for value in values:
        if kind_of(value) is ValueKind.LIST:
            _collect_leaves(value, out)
            continue
        text = stringify(value)
        if text is not None:
            out.append(text)
