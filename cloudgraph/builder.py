"""Discovery pass: turn raw records into graph nodes and edges.

Adapters fetch records; this module does the rest. Each batch of raw
records comes with a ResourceMapping that says where the identifier,
name and ARN live in the record, so node construction is as declarative
as edge construction.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import API_FIELD_CONFIDENCE, CREATED_AT_FIELDS, GLOBAL_REGION, OWNER_TAG_KEYS
from .graph import CloudProvider, GraphEdge, GraphNode, NodeStatus, ResourceType
from .paths import parse_path, resolve
from .rules import RuleTable, extract_relationships
from .values import ValueKind, kind_of, stringify

logger = logging.getLogger(__name__)

_STATUS_WORDS: Dict[str, NodeStatus] = {
    "running": NodeStatus.RUNNING,
    "available": NodeStatus.RUNNING,
    "active": NodeStatus.RUNNING,
    "in-service": NodeStatus.RUNNING,
    "enabled": NodeStatus.RUNNING,
    "stopped": NodeStatus.STOPPED,
    "inactive": NodeStatus.STOPPED,
    "pending": NodeStatus.PENDING,
    "starting": NodeStatus.PENDING,
    "creating": NodeStatus.PENDING,
    "modifying": NodeStatus.PENDING,
    "terminating": NodeStatus.DELETING,
    "shutting-down": NodeStatus.DELETING,
    "deleting": NodeStatus.DELETING,
    "terminated": NodeStatus.DELETED,
    "deleted": NodeStatus.DELETED,
    "error": NodeStatus.ERROR,
    "failed": NodeStatus.ERROR,
    "unhealthy": NodeStatus.ERROR,
}

_STATUS_PATHS = ("State.Name", "Status", "State", "DBInstanceStatus", "HealthStatus")


class ResourceMapping(BaseModel):
    """Where a resource type keeps its identity fields in raw records."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    resource_type: ResourceType = Field(..., alias="resourceType")
    id_field: str = Field(..., alias="idField")
    name_field: Optional[str] = Field(default=None, alias="nameField")
    arn_field: Optional[str] = Field(default=None, alias="arnField")
    regional: bool = True

    @field_validator("id_field", "name_field", "arn_field")
    @classmethod
    def validate_path(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_path(v)
        return v


def _first(record: Any, path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    values = resolve(record, path)
    return values[0] if values else None


def extract_tags(record: Any) -> Dict[str, str]:
    """Collect tags from {Key, Value} arrays and flat tag maps."""
    tags: Dict[str, str] = {}
    if kind_of(record) is not ValueKind.MAP:
        return tags

    for key in ("Tags", "tags", "TagList"):
        items = record.get(key)
        if kind_of(items) is not ValueKind.LIST:
            continue
        for item in items:
            if kind_of(item) is not ValueKind.MAP:
                continue
            tag_key = item.get("Key", item.get("key"))
            tag_value = item.get("Value", item.get("value"))
            if isinstance(tag_key, str) and isinstance(tag_value, str):
                tags[tag_key] = tag_value
        break

    for key in ("TagSet", "tags", "labels"):
        flat = record.get(key)
        if kind_of(flat) is not ValueKind.MAP:
            continue
        for tag_key, tag_value in flat.items():
            if isinstance(tag_value, str):
                tags[tag_key] = tag_value

    return tags


def infer_status(record: Any) -> NodeStatus:
    """Map a vendor state string to a NodeStatus."""
    for path in _STATUS_PATHS:
        for raw in resolve(record, path):
            status = _STATUS_WORDS.get(raw.lower())
            if status is not None:
                return status
    return NodeStatus.UNKNOWN


def owner_from_tags(tags: Mapping[str, str]) -> Optional[str]:
    for key in OWNER_TAG_KEYS:
        if tags.get(key):
            return tags[key]
    return None


def _created_at(record: Any) -> Optional[str]:
    if kind_of(record) is not ValueKind.MAP:
        return None
    for key in CREATED_AT_FIELDS:
        value = stringify(record.get(key))
        if value:
            return value
    return None


def build_node(
    record: Any,
    mapping: ResourceMapping,
    provider: Union[CloudProvider, str],
    account: str,
    region: str,
) -> Optional[GraphNode]:
    """Build a node from one raw record, or None if it has no native ID."""
    native_id = _first(record, mapping.id_field)
    if not native_id:
        return None

    tags = extract_tags(record)
    name = tags.get("Name") or _first(record, mapping.name_field) or native_id
    metadata: Dict[str, Any] = {}
    arn = _first(record, mapping.arn_field)
    if arn:
        metadata["arn"] = arn

    return GraphNode.create(
        provider=provider,
        account=account,
        region=region if mapping.regional else GLOBAL_REGION,
        resource_type=mapping.resource_type,
        native_id=native_id,
        name=name,
        status=infer_status(record),
        tags=tags,
        metadata=metadata,
        owner=owner_from_tags(tags),
        created_at=_created_at(record),
    )


@dataclass
class DiscoveryError:
    """A failure confined to one resource type."""

    resource_type: str
    message: str
    region: Optional[str] = None


@dataclass
class RecordBatch:
    """Raw records of one resource type from one region."""

    mapping: ResourceMapping
    region: str
    records: Sequence[Any]


@dataclass
class DiscoveryResult:
    """Nodes, edges and per-resource-type errors of one discovery pass.

    Appends are serialized, so workers of a concurrent pass may share one
    result. Nodes and edges are deduplicated by id; the first wins.
    """

    provider: CloudProvider
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    errors: List[DiscoveryError] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._node_ids = {n.id for n in self.nodes}
        self._edge_ids = {e.id for e in self.edges}

    def add_nodes(self, nodes: Iterable[GraphNode]) -> int:
        added = 0
        with self._lock:
            for node in nodes:
                if node.id in self._node_ids:
                    continue
                self._node_ids.add(node.id)
                self.nodes.append(node)
                added += 1
        return added

    def add_edges(self, edges: Iterable[GraphEdge]) -> int:
        added = 0
        with self._lock:
            for edge in edges:
                if edge.id in self._edge_ids:
                    continue
                self._edge_ids.add(edge.id)
                self.edges.append(edge)
                added += 1
        return added

    def add_error(self, error: DiscoveryError) -> None:
        with self._lock:
            self.errors.append(error)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "errors": [vars(e).copy() for e in self.errors],
        }


def process_batch(
    batch: RecordBatch,
    rule_table: RuleTable,
    account: str,
    result: DiscoveryResult,
    confidence: float = API_FIELD_CONFIDENCE,
) -> int:
    """Build nodes and edges for one batch into a shared result.

    Returns:
        Number of nodes built from the batch
    """
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []
    for record in batch.records:
        node = build_node(record, batch.mapping, rule_table.provider, account, batch.region)
        if node is None:
            logger.debug(f"Skipping {batch.mapping.resource_type.value} record without an id")
            continue
        nodes.append(node)
        edges.extend(
            extract_relationships(
                node.id,
                node.resource_type,
                record,
                account,
                node.region,
                rule_table,
                confidence,
            )
        )
    result.add_nodes(nodes)
    result.add_edges(edges)
    return len(nodes)


def build_graph(
    batches: Iterable[RecordBatch],
    rule_table: RuleTable,
    account: str,
    confidence: float = API_FIELD_CONFIDENCE,
) -> DiscoveryResult:
    """Run one discovery pass over record batches.

    A batch that fails is recorded as a DiscoveryError for its resource
    type; the remaining batches still contribute to the partial result.
    """
    result = DiscoveryResult(provider=rule_table.provider)
    for batch in batches:
        resource_type = batch.mapping.resource_type.value
        try:
            count = process_batch(batch, rule_table, account, result, confidence)
            logger.debug(f"Built {count} {resource_type} node(s) in {batch.region}")
        except Exception as e:
            logger.warning(f"Discovery of {resource_type} in {batch.region} failed: {type(e).__name__}: {e}")
            result.add_error(DiscoveryError(resource_type=resource_type, message=str(e), region=batch.region))
    logger.info(
        f"Discovery pass built {len(result.nodes)} nodes, {len(result.edges)} edges, "
        f"{len(result.errors)} error(s)"
    )
    return result
