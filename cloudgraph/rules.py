"""Declarative relationship rules and the engine that applies them.

A rule says: for a resource of ``sourceType``, every value found at
``field`` in its raw record references a ``targetType`` resource via
``relationship``. Rule tables are data, loaded and validated once at
startup; the engine never special-cases a rule.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .constants import API_FIELD_CONFIDENCE
from .errors import RuleTableError, UnknownRelationshipError
from .graph import CloudProvider, DiscoveryMethod, GraphEdge, RelationshipType, ResourceType
from .ids import build_edge_id, build_node_id, extract_resource_id
from .paths import has_array_segment, parse_path, resolve
from .relationships import reverse_relationship

logger = logging.getLogger(__name__)


class RelationshipRule(BaseModel):
    """One declarative relationship rule.

    Accepts the camelCase keys used in rule files (``sourceType``,
    ``targetType``, ``isArray``) as well as the snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    source_type: ResourceType = Field(..., alias="sourceType")
    field: str
    target_type: ResourceType = Field(..., alias="targetType")
    relationship: RelationshipType
    is_array: bool = Field(default=False, alias="isArray")
    bidirectional: bool = False

    @field_validator("source_type", "target_type", mode="before")
    @classmethod
    def validate_resource_type(cls, v: Any) -> Any:
        if isinstance(v, ResourceType):
            return v
        if v not in ResourceType.values():
            raise ValueError(f"unregistered resource type: {v!r}")
        return v

    @field_validator("relationship", mode="before")
    @classmethod
    def validate_relationship(cls, v: Any) -> Any:
        try:
            reverse_relationship(v)
        except UnknownRelationshipError as e:
            raise ValueError(e.message) from None
        return v

    @field_validator("field")
    @classmethod
    def validate_field(cls, v: str) -> str:
        parse_path(v)
        return v

    @model_validator(mode="after")
    def check_array_declaration(self) -> "RelationshipRule":
        if not self.is_array and has_array_segment(self.field):
            raise ValueError(f"field {self.field!r} flattens an array but isArray is false")
        return self

    def to_record(self) -> Dict[str, Any]:
        """Serialize using the rule-file key names."""
        return self.model_dump(mode="json", by_alias=True)


class RuleTable:
    """An immutable, validated set of relationship rules for one provider.

    Usage:
        table = RuleTable.from_records("aws", json.loads(text))
        for rule in table.for_source(ResourceType.COMPUTE):
            ...
    """

    def __init__(self, provider: Union[CloudProvider, str], rules: Iterable[RelationshipRule]):
        self.provider = CloudProvider(provider)
        self._rules: Tuple[RelationshipRule, ...] = tuple(rules)
        index: Dict[ResourceType, List[RelationshipRule]] = {}
        for rule in self._rules:
            index.setdefault(rule.source_type, []).append(rule)
        self._by_source = {k: tuple(v) for k, v in index.items()}

    @classmethod
    def from_records(cls, provider: Union[CloudProvider, str], records: Sequence[Dict[str, Any]]) -> "RuleTable":
        """Validate raw rule records and build a table.

        Raises:
            RuleTableError: If the provider is unknown or any rule is invalid;
                every bad rule is reported, not only the first
        """
        try:
            provider = CloudProvider(provider)
        except ValueError:
            raise RuleTableError(f"Unknown provider: {provider!r}") from None

        rules: List[RelationshipRule] = []
        problems: List[Dict[str, Any]] = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                problems.append({"index": index, "reason": "rule must be an object"})
                continue
            try:
                rules.append(RelationshipRule.model_validate(record))
            except ValidationError as e:
                for err in e.errors():
                    loc = ".".join(str(p) for p in err.get("loc", ())) or "rule"
                    problems.append({"index": index, "reason": f"{loc}: {err.get('msg')}"})

        if problems:
            raise RuleTableError(
                f"{len(problems)} problem(s) in {provider.value} rule table",
                problems=problems,
            )
        logger.debug(f"Validated {len(rules)} {provider.value} relationship rules")
        return cls(provider, rules)

    @property
    def rules(self) -> Tuple[RelationshipRule, ...]:
        return self._rules

    @property
    def source_types(self) -> List[ResourceType]:
        return list(self._by_source)

    def for_source(self, source_type: Union[ResourceType, str]) -> Tuple[RelationshipRule, ...]:
        """Rules whose sourceType matches the given resource type."""
        try:
            return self._by_source.get(ResourceType(source_type), ())
        except ValueError:
            return ()

    def to_records(self) -> List[Dict[str, Any]]:
        return [rule.to_record() for rule in self._rules]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[RelationshipRule]:
        return iter(self._rules)

    def __repr__(self) -> str:
        return f"<RuleTable provider={self.provider.value} rules={len(self._rules)}>"


def parse_rule_document(document: Any, provider: Optional[str] = None) -> RuleTable:
    """Build a table from a decoded rule file.

    The document is either ``{"provider": ..., "rules": [...]}`` or a bare
    list of rules, in which case ``provider`` must be given.
    """
    if isinstance(document, dict):
        provider = document.get("provider", provider)
        records = document.get("rules")
    else:
        records = document
    if provider is None:
        raise RuleTableError("Rule table does not name a provider")
    if not isinstance(records, list):
        raise RuleTableError("Rule table must contain a list of rules")
    return RuleTable.from_records(provider, records)


def load_rule_table(path: Union[str, Path], provider: Optional[str] = None) -> RuleTable:
    """Load and validate a rule table from a JSON file.

    Raises:
        RuleTableError: If the file is unreadable, not JSON, or invalid
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise RuleTableError(f"Cannot read rule table {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise RuleTableError(f"Rule table {path} is not valid JSON: {e}") from e
    table = parse_rule_document(document, provider)
    logger.info(f"Loaded {len(table)} {table.provider.value} rules from {path}")
    return table


@lru_cache()
def load_builtin_rules(provider: str = "aws") -> RuleTable:
    """Load the rule table shipped with the package for a provider."""
    provider = CloudProvider(provider).value
    resource = resources.files("cloudgraph.data").joinpath(f"{provider}_rules.json")
    if not resource.is_file():
        raise RuleTableError(f"No built-in rule table for provider '{provider}'")
    return parse_rule_document(json.loads(resource.read_text(encoding="utf-8")), provider)


def extract_relationships(
    source_node_id: str,
    source_type: Union[ResourceType, str],
    raw_record: Any,
    account: str,
    region: str,
    rule_table: RuleTable,
    confidence: float = API_FIELD_CONFIDENCE,
) -> List[GraphEdge]:
    """Apply a rule table to one resource's raw record.

    Targets are assumed to live in the same account and region as the
    source. Output is deduplicated by edge id.

    Args:
        source_node_id: Id of the node the record describes
        source_type: Resource type of that node
        raw_record: Structured value as returned by the provider API
        account: Account of the source (and of its targets)
        region: Region of the source (and of its targets)
        rule_table: Validated rules for the source's provider
        confidence: Confidence stamped on every emitted edge

    Returns:
        Edges in rule order, reverse edges following their forward edge
    """
    edges: Dict[str, GraphEdge] = {}
    provider = rule_table.provider.value

    for rule in rule_table.for_source(source_type):
        values = resolve(raw_record, rule.field)
        if not values:
            continue

        for value in values:
            target_native_id = extract_resource_id(value)
            if not target_native_id:
                continue
            target_node_id = build_node_id(provider, account, region, rule.target_type.value, target_native_id)
            edge_id = build_edge_id(source_node_id, rule.relationship.value, target_node_id)
            if edge_id not in edges:
                edges[edge_id] = GraphEdge(
                    id=edge_id,
                    source_node_id=source_node_id,
                    target_node_id=target_node_id,
                    relationship_type=rule.relationship,
                    confidence=confidence,
                    discovered_via=DiscoveryMethod.API_FIELD,
                    metadata={"field": rule.field},
                )

            if rule.bidirectional:
                inverse = reverse_relationship(rule.relationship)
                reverse_id = build_edge_id(target_node_id, inverse.value, source_node_id)
                if reverse_id not in edges:
                    edges[reverse_id] = GraphEdge(
                        id=reverse_id,
                        source_node_id=target_node_id,
                        target_node_id=source_node_id,
                        relationship_type=inverse,
                        confidence=confidence,
                        discovered_via=DiscoveryMethod.API_FIELD,
                        metadata={"field": rule.field, "inferred": True},
                    )

    return list(edges.values())


def dedupe_edges(edges: Iterable[GraphEdge]) -> List[GraphEdge]:
    """Drop edges whose id was already seen; the first occurrence wins."""
    seen: Dict[str, GraphEdge] = {}
    for edge in edges:
        seen.setdefault(edge.id, edge)
    return list(seen.values())
