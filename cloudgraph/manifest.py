import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .builder import DiscoveryResult


@dataclass
class ResourceTypeResult:
    name: str
    status: str
    nodes: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class Manifest:
    """Summary of one build run, written next to nodes.jsonl and edges.jsonl."""

    run_id: str
    provider: str
    account_id: str
    rules_source: str
    rule_count: int
    resource_types: List[ResourceTypeResult] = field(default_factory=list)
    edge_count: int = 0
    costs: Dict[str, int] = field(default_factory=dict)
    generated_at: str = ""
    schema_version: str = "0.1.0"

    @classmethod
    def new(cls, provider: str, account_id: str, rules_source: str, rule_count: int) -> "Manifest":
        return cls(
            run_id=str(uuid.uuid4()),
            provider=provider,
            account_id=account_id,
            rules_source=rules_source,
            rule_count=rule_count,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def add_resource_type(self, name: str, status: str, nodes: int = 0, errors: Optional[List[str]] = None) -> None:
        self.resource_types.append(ResourceTypeResult(name=name, status=status, nodes=nodes, errors=errors or []))

    def record_result(self, result: DiscoveryResult, resource_types: List[str]) -> None:
        """Summarize a discovery pass per resource type."""
        for name in resource_types:
            count = sum(1 for n in result.nodes if n.resource_type.value == name)
            errors = [e.message for e in result.errors if e.resource_type == name]
            status = "error" if errors else "ok"
            if errors and count:
                status = "partial"
            self.add_resource_type(name, status=status, nodes=count, errors=errors)
        self.edge_count = len(result.edges)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
