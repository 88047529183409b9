"""Cost attribution onto already-built graph nodes.

Two phases, always in this order:

1. Resource-level: a node whose native ID appears in a per-resource cost
   key takes that cost directly.
2. Service-level: each aggregate service cost is split across the nodes
   of the service's resource types that phase 1 did not cover, weighted
   by each node's prior cost estimate (1 when it has none).

Weighting unestimated nodes at 1 treats differently sized resources as
cost-equal. That skews attribution across heterogeneous pools and is
accepted in exchange for needing no size model.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from functools import lru_cache
from importlib import resources
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .constants import COST_PRECISION, DEFAULT_COST_WEIGHT
from .errors import ConfigurationError
from .graph import CostSource, GraphNode, ResourceType

logger = logging.getLogger(__name__)

TypeMapping = Mapping[str, Sequence[str]]


@dataclass
class CostAttribution:
    """How many nodes each phase priced."""

    resource_level: int = 0
    distributed: int = 0
    static_estimate: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _stamp(node: GraphNode, cost: float, source: CostSource, key: Optional[str] = None) -> None:
    node.cost_monthly = cost
    node.metadata["cost_source"] = source.value
    if key is not None:
        node.metadata["cost_key"] = key


def _is_resource_level(node: GraphNode) -> bool:
    return node.metadata.get("cost_source") == CostSource.RESOURCE_LEVEL.value


def normalize_type_mapping(mapping: TypeMapping) -> Dict[str, Tuple[ResourceType, ...]]:
    """Validate a billing-key to resource-type table.

    Raises:
        ConfigurationError: If any entry names an unregistered resource type
    """
    normalized: Dict[str, Tuple[ResourceType, ...]] = {}
    problems: List[str] = []
    for service_key, types in mapping.items():
        resolved = []
        for value in types:
            try:
                resolved.append(ResourceType(value))
            except ValueError:
                problems.append(f"{service_key}: {value!r}")
        normalized[service_key] = tuple(resolved)
    if problems:
        raise ConfigurationError(
            "Cost type mapping names unregistered resource types",
            details={"problems": problems},
        )
    return normalized


@lru_cache()
def load_service_type_mapping(provider: str = "aws") -> Dict[str, Tuple[ResourceType, ...]]:
    """Load the billing-service to resource-type table shipped for a provider."""
    resource = resources.files("cloudgraph.data").joinpath(f"{provider}_cost_services.json")
    if not resource.is_file():
        raise ConfigurationError(f"No built-in cost type mapping for provider '{provider}'")
    return normalize_type_mapping(json.loads(resource.read_text(encoding="utf-8")))


def apply_resource_costs(nodes: Iterable[GraphNode], resource_costs: Optional[Mapping[str, float]]) -> int:
    """Phase 1: attach per-resource costs keyed by ARN-like strings.

    A key matches a node when it contains the node's native ID (which
    covers keys suffixed by it) or equals the node's ``metadata["arn"]``.
    The first matching key wins.

    Returns:
        Number of nodes priced
    """
    if not resource_costs:
        return 0

    priced = 0
    for node in nodes:
        native_id = node.native_id
        if not native_id:
            continue
        arn = node.metadata.get("arn")
        for key, cost in resource_costs.items():
            if native_id in key or (arn and key == arn):
                _stamp(node, float(cost), CostSource.RESOURCE_LEVEL, key)
                priced += 1
                break
    logger.debug(f"Resource-level costs matched {priced} node(s)")
    return priced


def distribute_service_costs(
    nodes: Sequence[GraphNode],
    service_costs: Optional[Mapping[str, float]],
    type_mapping: TypeMapping,
    precision: int = COST_PRECISION,
) -> int:
    """Phase 2: split aggregate service costs across uncovered nodes.

    Nodes already priced at resource level are excluded from the pool and
    never overwritten. Each node in the pool receives
    ``round(total * weight / total_weight, precision)``, where the weight is
    the node's cost before this phase (1 when it had none). When every
    weight is zero the split falls back to equal shares.

    Several service keys may map to the same resource type. A node in more
    than one pool accumulates one share per key, so every service's shares
    still add up to its total. Contributing keys are listed in
    ``metadata["cost_keys"]``.

    Returns:
        Number of nodes priced
    """
    if not service_costs:
        return 0

    mapping = normalize_type_mapping(type_mapping)
    prior: Dict[int, Optional[float]] = {}
    priced: Set[int] = set()
    for service_key, total_cost in service_costs.items():
        resource_types = mapping.get(service_key)
        if not resource_types:
            logger.debug(f"No resource types mapped for service '{service_key}', skipping")
            continue

        pool = [n for n in nodes if n.resource_type in resource_types and not _is_resource_level(n)]
        if not pool:
            continue

        for node in pool:
            prior.setdefault(id(node), node.cost_monthly)
        weights = [prior[id(n)] if prior[id(n)] is not None else DEFAULT_COST_WEIGHT for n in pool]
        total_weight = sum(weights)
        if total_weight <= 0:
            weights = [DEFAULT_COST_WEIGHT] * len(pool)
            total_weight = float(len(pool))

        for node, weight in zip(pool, weights):
            share = round(float(total_cost) * weight / total_weight, precision)
            if id(node) in priced:
                node.cost_monthly = round(node.cost_monthly + share, precision)
                node.metadata["cost_keys"].append(service_key)
            else:
                _stamp(node, share, CostSource.DISTRIBUTED, service_key)
                node.metadata["cost_keys"] = [service_key]
                priced.add(id(node))

    return len(priced)


def apply_static_estimates(nodes: Iterable[GraphNode], per_type_costs: Optional[Mapping[str, float]]) -> int:
    """Fallback: give unpriced nodes a static monthly estimate for their type."""
    if not per_type_costs:
        return 0

    priced = 0
    for node in nodes:
        if node.cost_monthly is not None or node.metadata.get("cost_source"):
            continue
        estimate = per_type_costs.get(node.resource_type.value)
        if estimate is None:
            continue
        _stamp(node, float(estimate), CostSource.STATIC_ESTIMATE)
        priced += 1
    return priced


def attribute_costs(
    nodes: Sequence[GraphNode],
    resource_costs: Optional[Mapping[str, float]] = None,
    service_costs: Optional[Mapping[str, float]] = None,
    type_mapping: Optional[TypeMapping] = None,
    static_estimates: Optional[Mapping[str, float]] = None,
    precision: int = COST_PRECISION,
) -> CostAttribution:
    """Run both phases, then the static fallback.

    Any missing input simply skips its phase.
    """
    summary = CostAttribution()
    summary.resource_level = apply_resource_costs(nodes, resource_costs)
    if service_costs and type_mapping:
        summary.distributed = distribute_service_costs(nodes, service_costs, type_mapping, precision)
    summary.static_estimate = apply_static_estimates(nodes, static_estimates)
    logger.info(
        f"Cost attribution: {summary.resource_level} resource-level, "
        f"{summary.distributed} distributed, {summary.static_estimate} static"
    )
    return summary
