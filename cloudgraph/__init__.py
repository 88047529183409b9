"""CloudGraph - Resource graph construction for cloud inventories.

Turns raw provider API records into a typed graph:
- Resolves identifiers out of nested records with a small path language
- Derives deterministic node and edge identities
- Applies declarative relationship rules, inferring reverse edges
- Attributes resource-level and aggregate service costs onto nodes
"""

__version__ = "0.1.0"

from cloudgraph.graph import (
    CloudProvider,
    CostSource,
    DiscoveryMethod,
    GraphEdge,
    GraphNode,
    NodeStatus,
    RelationshipType,
    ResourceType,
)
from cloudgraph.builder import DiscoveryResult, ResourceMapping, build_graph
from cloudgraph.cost import attribute_costs
from cloudgraph.paths import resolve
from cloudgraph.rules import RelationshipRule, RuleTable, extract_relationships, load_builtin_rules

__all__ = [
    # Version info
    "__version__",
    # Graph types
    "CloudProvider",
    "CostSource",
    "DiscoveryMethod",
    "GraphEdge",
    "GraphNode",
    "NodeStatus",
    "RelationshipType",
    "ResourceType",
    # Engine
    "DiscoveryResult",
    "ResourceMapping",
    "RelationshipRule",
    "RuleTable",
    "attribute_costs",
    "build_graph",
    "extract_relationships",
    "load_builtin_rules",
    "resolve",
]
