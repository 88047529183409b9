"""Label selector matching for structurally expressed relationships.

Some relationships are not references in a field but label selections:
a Kubernetes Service routes to every workload whose labels contain the
Service's selector, a NetworkPolicy secures every workload matched by its
podSelector. These helpers turn such selections into edges.

An empty or missing selector selects nothing when inferring edges.
matches() on its own is a plain subset test, which an empty selector
satisfies vacuously; callers that want "select all" must say so by not
going through select_matching().
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Union

from .constants import SELECTOR_CONFIDENCE
from .graph import DiscoveryMethod, GraphEdge, GraphNode, RelationshipType
from .ids import build_edge_id

logger = logging.getLogger(__name__)


def matches(labels: Optional[Mapping[str, str]], selector: Mapping[str, str]) -> bool:
    """True iff every selector key is present in labels with an equal value."""
    labels = labels or {}
    return all(key in labels and labels[key] == value for key, value in selector.items())


def select_matching(
    selector: Optional[Mapping[str, str]],
    candidates: Iterable[GraphNode],
) -> List[GraphNode]:
    """Return candidates whose tags satisfy a non-empty selector."""
    if not selector:
        return []
    return [node for node in candidates if matches(node.tags, selector)]


def infer_selector_edges(
    source_node_id: str,
    selector: Optional[Mapping[str, str]],
    candidates: Iterable[GraphNode],
    relationship: Union[RelationshipType, str],
    confidence: float = SELECTOR_CONFIDENCE,
) -> List[GraphEdge]:
    """Emit one edge from the source to each candidate the selector matches.

    Args:
        source_node_id: Node holding the selector (e.g. a Service)
        selector: Required label subset; empty or None yields no edges
        candidates: Nodes whose tags are matched against the selector
        relationship: Relationship from source to each match
        confidence: Confidence stamped on each edge

    Returns:
        Edges tagged discoveredVia=config-scan with the selector in metadata
    """
    relationship = RelationshipType(relationship)
    edges: List[GraphEdge] = []
    seen = set()
    for node in select_matching(selector, candidates):
        if node.id == source_node_id:
            continue
        edge_id = build_edge_id(source_node_id, relationship.value, node.id)
        if edge_id in seen:
            continue
        seen.add(edge_id)
        edges.append(
            GraphEdge(
                id=edge_id,
                source_node_id=source_node_id,
                target_node_id=node.id,
                relationship_type=relationship,
                confidence=confidence,
                discovered_via=DiscoveryMethod.CONFIG_SCAN,
                metadata={"selector": dict(selector)},
            )
        )
    if not edges:
        logger.debug(f"Selector {selector!r} on {source_node_id} matched no candidates")
    return edges
