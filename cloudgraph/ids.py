"""Resource reference normalization and deterministic graph identifiers.

The same resource is referenced by full ARN in one API field and by bare
ID in another. extract_resource_id() reduces both forms to the same short
native ID so that relationship rules build one target node id, not two.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, NamedTuple, Optional
from urllib.parse import urlparse

from .constants import EDGE_ID_SEPARATOR, NODE_ID_DELIMITER

if TYPE_CHECKING:
    from .graph import GraphNode


class Arn(NamedTuple):
    partition: str
    service: str
    region: str
    account: str
    resource: str


def parse_arn(value: str) -> Optional[Arn]:
    """Split an ARN into its parts, or return None if it is not ARN-shaped.

    The resource part keeps any colons of its own
    ("arn:aws:rds:us-east-1:123:db:mydb" has resource "db:mydb").
    """
    if not value.startswith("arn:"):
        return None
    parts = value.split(":", 5)
    if len(parts) < 6:
        return None
    _, partition, service, region, account, resource = parts
    return Arn(partition, service, region, account, resource)


def _is_url(value: str) -> bool:
    return value.startswith("https://") or value.startswith("http://")


def extract_resource_id(value: str) -> str:
    """Reduce an ARN, URL or bare identifier to a short native ID.

    Examples:
        >>> extract_resource_id("arn:aws:ec2:us-east-1:123456789012:instance/i-0abc")
        'i-0abc'
        >>> extract_resource_id("https://sqs.us-east-1.amazonaws.com/123/my-queue")
        'my-queue'
        >>> extract_resource_id("sg-0abc")
        'sg-0abc'
    """
    arn = parse_arn(value)
    if arn is not None:
        resource = arn.resource
        if "/" in resource:
            return resource.rsplit("/", 1)[1]
        return resource

    if _is_url(value):
        segments = [s for s in urlparse(value).path.split("/") if s]
        if segments:
            return segments[-1]
        return value

    return value


def build_node_id(provider: str, account: str, region: str, resource_type: str, native_id: str) -> str:
    """Build the deterministic id for a node.

    Format: provider:account:region:resourceType:nativeId
    """
    return NODE_ID_DELIMITER.join(
        [_text(provider), _text(account), _text(region), _text(resource_type), _text(native_id)]
    )


def build_edge_id(source_node_id: str, relationship: str, target_node_id: str) -> str:
    """Build the deterministic id for an edge: source--relationship--target."""
    return EDGE_ID_SEPARATOR.join([source_node_id, _text(relationship), target_node_id])


def _text(value) -> str:
    # str-valued enums must contribute their value, not their repr
    return getattr(value, "value", value)


def _tail_segment(arn: str) -> str:
    tail = arn.rsplit("/", 1)[-1]
    return tail.rsplit(":", 1)[-1]


def find_node_by_arn_or_id(
    nodes: Iterable["GraphNode"],
    arn: str,
    extracted_id: Optional[str] = None,
) -> Optional["GraphNode"]:
    """Find an already-built node referenced by ARN or native ID.

    Matches on exact native ID, exact ``metadata["arn"]``, exact extracted
    ID, or an ARN whose last "/" or ":" delimited segment equals the
    node's native ID. Plain substring matches are never accepted, so a
    node "prod" does not match "arn:...:db/production-db".

    Args:
        nodes: Candidate nodes
        arn: Reference as found in the raw record
        extracted_id: Short ID of the reference; derived when omitted

    Returns:
        The first matching node, or None
    """
    if not arn:
        return None
    if extracted_id is None:
        extracted_id = extract_resource_id(arn)
    tail = _tail_segment(arn)

    for node in nodes:
        native = node.native_id
        if not native:
            continue
        if native == arn or node.metadata.get("arn") == arn:
            return node
        if native == extracted_id or native == tail:
            return node
    return None
