"""Core graph types: nodes, edges and the enums that classify them.

Every type here is provider-agnostic; adapters normalize vendor records
into these shapes.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .constants import API_FIELD_CONFIDENCE
from .ids import build_node_id


class CloudProvider(str, Enum):
    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"
    KUBERNETES = "kubernetes"
    CUSTOM = "custom"
    AZURE_ARC = "azure-arc"
    GDC = "gdc"
    VMWARE = "vmware"
    NUTANIX = "nutanix"


class ResourceType(str, Enum):
    """Abstract resource categories shared by all providers."""

    COMPUTE = "compute"
    STORAGE = "storage"
    NETWORK = "network"
    DATABASE = "database"
    CACHE = "cache"
    QUEUE = "queue"
    FUNCTION = "function"
    SERVERLESS_FUNCTION = "serverless-function"
    CONTAINER = "container"
    CLUSTER = "cluster"
    LOAD_BALANCER = "load-balancer"
    DNS = "dns"
    CERTIFICATE = "certificate"
    SECRET = "secret"
    POLICY = "policy"
    IDENTITY = "identity"
    VPC = "vpc"
    SUBNET = "subnet"
    SECURITY_GROUP = "security-group"
    IAM_ROLE = "iam-role"
    NAT_GATEWAY = "nat-gateway"
    API_GATEWAY = "api-gateway"
    CDN = "cdn"
    TOPIC = "topic"
    STREAM = "stream"
    ROUTE_TABLE = "route-table"
    INTERNET_GATEWAY = "internet-gateway"
    VPC_ENDPOINT = "vpc-endpoint"
    TRANSIT_GATEWAY = "transit-gateway"
    HYBRID_MACHINE = "hybrid-machine"
    CONNECTED_CLUSTER = "connected-cluster"
    CUSTOM_LOCATION = "custom-location"
    OUTPOST = "outpost"
    EDGE_SITE = "edge-site"
    HCI_CLUSTER = "hci-cluster"
    FLEET = "fleet"
    CUSTOM = "custom"

    @classmethod
    def coerce(cls, value: Any) -> "ResourceType":
        """Map a value to a ResourceType, falling back to CUSTOM."""
        try:
            return cls(value)
        except ValueError:
            return cls.CUSTOM

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


class NodeStatus(str, Enum):
    RUNNING = "running"
    PENDING = "pending"
    STOPPED = "stopped"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"
    UNKNOWN = "unknown"


class RelationshipType(str, Enum):
    """Relationship kinds, read as source -> verb -> target.

    Every member must have an entry in the reverse table in
    cloudgraph.relationships.
    """

    RUNS_IN = "runs-in"
    CONTAINS = "contains"
    SECURED_BY = "secured-by"
    SECURES = "secures"
    ROUTES_TO = "routes-to"
    RECEIVES_FROM = "receives-from"
    TRIGGERS = "triggers"
    TRIGGERED_BY = "triggered-by"
    READS_FROM = "reads-from"
    READ_BY = "read-by"
    WRITES_TO = "writes-to"
    WRITTEN_BY = "written-by"
    STORES_IN = "stores-in"
    STORES = "stores"
    USES = "uses"
    USED_BY = "used-by"
    ATTACHED_TO = "attached-to"
    DEPENDS_ON = "depends-on"
    DEPENDED_ON_BY = "depended-on-by"
    REPLICATES = "replicates"
    REPLICATES_TO = "replicates-to"
    REPLICATES_FROM = "replicates-from"
    PEERS_WITH = "peers-with"
    MEMBER_OF = "member-of"
    HAS_MEMBER = "has-member"
    LOAD_BALANCES = "load-balances"
    LOAD_BALANCED_BY = "load-balanced-by"
    RESOLVES_TO = "resolves-to"
    RESOLVED_FROM = "resolved-from"
    ENCRYPTS_WITH = "encrypts-with"
    ENCRYPTS = "encrypts"
    AUTHENTICATED_BY = "authenticated-by"
    AUTHENTICATES = "authenticates"
    PUBLISHES_TO = "publishes-to"
    SUBSCRIBES_TO = "subscribes-to"
    MONITORS = "monitors"
    MONITORED_BY = "monitored-by"
    LOGS_TO = "logs-to"
    RECEIVES_LOGS_FROM = "receives-logs-from"
    BACKED_BY = "backed-by"
    BACKS = "backs"
    ALIASES = "aliases"
    ALIASED_BY = "aliased-by"
    BACKS_UP = "backs-up"
    BACKED_UP_BY = "backed-up-by"
    CONNECTS_VIA = "connects-via"
    CONNECTED_TO = "connected-to"
    EXPOSES = "exposes"
    EXPOSED_BY = "exposed-by"
    INHERITS_FROM = "inherits-from"
    INHERITED_BY = "inherited-by"
    MANAGED_BY = "managed-by"
    MANAGES = "manages"
    HOSTED_ON = "hosted-on"
    HOSTS = "hosts"
    MEMBER_OF_FLEET = "member-of-fleet"
    FLEET_CONTAINS = "fleet-contains"
    DEPLOYED_AT = "deployed-at"
    HOSTS_DEPLOYMENT = "hosts-deployment"
    CUSTOM = "custom"


class DiscoveryMethod(str, Enum):
    """Provenance of an edge."""

    API_FIELD = "api-field"
    CONFIG_SCAN = "config-scan"
    EVENT_STREAM = "event-stream"
    RUNTIME_TRACE = "runtime-trace"
    IAC_PARSE = "iac-parse"
    MANUAL = "manual"


class CostSource(str, Enum):
    """Where a node's monthly cost came from."""

    RESOURCE_LEVEL = "resource-level"
    DISTRIBUTED = "distributed"
    STATIC_ESTIMATE = "static-estimate"


@dataclass
class GraphNode:
    """A single discovered resource.

    ``id`` is a pure function of (provider, account, region,
    resource_type, native_id); use GraphNode.create() to derive it.
    """

    id: str
    provider: CloudProvider
    resource_type: ResourceType
    native_id: str
    name: str = ""
    region: str = ""
    account: str = ""
    status: NodeStatus = NodeStatus.UNKNOWN
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    cost_monthly: Optional[float] = None
    owner: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def create(
        cls,
        provider: CloudProvider,
        account: str,
        region: str,
        resource_type: ResourceType,
        native_id: str,
        **kwargs: Any,
    ) -> "GraphNode":
        """Create a node whose id is derived from its identity fields."""
        provider = CloudProvider(provider)
        resource_type = ResourceType.coerce(resource_type)
        node_id = build_node_id(provider.value, account, region, resource_type.value, native_id)
        kwargs.setdefault("name", native_id)
        return cls(
            id=node_id,
            provider=provider,
            resource_type=resource_type,
            native_id=native_id,
            region=region,
            account=account,
            **kwargs,
        )

    @property
    def cost_source(self) -> Optional[CostSource]:
        raw = self.metadata.get("cost_source")
        return CostSource(raw) if raw else None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["provider"] = self.provider.value
        d["resource_type"] = self.resource_type.value
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphNode":
        return cls(
            id=data["id"],
            provider=CloudProvider(data.get("provider", CloudProvider.AWS)),
            resource_type=ResourceType.coerce(data.get("resource_type", ResourceType.CUSTOM)),
            native_id=data.get("native_id", ""),
            name=data.get("name", ""),
            region=data.get("region", ""),
            account=data.get("account", ""),
            status=NodeStatus(data.get("status", NodeStatus.UNKNOWN)),
            tags=dict(data.get("tags") or {}),
            metadata=dict(data.get("metadata") or {}),
            cost_monthly=data.get("cost_monthly"),
            owner=data.get("owner"),
            created_at=data.get("created_at"),
        )


@dataclass
class GraphEdge:
    """A directed, typed relationship between two nodes."""

    id: str
    source_node_id: str
    target_node_id: str
    relationship_type: RelationshipType
    confidence: float = API_FIELD_CONFIDENCE
    discovered_via: DiscoveryMethod = DiscoveryMethod.API_FIELD
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Edge confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["relationship_type"] = self.relationship_type.value
        d["discovered_via"] = self.discovered_via.value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphEdge":
        return cls(
            id=data["id"],
            source_node_id=data["source_node_id"],
            target_node_id=data["target_node_id"],
            relationship_type=RelationshipType(data["relationship_type"]),
            confidence=data.get("confidence", API_FIELD_CONFIDENCE),
            discovered_via=DiscoveryMethod(data.get("discovered_via", DiscoveryMethod.API_FIELD)),
            metadata=dict(data.get("metadata") or {}),
        )
