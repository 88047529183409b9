"""CloudGraph constants.

Centralizes the fixed values the engine relies on. Identifier formats
here are part of the graph's identity scheme: changing them changes
every node and edge id.
"""

# Identity
NODE_ID_DELIMITER = ":"
EDGE_ID_SEPARATOR = "--"

# Confidence scores
API_FIELD_CONFIDENCE = 0.95
SELECTOR_CONFIDENCE = 0.9

# Cost attribution
COST_PRECISION = 2  # decimal places
DEFAULT_COST_WEIGHT = 1.0

# Enrichment
DEFAULT_BATCH_SIZE = 10

# Region used for non-regional resources
GLOBAL_REGION = "global"

# Tag keys consulted for ownership, in priority order
OWNER_TAG_KEYS = ("Owner", "owner", "Team", "team")

# Raw record fields consulted for creation time, in priority order
CREATED_AT_FIELDS = ("LaunchTime", "CreatedTime", "CreationDate", "CreateDate")
