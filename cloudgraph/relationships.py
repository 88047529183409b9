"""Reverse-relationship table used for bidirectional rules.

The table is total over RelationshipType: symmetric kinds map to
themselves, asymmetric kinds map to their counterpart. A kind missing
from the table is a configuration error, never an implicit identity.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Union

from .errors import UnknownRelationshipError
from .graph import RelationshipType as R

_SYMMETRIC = (
    R.REPLICATES,
    R.PEERS_WITH,
    R.ATTACHED_TO,
    R.CONNECTS_VIA,
    R.CONNECTED_TO,
    R.CUSTOM,
)

_PAIRS = (
    (R.RUNS_IN, R.CONTAINS),
    (R.SECURED_BY, R.SECURES),
    (R.ROUTES_TO, R.RECEIVES_FROM),
    (R.TRIGGERS, R.TRIGGERED_BY),
    (R.READS_FROM, R.READ_BY),
    (R.WRITES_TO, R.WRITTEN_BY),
    (R.STORES_IN, R.STORES),
    (R.USES, R.USED_BY),
    (R.DEPENDS_ON, R.DEPENDED_ON_BY),
    (R.REPLICATES_TO, R.REPLICATES_FROM),
    (R.MEMBER_OF, R.HAS_MEMBER),
    (R.LOAD_BALANCES, R.LOAD_BALANCED_BY),
    (R.RESOLVES_TO, R.RESOLVED_FROM),
    (R.ENCRYPTS_WITH, R.ENCRYPTS),
    (R.AUTHENTICATED_BY, R.AUTHENTICATES),
    (R.PUBLISHES_TO, R.SUBSCRIBES_TO),
    (R.MONITORS, R.MONITORED_BY),
    (R.LOGS_TO, R.RECEIVES_LOGS_FROM),
    (R.BACKED_BY, R.BACKS),
    (R.ALIASES, R.ALIASED_BY),
    (R.BACKS_UP, R.BACKED_UP_BY),
    (R.EXPOSES, R.EXPOSED_BY),
    (R.INHERITS_FROM, R.INHERITED_BY),
    (R.MANAGED_BY, R.MANAGES),
    (R.HOSTED_ON, R.HOSTS),
    (R.MEMBER_OF_FLEET, R.FLEET_CONTAINS),
    (R.DEPLOYED_AT, R.HOSTS_DEPLOYMENT),
)


def _build_table() -> Dict[R, R]:
    table: Dict[R, R] = {rel: rel for rel in _SYMMETRIC}
    for forward, inverse in _PAIRS:
        table[forward] = inverse
        table[inverse] = forward
    return table


REVERSE_RELATIONSHIPS: Dict[R, R] = _build_table()


def missing_reverse_entries(kinds: Iterable[R] = R) -> List[R]:
    """List relationship kinds that have no reverse entry."""
    return [kind for kind in kinds if kind not in REVERSE_RELATIONSHIPS]


def reverse_relationship(relationship: Union[R, str]) -> R:
    """Return the inverse of a relationship kind.

    Raises:
        UnknownRelationshipError: If the kind is unknown or has no entry
    """
    try:
        kind = R(relationship)
    except ValueError:
        raise UnknownRelationshipError(str(relationship)) from None
    try:
        return REVERSE_RELATIONSHIPS[kind]
    except KeyError:
        raise UnknownRelationshipError(kind.value) from None


_missing = missing_reverse_entries()
if _missing:  # pragma: no cover - guards edits to RelationshipType
    raise UnknownRelationshipError(", ".join(k.value for k in _missing))
