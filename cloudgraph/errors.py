"""Exception hierarchy for CloudGraph.

Missing data is never an error in the engine: absent fields, unmatched
cost keys and malformed values simply produce no output. Only
configuration problems (bad rule tables, unknown relationship kinds,
unparseable field paths) raise, and they raise at load time.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CloudGraphError(Exception):
    """Base exception for CloudGraph errors.

    Usage:
        raise CloudGraphError("Rule table is empty")
        raise CloudGraphError("Bad rule", details={"index": 3})
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        result: Dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(CloudGraphError):
    """Raised when static configuration data is invalid."""


class PathSyntaxError(CloudGraphError, ValueError):
    """Raised when a field path expression cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid field path {path!r}: {reason}", details={"path": path})
        self.path = path


class UnknownRelationshipError(ConfigurationError):
    """Raised when a relationship kind has no reverse-table entry."""

    def __init__(self, relationship: str):
        super().__init__(
            f"Relationship '{relationship}' has no reverse mapping",
            details={"relationship": relationship},
        )
        self.relationship = relationship


class RuleTableError(ConfigurationError):
    """Raised when a relationship rule table fails validation.

    Attributes:
        problems: One entry per offending rule, each with the rule index
            and a human-readable reason
    """

    def __init__(self, message: str, problems: Optional[List[Dict[str, Any]]] = None):
        problems = problems or []
        super().__init__(message, details={"problems": problems} if problems else None)
        self.problems = problems
