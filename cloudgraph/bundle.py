"""On-disk discovery bundles.

Input layout (one directory):

    mappings.json            list of ResourceMapping records
    <resource-type>.jsonl    one {"region": ..., "record": {...}} per line
    costs.json               optional {"services": {}, "resources": {}, "static": {}}

Output layout: nodes.jsonl, edges.jsonl and manifest.json.
"""

import json
import logging
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import ValidationError

from .builder import DiscoveryResult, RecordBatch, ResourceMapping
from .errors import ConfigurationError
from .manifest import Manifest
from .values import from_native

logger = logging.getLogger(__name__)


def json_serial(obj):
    """Encode dates and enums found in node and edge dicts."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_manifest(manifest: Manifest, output_dir: Path) -> Path:
    ensure_dir(output_dir)
    path = output_dir / "manifest.json"
    path.write_text(manifest.to_json() + "\n", encoding="utf-8")
    return path


def write_jsonl(records: Iterable[Dict[str, Any]], path: Path) -> int:
    """Write one JSON document per line; returns the number written."""
    ensure_dir(path.parent)
    count = 0
    with path.open("w", encoding="utf-8") as out:
        for record in records:
            out.write(json.dumps(record, default=json_serial) + "\n")
            count += 1
    return count


def write_graph(result: DiscoveryResult, output_dir: Path) -> Dict[str, int]:
    """Write nodes.jsonl and edges.jsonl for a discovery result."""
    return {
        "nodes": write_jsonl((n.to_dict() for n in result.nodes), output_dir / "nodes.jsonl"),
        "edges": write_jsonl((e.to_dict() for e in result.edges), output_dir / "edges.jsonl"),
    }


def stream_jsonl(path: Path) -> Iterator[dict]:
    """Yield decoded lines, skipping blanks.

    Raises:
        ConfigurationError: On a line that is not valid JSON
    """
    with path.open("r", encoding="utf-8") as src:
        for lineno, line in enumerate(src, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"{path}:{lineno}: invalid JSON: {e.msg}") from e
            yield record


def load_mappings(input_dir: Path) -> List[ResourceMapping]:
    path = input_dir / "mappings.json"
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot load resource mappings from {path}: {e}") from e
    try:
        return [ResourceMapping.model_validate(rec) for rec in records]
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False)
        raise ConfigurationError(f"Invalid resource mapping in {path}", details={"errors": errors}) from e


def load_batches(input_dir: Path, mapping: ResourceMapping) -> List[RecordBatch]:
    """Group one resource type's raw records by region."""
    path = input_dir / f"{mapping.resource_type.value}.jsonl"
    if not path.exists():
        logger.debug(f"No raw records for {mapping.resource_type.value} in {input_dir}")
        return []
    by_region: Dict[str, List[Any]] = {}
    for lineno, line in enumerate(stream_jsonl(path), start=1):
        if not isinstance(line, dict):
            raise ConfigurationError(f"{path}: entry {lineno} is not a JSON object")
        region = line.get("region") or ""
        by_region.setdefault(region, []).append(from_native(line.get("record")))
    return [RecordBatch(mapping=mapping, region=region, records=records) for region, records in by_region.items()]


def load_costs(input_dir: Path) -> Optional[Dict[str, Dict[str, float]]]:
    path = input_dir / "costs.json"
    if not path.exists():
        return None
    try:
        costs = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot load costs from {path}: {e}") from e
    if not isinstance(costs, dict):
        raise ConfigurationError(f"Costs in {path} must be a JSON object, got {type(costs).__name__}")
    for section in ("resources", "services", "service_types", "static"):
        if not isinstance(costs.get(section) or {}, dict):
            raise ConfigurationError(f"Costs section '{section}' in {path} must be a JSON object")
    return costs
