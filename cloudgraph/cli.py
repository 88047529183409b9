from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .bundle import load_batches, load_costs, load_mappings, write_graph, write_manifest
from .builder import DiscoveryError, RecordBatch, build_graph
from .config import get_settings
from .cost import attribute_costs, load_service_type_mapping
from .errors import CloudGraphError, ConfigurationError, RuleTableError
from .manifest import Manifest
from .rules import RuleTable, load_builtin_rules, load_rule_table

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="cloudgraph", description="CloudGraph resource graph builder")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="build nodes and edges from raw discovery records")
    build.add_argument("--input", "-i", required=True, help="directory holding mappings.json and raw records")
    build.add_argument("--output", "-o", default="cloudgraph-output", help="directory for the output bundle")
    build.add_argument("--rules", help="rule table file (default: built-in table for the provider)")
    build.add_argument("--account", default="", help="account that owns the discovered resources")
    build.add_argument("--provider", help="provider override (default: CLOUDGRAPH_PROVIDER)")

    validate = sub.add_parser("validate-rules", help="validate a rule table file")
    validate.add_argument("file", help="rule table JSON file")
    validate.add_argument("--provider", help="provider for bare rule lists")
    return parser.parse_args(argv)


def _rule_table(rules_path: Optional[str], provider: str) -> RuleTable:
    if rules_path:
        return load_rule_table(rules_path, provider)
    return load_builtin_rules(provider)


def run_build(args: argparse.Namespace) -> int:
    settings = get_settings()
    provider = args.provider or settings.provider
    rules_path = args.rules or settings.rules_path
    input_dir = Path(args.input)
    output_dir = Path(args.output)

    table = _rule_table(rules_path, provider)
    mappings = load_mappings(input_dir)
    batches: List[RecordBatch] = []
    load_errors: List[DiscoveryError] = []
    for mapping in mappings:
        resource_type = mapping.resource_type.value
        try:
            batches.extend(load_batches(input_dir, mapping))
        except ConfigurationError as e:
            logger.warning(f"Skipping {resource_type}: {e.message}")
            load_errors.append(DiscoveryError(resource_type=resource_type, message=e.message))

    result = build_graph(batches, table, args.account, confidence=settings.edge_confidence)
    for error in load_errors:
        result.add_error(error)

    manifest = Manifest.new(
        provider=table.provider.value,
        account_id=args.account,
        rules_source=rules_path or f"builtin:{table.provider.value}",
        rule_count=len(table),
    )
    manifest.record_result(result, [m.resource_type.value for m in mappings])

    costs = load_costs(input_dir)
    if costs:
        service_costs = costs.get("services")
        type_mapping = costs.get("service_types")
        if service_costs and type_mapping is None:
            type_mapping = load_service_type_mapping(table.provider.value)
        summary = attribute_costs(
            result.nodes,
            resource_costs=costs.get("resources"),
            service_costs=service_costs,
            type_mapping=type_mapping,
            static_estimates=costs.get("static"),
            precision=settings.cost_precision,
        )
        manifest.costs = summary.to_dict()

    written = write_graph(result, output_dir)
    manifest_path = write_manifest(manifest, output_dir)
    print(json.dumps({"manifest": str(manifest_path), **written, "errors": len(result.errors)}, indent=2))
    return 0


def run_validate_rules(args: argparse.Namespace) -> int:
    try:
        table = load_rule_table(args.file, args.provider)
    except RuleTableError as e:
        print(json.dumps({"valid": False, "error": e.message, "problems": e.problems}, indent=2))
        return 1
    print(
        json.dumps(
            {
                "valid": True,
                "provider": table.provider.value,
                "rules": len(table),
                "source_types": [t.value for t in table.source_types],
            },
            indent=2,
        )
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "build":
            return run_build(args)
        if args.command == "validate-rules":
            return run_validate_rules(args)
    except CloudGraphError as e:
        logger.error(e.message)
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1
    raise SystemExit(f"Unknown command {args.command}")


if __name__ == "__main__":
    sys.exit(main())
