"""Tests for cloudgraph.cli module."""

from __future__ import annotations

import json

import pytest

from cloudgraph.bundle import stream_jsonl, write_jsonl
from cloudgraph.cli import main, parse_args


@pytest.fixture
def input_bundle(tmp_path, ec2_instance_record):
    """Input bundle with one instance, its VPC and some costs."""
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    (input_dir / "mappings.json").write_text(
        json.dumps(
            [
                {"resourceType": "compute", "idField": "InstanceId"},
                {"resourceType": "vpc", "idField": "VpcId"},
            ]
        )
    )
    write_jsonl(
        [
            {"region": "us-east-1", "record": ec2_instance_record},
            {"region": "us-east-1", "record": {"InstanceId": "i-0def", "VpcId": "vpc-1"}},
        ],
        input_dir / "compute.jsonl",
    )
    write_jsonl([{"region": "us-east-1", "record": {"VpcId": "vpc-1"}}], input_dir / "vpc.jsonl")
    (input_dir / "costs.json").write_text(
        json.dumps(
            {
                "resources": {"arn:aws:ec2:us-east-1:123456789012:instance/i-0abc": 70.0},
                "services": {"Amazon Elastic Compute Cloud - Compute": 30.0},
            }
        )
    )
    return input_dir


class TestParseArgs:
    """Tests for CLI argument parsing."""

    def test_help_output(self):
        """Test that --help exits gracefully."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--help"])
        assert exc_info.value.code == 0

    def test_version_output(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_build_defaults(self):
        args = parse_args(["build", "--input", "in"])

        assert args.command == "build"
        assert args.output == "cloudgraph-output"
        assert args.rules is None
        assert args.account == ""
        assert args.provider is None

    def test_validate_rules(self):
        args = parse_args(["validate-rules", "rules.json", "--provider", "aws"])

        assert args.command == "validate-rules"
        assert args.file == "rules.json"
        assert args.provider == "aws"


class TestBuildCommand:
    """Tests for `cloudgraph build`."""

    def test_build_writes_bundle(self, clean_environment, input_bundle, tmp_path, capsys):
        output_dir = tmp_path / "out"

        code = main(
            ["build", "--input", str(input_bundle), "--output", str(output_dir), "--account", "123456789012"]
        )

        assert code == 0
        nodes = {n["native_id"]: n for n in stream_jsonl(output_dir / "nodes.jsonl")}
        edges = list(stream_jsonl(output_dir / "edges.jsonl"))
        manifest = json.loads((output_dir / "manifest.json").read_text())

        assert set(nodes) == {"i-0abc", "i-0def", "vpc-1"}
        assert nodes["i-0abc"]["cost_monthly"] == 70.0
        assert nodes["i-0abc"]["metadata"]["cost_source"] == "resource-level"
        assert nodes["i-0def"]["cost_monthly"] == 30.0
        assert nodes["i-0def"]["metadata"]["cost_source"] == "distributed"
        assert any(e["relationship_type"] == "runs-in" for e in edges)
        assert manifest["account_id"] == "123456789012"
        assert manifest["rules_source"] == "builtin:aws"
        assert manifest["costs"] == {"resource_level": 1, "distributed": 1, "static_estimate": 0}
        assert {r["name"]: r["status"] for r in manifest["resource_types"]} == {"compute": "ok", "vpc": "ok"}

        summary = json.loads(capsys.readouterr().out)
        assert summary["nodes"] == 3
        assert summary["errors"] == 0

    def test_build_with_rules_file(self, clean_environment, input_bundle, tmp_path, compute_rule_records):
        rules = tmp_path / "rules.json"
        rules.write_text(json.dumps({"provider": "aws", "rules": compute_rule_records}))
        output_dir = tmp_path / "out"

        code = main(["build", "-i", str(input_bundle), "-o", str(output_dir), "--rules", str(rules)])

        assert code == 0
        manifest = json.loads((output_dir / "manifest.json").read_text())
        assert manifest["rules_source"] == str(rules)
        assert manifest["rule_count"] == 3

    def test_build_uses_edge_confidence_setting(self, clean_environment, input_bundle, tmp_path, monkeypatch):
        monkeypatch.setenv("CLOUDGRAPH_EDGE_CONFIDENCE", "0.7")
        output_dir = tmp_path / "out"

        main(["build", "-i", str(input_bundle), "-o", str(output_dir)])

        edges = list(stream_jsonl(output_dir / "edges.jsonl"))
        assert edges
        assert {e["confidence"] for e in edges} == {0.7}

    def test_build_missing_mappings(self, clean_environment, tmp_path, capsys):
        code = main(["build", "-i", str(tmp_path), "-o", str(tmp_path / "out")])

        assert code == 1
        assert "Cannot load resource mappings" in capsys.readouterr().err

    def test_corrupt_records_fail_only_their_type(self, clean_environment, input_bundle, tmp_path, capsys):
        (input_bundle / "compute.jsonl").write_text("{not json\n")
        (input_bundle / "costs.json").unlink()
        output_dir = tmp_path / "out"

        code = main(["build", "-i", str(input_bundle), "-o", str(output_dir)])

        assert code == 0
        nodes = list(stream_jsonl(output_dir / "nodes.jsonl"))
        assert [n["native_id"] for n in nodes] == ["vpc-1"]
        manifest = json.loads((output_dir / "manifest.json").read_text())
        statuses = {r["name"]: r for r in manifest["resource_types"]}
        assert statuses["vpc"]["status"] == "ok"
        assert statuses["compute"]["status"] == "error"
        assert "invalid JSON" in statuses["compute"]["errors"][0]
        assert json.loads(capsys.readouterr().out)["errors"] == 1

    def test_malformed_costs(self, clean_environment, input_bundle, tmp_path, capsys):
        (input_bundle / "costs.json").write_text("[1, 2]")

        code = main(["build", "-i", str(input_bundle), "-o", str(tmp_path / "out")])

        assert code == 1
        assert "must be a JSON object" in capsys.readouterr().err


class TestValidateRulesCommand:
    """Tests for `cloudgraph validate-rules`."""

    def test_valid_table(self, clean_environment, tmp_path, compute_rule_records, capsys):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps(compute_rule_records))

        code = main(["validate-rules", str(path), "--provider", "aws"])

        assert code == 0
        out = json.loads(capsys.readouterr().out)
        assert out == {"valid": True, "provider": "aws", "rules": 3, "source_types": ["compute"]}

    def test_invalid_table(self, clean_environment, tmp_path, capsys):
        path = tmp_path / "rules.json"
        path.write_text(
            json.dumps(
                {
                    "provider": "aws",
                    "rules": [{"sourceType": "compute", "field": "X", "targetType": "vpc", "relationship": "nope"}],
                }
            )
        )

        code = main(["validate-rules", str(path)])

        assert code == 1
        out = json.loads(capsys.readouterr().out)
        assert out["valid"] is False
        assert out["problems"][0]["index"] == 0
