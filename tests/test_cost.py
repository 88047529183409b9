"""Tests for cloudgraph.cost module.

Covers resource-level matching, weighted distribution of service costs,
static estimates and the combined attribution pass.
"""

from __future__ import annotations

import pytest

from cloudgraph.cost import (
    apply_resource_costs,
    apply_static_estimates,
    attribute_costs,
    distribute_service_costs,
    load_service_type_mapping,
    normalize_type_mapping,
)
from cloudgraph.errors import ConfigurationError
from cloudgraph.graph import CostSource, ResourceType

from .conftest import make_node

EC2 = "Amazon Elastic Compute Cloud - Compute"
TYPE_MAPPING = {EC2: ["compute"], "Amazon Relational Database Service": ["database"]}


class TestApplyResourceCosts:
    """Tests for phase 1."""

    def test_key_suffixed_by_native_id(self, compute_nodes):
        priced = apply_resource_costs(
            compute_nodes, {"arn:aws:ec2:us-east-1:123456789012:instance/i-1": 50.0}
        )

        assert priced == 1
        assert compute_nodes[0].cost_monthly == 50.0
        assert compute_nodes[0].cost_source is CostSource.RESOURCE_LEVEL
        assert compute_nodes[0].metadata["cost_key"] == "arn:aws:ec2:us-east-1:123456789012:instance/i-1"
        assert compute_nodes[1].cost_monthly is None

    def test_key_equal_to_metadata_arn(self):
        arn = "arn:aws:rds:us-east-1:123:db:orders"
        node = make_node(ResourceType.DATABASE, "db-XYZ", metadata={"arn": arn})

        assert apply_resource_costs([node], {arn: 80}) == 1
        assert node.cost_monthly == 80.0

    def test_first_matching_key_wins(self, compute_nodes):
        apply_resource_costs(compute_nodes[:1], {"instance/i-1": 10.0, "other/i-1": 20.0})
        assert compute_nodes[0].cost_monthly == 10.0

    def test_empty_native_id_never_matches(self):
        node = make_node(ResourceType.COMPUTE, "")
        assert apply_resource_costs([node], {"anything": 10.0}) == 0
        assert node.cost_monthly is None

    def test_absent_map(self, compute_nodes):
        assert apply_resource_costs(compute_nodes, None) == 0
        assert apply_resource_costs(compute_nodes, {}) == 0


class TestDistributeServiceCosts:
    """Tests for phase 2."""

    def test_equal_split_skips_resource_level(self, compute_nodes):
        """Test a 100 EC2 bill splits over three uncovered nodes."""
        covered = make_node(ResourceType.COMPUTE, "i-covered")
        apply_resource_costs([covered], {"instance/i-covered": 40.0})

        assigned = distribute_service_costs(compute_nodes + [covered], {EC2: 100.0}, TYPE_MAPPING)

        assert assigned == 3
        for node in compute_nodes:
            assert node.cost_monthly == pytest.approx(33.33)
            assert node.cost_source is CostSource.DISTRIBUTED
            assert node.metadata["cost_key"] == EC2
        assert covered.cost_monthly == 40.0
        assert covered.cost_source is CostSource.RESOURCE_LEVEL
        assert sum(n.cost_monthly for n in compute_nodes) == pytest.approx(100.0, abs=0.01)

    def test_prior_estimates_weight_the_split(self):
        big = make_node(ResourceType.COMPUTE, "i-big", cost_monthly=3.0)
        small = make_node(ResourceType.COMPUTE, "i-small")

        distribute_service_costs([big, small], {EC2: 100.0}, TYPE_MAPPING)

        assert big.cost_monthly == 75.0
        assert small.cost_monthly == 25.0

    def test_zero_weights_fall_back_to_equal(self):
        nodes = [make_node(ResourceType.COMPUTE, f"i-{i}", cost_monthly=0.0) for i in range(4)]

        distribute_service_costs(nodes, {EC2: 10.0}, TYPE_MAPPING)

        assert [n.cost_monthly for n in nodes] == [2.5, 2.5, 2.5, 2.5]

    def test_precision(self, compute_nodes):
        distribute_service_costs(compute_nodes, {EC2: 100.0}, TYPE_MAPPING, precision=4)
        assert compute_nodes[0].cost_monthly == 33.3333

    def test_unknown_service_is_skipped(self, compute_nodes):
        assert distribute_service_costs(compute_nodes, {"Amazon Quantum Ledger": 10.0}, TYPE_MAPPING) == 0
        assert all(n.cost_monthly is None for n in compute_nodes)

    def test_service_without_nodes(self, compute_nodes):
        costs = {"Amazon Relational Database Service": 10.0}
        assert distribute_service_costs(compute_nodes, costs, TYPE_MAPPING) == 0

    def test_only_mapped_types_share(self, compute_nodes):
        db = make_node(ResourceType.DATABASE, "orders")
        distribute_service_costs(compute_nodes + [db], {EC2: 90.0}, TYPE_MAPPING)

        assert db.cost_monthly is None
        assert [n.cost_monthly for n in compute_nodes] == [30.0, 30.0, 30.0]

    def test_overlapping_services_accumulate(self):
        """Test two services billed to the same type both keep their totals."""
        nodes = [make_node(ResourceType.DATABASE, "orders"), make_node(ResourceType.DATABASE, "sessions")]
        costs = {"Amazon Relational Database Service": 100.0, "Amazon DynamoDB": 10.0}

        assigned = distribute_service_costs(nodes, costs, load_service_type_mapping("aws"))

        assert assigned == 2
        assert [n.cost_monthly for n in nodes] == [55.0, 55.0]
        assert sum(n.cost_monthly for n in nodes) == pytest.approx(110.0, abs=0.01)
        assert nodes[0].metadata["cost_key"] == "Amazon Relational Database Service"
        assert nodes[0].metadata["cost_keys"] == ["Amazon Relational Database Service", "Amazon DynamoDB"]

    def test_overlap_weights_from_prior_estimate(self):
        big = make_node(ResourceType.COMPUTE, "i-big", cost_monthly=3.0)
        small = make_node(ResourceType.COMPUTE, "i-small")
        vpc = make_node(ResourceType.VPC, "vpc-1")
        costs = {EC2: 100.0, "EC2 - Other": 50.0}

        distribute_service_costs([big, small, vpc], costs, load_service_type_mapping("aws"))

        assert big.cost_monthly == 75.0 + 30.0
        assert small.cost_monthly == 25.0 + 10.0
        assert vpc.cost_monthly == 10.0
        assert big.cost_monthly + small.cost_monthly + vpc.cost_monthly == pytest.approx(150.0)


class TestTypeMapping:
    """Tests for billing-key to resource-type tables."""

    def test_normalize(self):
        assert normalize_type_mapping({"X": ["vpc", "subnet"]}) == {"X": (ResourceType.VPC, ResourceType.SUBNET)}

    def test_unregistered_type(self):
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_type_mapping({"X": ["mainframe"]})
        assert exc_info.value.details["problems"] == ["X: 'mainframe'"]

    def test_builtin_aws_mapping(self):
        mapping = load_service_type_mapping("aws")
        assert mapping[EC2] == (ResourceType.COMPUTE,)
        assert ResourceType.SERVERLESS_FUNCTION in mapping["AWS Lambda"]

    def test_builtin_mapping_missing(self):
        with pytest.raises(ConfigurationError):
            load_service_type_mapping("vmware")


class TestStaticEstimates:
    """Tests for the static estimate fallback."""

    def test_prices_only_unpriced_nodes(self, compute_nodes):
        apply_resource_costs(compute_nodes, {"instance/i-1": 5.0})

        priced = apply_static_estimates(compute_nodes, {"compute": 15.0})

        assert priced == 2
        assert compute_nodes[0].cost_monthly == 5.0
        assert compute_nodes[1].cost_monthly == 15.0
        assert compute_nodes[1].cost_source is CostSource.STATIC_ESTIMATE

    def test_unknown_type(self, compute_nodes):
        assert apply_static_estimates(compute_nodes, {"database": 15.0}) == 0


class TestAttributeCosts:
    """Tests for the combined attribution pass."""

    def test_runs_both_phases(self, compute_nodes):
        summary = attribute_costs(
            compute_nodes,
            resource_costs={"instance/i-1": 40.0},
            service_costs={EC2: 60.0},
            type_mapping=TYPE_MAPPING,
        )

        assert summary.to_dict() == {"resource_level": 1, "distributed": 2, "static_estimate": 0}
        assert [n.cost_monthly for n in compute_nodes] == [40.0, 30.0, 30.0]

    def test_missing_inputs_skip_phases(self, compute_nodes):
        summary = attribute_costs(compute_nodes)

        assert summary.to_dict() == {"resource_level": 0, "distributed": 0, "static_estimate": 0}
        assert all(n.cost_monthly is None for n in compute_nodes)

    def test_service_costs_without_mapping(self, compute_nodes):
        summary = attribute_costs(compute_nodes, service_costs={EC2: 60.0})
        assert summary.distributed == 0
