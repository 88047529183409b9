"""Pytest configuration and shared fixtures for CloudGraph tests.

This module provides common fixtures used across multiple test modules,
including raw provider records, small rule tables and prebuilt nodes.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List

import pytest

from cloudgraph.config import get_settings
from cloudgraph.graph import CloudProvider, GraphNode, ResourceType
from cloudgraph.rules import RuleTable


# ============================================================================
# Raw Record Fixtures
# ============================================================================

@pytest.fixture
def ec2_instance_record() -> Dict[str, Any]:
    """Raw EC2 DescribeInstances instance record."""
    return {
        "InstanceId": "i-0abc",
        "VpcId": "vpc-1",
        "SubnetId": "subnet-1",
        "State": {"Name": "running"},
        "LaunchTime": "2024-01-15T10:00:00+00:00",
        "SecurityGroups": [
            {"GroupId": "sg-1", "GroupName": "web"},
            {"GroupId": "sg-2", "GroupName": "ssh"},
        ],
        "BlockDeviceMappings": [
            {"DeviceName": "/dev/xvda", "Ebs": {"VolumeId": "vol-1"}},
        ],
        "Tags": [
            {"Key": "Name", "Value": "web-1"},
            {"Key": "Owner", "Value": "platform"},
        ],
    }


@pytest.fixture
def describe_instances_response(ec2_instance_record: Dict[str, Any]) -> Dict[str, Any]:
    """Raw DescribeInstances response with nested reservations."""
    return {
        "Reservations": [
            {"Instances": [ec2_instance_record, {"InstanceId": "i-0def"}]},
            {"Instances": [{"InstanceId": "i-0ghi"}]},
        ]
    }


# ============================================================================
# Rule Table Fixtures
# ============================================================================

@pytest.fixture
def compute_rule_records() -> List[Dict[str, Any]]:
    """A small AWS rule table covering the common compute relationships."""
    return [
        {
            "sourceType": "compute",
            "field": "VpcId",
            "targetType": "vpc",
            "relationship": "runs-in",
            "isArray": False,
            "bidirectional": True,
        },
        {
            "sourceType": "compute",
            "field": "SecurityGroups[].GroupId",
            "targetType": "security-group",
            "relationship": "secured-by",
            "isArray": True,
        },
        {
            "sourceType": "compute",
            "field": "BlockDeviceMappings[].Ebs.VolumeId",
            "targetType": "storage",
            "relationship": "attached-to",
            "isArray": True,
            "bidirectional": True,
        },
    ]


@pytest.fixture
def compute_rule_table(compute_rule_records: List[Dict[str, Any]]) -> RuleTable:
    """Validated rule table built from compute_rule_records."""
    return RuleTable.from_records("aws", compute_rule_records)


# ============================================================================
# Node Fixtures
# ============================================================================

def make_node(resource_type: ResourceType, native_id: str, **kwargs: Any) -> GraphNode:
    """Build an AWS node in a fixed account and region."""
    return GraphNode.create(
        provider=CloudProvider.AWS,
        account="123456789012",
        region="us-east-1",
        resource_type=resource_type,
        native_id=native_id,
        **kwargs,
    )


@pytest.fixture
def compute_nodes() -> List[GraphNode]:
    """Three compute nodes without any cost."""
    return [
        make_node(ResourceType.COMPUTE, "i-1"),
        make_node(ResourceType.COMPUTE, "i-2"),
        make_node(ResourceType.COMPUTE, "i-3"),
    ]


@pytest.fixture
def labeled_workloads() -> List[GraphNode]:
    """Container workloads carrying Kubernetes-style labels."""
    return [
        make_node(ResourceType.CONTAINER, "web-a", tags={"app": "web", "tier": "frontend"}),
        make_node(ResourceType.CONTAINER, "web-b", tags={"app": "web", "tier": "frontend", "canary": "true"}),
        make_node(ResourceType.CONTAINER, "api-a", tags={"app": "api", "tier": "backend"}),
        make_node(ResourceType.CONTAINER, "bare"),
    ]


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def clean_environment():
    """Fixture that cleans CloudGraph environment variables.

    Removes CLOUDGRAPH_* env vars before test and restores after. Also
    clears the cached settings on both sides of the test.
    """
    saved = {k: v for k, v in os.environ.items() if k.upper().startswith("CLOUDGRAPH_")}
    for key in saved:
        del os.environ[key]
    get_settings.cache_clear()

    yield

    for key in [k for k in os.environ if k.upper().startswith("CLOUDGRAPH_")]:
        del os.environ[key]
    os.environ.update(saved)
    get_settings.cache_clear()
