"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for openstack_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from cluster_extensions.models import ClusterObject, MachineObject  # noqa: E402
from openstack_mock import (  # noqa: E402
    CLUSTER_NETWORK_ID,
    CLUSTER_SUBNET_CIDR,
    CLUSTER_SUBNET_ID,
    CONTROL_PLANE_SG_ID,
    ROUTER_ID,
    WORKER_SG_ID,
    MockCloudContext,
)


def make_cluster(
    plugin: str = "cilium",
    *,
    name: str = "demo",
    namespace: str = "tenant-a",
    **spec_overrides: Any,
) -> ClusterObject:
    """Build a cluster record whose status points at the mock cluster network."""
    spec: dict[str, Any] = {
        "tags": ["team-a"],
        "podCIDRBlocks": ["172.16.0.0/16"],
        "bastion": {"enabled": True},
        "extensions": {"networking": {"kubeNetworkPlugin": plugin}},
    }
    if plugin == "flannel":
        spec["extensions"]["networkInterfaces"] = {"flannel": "eth1"}
    spec.update(spec_overrides)
    return ClusterObject.model_validate(
        {
            "name": name,
            "namespace": namespace,
            "spec": spec,
            "status": {
                "network": {
                    "id": CLUSTER_NETWORK_ID,
                    "name": "cluster-network",
                    "subnets": [
                        {"id": CLUSTER_SUBNET_ID, "name": "cluster-subnet", "cidr": CLUSTER_SUBNET_CIDR}
                    ],
                },
                "router": {"id": ROUTER_ID},
                "controlPlaneSecurityGroup": {"id": CONTROL_PLANE_SG_ID},
                "workerSecurityGroup": {"id": WORKER_SG_ID},
                "bastion": {"id": "bastion-1", "ip": "10.0.0.5", "floatingIP": "203.0.113.9"},
            },
        }
    )


def make_machine(
    instance_id: str | None = "instance-1",
    *,
    control_plane_vip: bool = True,
    ingress_vip: bool = False,
) -> MachineObject:
    return MachineObject.model_validate(
        {
            "name": "demo-control-plane-0",
            "namespace": "tenant-a",
            "spec": {
                "extensions": {
                    "loadBalancers": {
                        "controlPlaneVIP": control_plane_vip,
                        "ingressVIP": ingress_vip,
                    }
                }
            },
            "status": {"instanceID": instance_id},
        }
    )


@pytest.fixture
def cloud() -> Generator[MockCloudContext, None, None]:
    """Mock backends with a cluster network and a published public VIP."""
    with MockCloudContext(public_vip="203.0.113.5") as ctx:
        yield ctx


@pytest.fixture
def cluster() -> ClusterObject:
    return make_cluster()
