"""OpenStack and Kubernetes API mocks for integration testing.

This module provides in-memory implementations of the collaborator contracts
so reconcile passes can be tested without cloud connectivity.

Key Features:
- In-memory network state with automatic fixed IP allocation
- Call counting for idempotence assertions
- Error injection and create-race simulation
- Identity availability and missing-user simulation
- Secret store and external config reader

Usage:
    from openstack_mock import MockCloudContext

    with MockCloudContext(public_vip="203.0.113.5") as ctx:
        ...
        assert ctx.network.calls["create_port"] == 2
"""

from .context import (
    CLUSTER_NETWORK_ID,
    CLUSTER_SUBNET_CIDR,
    CLUSTER_SUBNET_ID,
    CONTROL_PLANE_SG_ID,
    ROUTER_ID,
    WORKER_SG_ID,
    MockCloudContext,
)
from .identity import MockClientScope, MockIdentityClient
from .kube import MockConfigReader, MockSecretStore, StoredSecret
from .network import MockNetworkClient, MockNetworkState

__all__ = [
    "CLUSTER_NETWORK_ID",
    "CLUSTER_SUBNET_CIDR",
    "CLUSTER_SUBNET_ID",
    "CONTROL_PLANE_SG_ID",
    "ROUTER_ID",
    "WORKER_SG_ID",
    "MockClientScope",
    "MockCloudContext",
    "MockConfigReader",
    "MockIdentityClient",
    "MockNetworkClient",
    "MockNetworkState",
    "MockSecretStore",
    "StoredSecret",
]
