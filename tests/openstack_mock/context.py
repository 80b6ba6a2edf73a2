"""Mock cloud context for integration testing.

Provides a context manager that wires the mock backends together and patches
backend construction in the entry points.
"""

from __future__ import annotations

from typing import Any
from unittest import mock

from cluster_extensions.clients import ConfigKey
from cluster_extensions.config import Config

from .identity import MockClientScope, MockIdentityClient
from .kube import MockConfigReader, MockSecretStore
from .network import MockNetworkClient, MockNetworkState

CLUSTER_NETWORK_ID = "net-cluster"
CLUSTER_SUBNET_ID = "subnet-cluster"
CLUSTER_SUBNET_CIDR = "10.0.0.0/24"
CONTROL_PLANE_SG_ID = "sg-control-plane"
WORKER_SG_ID = "sg-worker"
ROUTER_ID = "router-1"


class MockCloudContext:
    """Context manager for backend mocking in integration tests.

    Patches:
    - cluster_extensions.main.build_backends -> the mock scope, store and reader

    Pre-populates a cluster network with one subnet so VIP ports get addresses
    (10.0.0.10, 10.0.0.11, ...).

    Usage:
        with MockCloudContext(public_vip="203.0.113.5") as ctx:
            reconciler = ClusterExtensionsReconciler(
                ctx.scope, ctx.secrets, ctx.config_reader, ctx.config
            )
            reconciler.reconcile(cluster)
            assert ctx.network.create_count() == 2
    """

    def __init__(
        self,
        *,
        public_vip: str | None = None,
        identity_available: bool = True,
        user_id: str | None = "user-0001",
        endpoints: dict[str, str] | None = None,
        config: Config | None = None,
    ) -> None:
        self.config = config or Config()
        self.state = MockNetworkState()
        self.state.add_network("cluster-network", network_id=CLUSTER_NETWORK_ID)
        self.state.add_subnet(
            CLUSTER_NETWORK_ID, CLUSTER_SUBNET_CIDR, name="cluster-subnet", subnet_id=CLUSTER_SUBNET_ID
        )

        self.network = MockNetworkClient(self.state)
        self.identity = MockIdentityClient(user_id=user_id)
        self.scope = MockClientScope(
            self.network,
            self.identity,
            endpoints=endpoints,
            identity_available=identity_available,
        )
        self.secrets = MockSecretStore()
        self.config_reader = MockConfigReader()
        if public_vip is not None:
            self.set_public_vip(public_vip)

        self._patches: list[Any] = []

    @property
    def public_vip_key(self) -> ConfigKey:
        return self.config.public_vip_key

    def set_public_vip(self, address: str) -> None:
        """Store the external cluster config object carrying the public VIP."""
        obj: dict[str, Any] = {}
        current = obj
        path = self.config.public_vip_path
        for segment in path[:-1]:
            current = current.setdefault(segment, {})
        current[path[-1]] = address
        self.config_reader.objects[self.public_vip_key] = obj

    def __enter__(self) -> MockCloudContext:
        """Enter the mock context, applying patches."""
        backends_patch = mock.patch(
            "cluster_extensions.main.build_backends",
            return_value=(self.scope, self.secrets, self.config_reader),
        )
        self._patches.append(backends_patch)

        for patch in self._patches:
            patch.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit the mock context, removing patches."""
        for patch in reversed(self._patches):
            patch.stop()
        self._patches.clear()
