"""Overlay network stack for VPC-native CNI plugins.

When a cluster selects the Cilium plugin, pods get addresses from a dedicated
cloud network. This module ensures that stack exists:
1. A security group that allows all traffic (the CNI's trust boundary)
2. A network and subnet sized from the first pod CIDR block
3. A router interface binding the subnet to the cluster router

Each step is idempotent on its own. The resulting IDs are published into
the cluster's extensions status; once set they are not re-verified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .clients import ClientScope, CloudNetworkAPI, ResourceKind
from .ensurer import ResourceEnsurer
from .errors import PrerequisiteNotReadyError
from .helpers import cluster_resource_name, deduplicate_strings
from .models import (
    KUBE_NETWORK_PLUGIN_CILIUM,
    CiliumNetworkingStatus,
    ClusterObject,
    ExtensionsStatus,
    NetworkingExtensionsStatus,
)

logger = logging.getLogger(__name__)

ROUTER_INTERFACE_OWNER = "network:router_interface"
CNI_TAG = "vpc-cni"


@dataclass(frozen=True)
class CNINetworkConfig:
    """Derived names and inputs for the overlay stack."""

    network_name: str
    subnet_cidr: str
    router_id: str
    tags: list[str] = field(default_factory=list)

    @property
    def subnet_name(self) -> str:
        return f"{self.network_name}-subnet"


def requires_overlay_network(cluster: ClusterObject) -> bool:
    """Whether the selected network plugin needs the overlay stack."""
    extensions = cluster.spec.extensions
    if extensions is None:
        return False
    return extensions.network_plugin.lower() == KUBE_NETWORK_PLUGIN_CILIUM


def security_group_name(cluster: ClusterObject) -> str:
    return f"{cluster_resource_name(cluster)}-vpc-cni-secgroup"


def build_cni_config(cluster: ClusterObject) -> CNINetworkConfig:
    """Derive the overlay network inputs from the cluster record.

    Raises:
        PrerequisiteNotReadyError: If no pod CIDR is configured or the router is not ready.
    """
    base_name = cluster_resource_name(cluster)
    cidr_blocks = cluster.spec.pod_cidr_blocks
    if not cidr_blocks or not cidr_blocks[0]:
        raise PrerequisiteNotReadyError(
            "pod CIDR blocks",
            "pod CIDR blocks are not configured, cannot size the VPC CNI subnet",
        )

    router_id = cluster.status.router.id if cluster.status.router is not None else ""
    if not router_id:
        raise PrerequisiteNotReadyError(
            "router", "router ID is not ready, cannot bind the VPC CNI subnet"
        )

    return CNINetworkConfig(
        network_name=f"{base_name}-vpc-cni",
        subnet_cidr=cidr_blocks[0],
        router_id=router_id,
        tags=deduplicate_strings(cluster.spec.tags, CNI_TAG, base_name),
    )


def ensure_router_interface(network_client: CloudNetworkAPI, router_id: str, subnet_id: str) -> bool:
    """Attach subnet_id to router_id unless an existing router port already binds it.

    Returns:
        True if an interface was added.
    """
    if not router_id or not subnet_id:
        return False

    router_ports = network_client.list_ports(
        {"device_id": router_id, "device_owner": ROUTER_INTERFACE_OWNER}
    )
    for port in router_ports:
        if any(ip.subnet_id == subnet_id for ip in port.fixed_ips):
            return False

    network_client.add_router_interface(router_id, subnet_id)
    logger.info(
        "Added router interface",
        extra={"router_id": router_id, "subnet_id": subnet_id},
    )
    return True


class NetworkingExtensionReconciler:
    """Builds the CNI network, subnet, security group and router binding."""

    def __init__(self, scope: ClientScope) -> None:
        self._scope = scope

    def reconcile(self, cluster: ClusterObject, ext: ExtensionsStatus) -> None:
        """Publish the overlay stack into ext.networking.cilium.

        No-op when the plugin does not need the overlay stack.
        """
        if not requires_overlay_network(cluster):
            return

        if ext.networking is None:
            ext.networking = NetworkingExtensionsStatus()
        if ext.networking.cilium is None:
            ext.networking.cilium = CiliumNetworkingStatus()
        cilium = ext.networking.cilium

        cilium.project_id = self._scope.project_id()

        if not cilium.security_group_ids:
            cilium.security_group_ids = [self.reconcile_security_group(cluster)]

        if not cilium.default_subnet_id:
            subnet_id = self.reconcile_network(cluster)
            if subnet_id:
                cilium.default_subnet_id = subnet_id

    def reconcile_security_group(self, cluster: ClusterObject) -> str:
        """Ensure the CNI security group exists and allows all traffic."""
        name = security_group_name(cluster)
        ensurer = ResourceEnsurer(self._scope.network_client())
        group_id = ensurer.ensure(
            ResourceKind.SECURITY_GROUP,
            {"name": name},
            {"name": name, "description": f"VPC CNI security group for {name}"},
        )
        self._scope.networking_service().ensure_allow_all_security_group_rules(group_id)
        return group_id

    def reconcile_network(self, cluster: ClusterObject) -> str:
        """Ensure the CNI network, subnet and router interface. Returns the subnet ID."""
        extensions = cluster.spec.extensions
        if extensions is None or extensions.networking is None:
            return ""

        cfg = build_cni_config(cluster)
        network_client = self._scope.network_client()
        ensurer = ResourceEnsurer(network_client)

        network_id = ensurer.ensure(
            ResourceKind.NETWORK,
            {"name": cfg.network_name},
            {"name": cfg.network_name, "admin_state_up": True},
            tags=cfg.tags,
        )
        subnet_id = ensurer.ensure(
            ResourceKind.SUBNET,
            {"network_id": network_id, "cidr": cfg.subnet_cidr},
            {
                "network_id": network_id,
                "name": cfg.subnet_name,
                "ip_version": 4,
                "cidr": cfg.subnet_cidr,
                "enable_dhcp": False,
                "description": f"VPC CNI subnet for {cfg.network_name}",
            },
        )
        ensure_router_interface(network_client, cfg.router_id, subnet_id)
        return subnet_id
