"""Load balancer VIPs for the cluster extensions status.

Control-plane and ingress traffic are fronted by keepalived VIPs, each backed
by a reserved port on the cluster network. The public (floating) control-plane
address is owned elsewhere and read from an external configuration object.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .clients import ConfigKey, StructuredConfigReader
from .helpers import (
    cluster_resource_name,
    collect_control_plane_security_groups,
    deduplicate_strings,
)
from .models import (
    ClusterObject,
    ExtensionsStatus,
    LoadBalancersExtensionsStatus,
    OpenStackExtensionsStatus,
    VIPStatus,
)
from .vip import VIPPortProvisioner

logger = logging.getLogger(__name__)

KEEPALIVED_TAG = "keepalived"
ROLE_CONTROL_PLANE = "controlplane"
ROLE_INGRESS = "ingress"

# Role tag -> human readable prefix for the port description
KEEPALIVED_ROLES: dict[str, str] = {
    ROLE_CONTROL_PLANE: "Control plane",
    ROLE_INGRESS: "Ingress",
}


class LoadBalancerStatusReconciler:
    """Ensures keepalived VIP ports and records their addresses."""

    def __init__(
        self,
        provisioner: VIPPortProvisioner,
        config_reader: StructuredConfigReader | None,
        public_vip_key: ConfigKey,
        public_vip_path: Sequence[str],
    ) -> None:
        self._provisioner = provisioner
        self._config_reader = config_reader
        self._public_vip_key = public_vip_key
        self._public_vip_path = tuple(public_vip_path)

    def reconcile(self, cluster: ClusterObject, ext: ExtensionsStatus) -> None:
        """Publish control-plane, ingress, harbor and public VIPs.

        Raises:
            PrerequisiteNotReadyError: If the cluster network is not ready.
            NoFixedIPError: If a VIP port has no address.
        """
        if ext.load_balancers is None:
            ext.load_balancers = LoadBalancersExtensionsStatus()
        if ext.open_stack is None:
            ext.open_stack = OpenStackExtensionsStatus()
        lbs = ext.load_balancers

        if lbs.control_plane is None:
            lbs.control_plane = VIPStatus()
        control_plane_ip = self.ensure_keepalived_port(cluster, ROLE_CONTROL_PLANE)
        if control_plane_ip:
            lbs.control_plane.vip = control_plane_ip

        ext.open_stack.mgmt = self.resolve_public_vip()

        if lbs.ingress is None:
            lbs.ingress = VIPStatus()
        ingress_ip = self.ensure_keepalived_port(cluster, ROLE_INGRESS)
        if ingress_ip:
            lbs.ingress.vip = ingress_ip

        if lbs.harbor is None:
            lbs.harbor = VIPStatus()
        lbs.harbor.vip = ingress_ip

    def ensure_keepalived_port(self, cluster: ClusterObject, role: str) -> str:
        """Ensure the keepalived port for a role and return its address."""
        base_name = cluster_resource_name(cluster)
        network = cluster.status.network
        return self._provisioner.ensure_port(
            name=f"{base_name}-{role}-keepalived",
            description=f"{KEEPALIVED_ROLES[role]} keepalived VIP port for cluster {base_name}",
            network_id=network.id if network is not None else "",
            tags=deduplicate_strings(cluster.spec.tags, KEEPALIVED_TAG, base_name, role),
            security_groups=collect_control_plane_security_groups(cluster),
        )

    def resolve_public_vip(self) -> str:
        """Read the public VIP from the external config object.

        Any failure is logged and yields an empty string.
        """
        if self._config_reader is None:
            logger.warning(
                "Failed to fetch cluster config public VIP",
                extra={"config": str(self._public_vip_key), "error": "config reader not configured"},
            )
            return ""
        try:
            return self._config_reader.read_field(self._public_vip_key, self._public_vip_path)
        except Exception as e:
            logger.warning(
                "Failed to fetch cluster config public VIP",
                extra={"config": str(self._public_vip_key), "error": str(e)},
            )
            return ""
