"""Allowed address pairs for VIP failover.

A machine that takes part in a keepalived VIP must be allowed to send and
receive traffic for that address on its ports. The cluster VIPs are merged
into the allowed address pairs of every port the instance has on the
cluster network.
"""

from __future__ import annotations

import logging

from .clients import AddressPair, NetworkingService
from .models import ClusterObject, MachineObject

logger = logging.getLogger(__name__)


def desired_address_pairs(machine: MachineObject, cluster: ClusterObject) -> list[AddressPair]:
    """Compute the failover addresses for a machine.

    Control-plane VIP first, then ingress VIP; each only when the machine opts
    in and the cluster has published that VIP.
    """
    extensions = machine.spec.extensions
    if extensions is None or extensions.load_balancers is None:
        return []
    cluster_ext = cluster.status.extensions
    if cluster_ext is None or cluster_ext.load_balancers is None:
        return []

    opt_in = extensions.load_balancers
    lbs = cluster_ext.load_balancers
    pairs: list[AddressPair] = []
    if opt_in.control_plane_vip and lbs.control_plane is not None and lbs.control_plane.vip:
        pairs.append(AddressPair(ip_address=lbs.control_plane.vip))
    if opt_in.ingress_vip and lbs.ingress is not None and lbs.ingress.vip:
        pairs.append(AddressPair(ip_address=lbs.ingress.vip))
    return pairs


class AddressPairReconciler:
    """Propagates cluster VIPs onto a machine's ports."""

    def __init__(self, networking: NetworkingService) -> None:
        self._networking = networking

    def reconcile(self, machine: MachineObject | None, cluster: ClusterObject | None) -> int:
        """Merge desired pairs into the instance's ports.

        Returns:
            Number of ports visited. Zero when there is nothing to do.
        """
        if machine is None or cluster is None:
            return 0
        instance_id = machine.status.instance_id
        if not instance_id:
            return 0
        network = cluster.status.network
        if network is None or not network.id:
            return 0

        pairs = desired_address_pairs(machine, cluster)
        if not pairs:
            return 0

        ports = self._networking.list_instance_ports(instance_id, network.id)
        for port in ports:
            self._networking.ensure_allowed_address_pairs(port, pairs)

        logger.debug(
            "Reconciled allowed address pairs",
            extra={
                "machine": machine.name,
                "instance_id": instance_id,
                "ports": len(ports),
                "addresses": [pair.ip_address for pair in pairs],
            },
        )
        return len(ports)
