"""Higher-level network operations on top of CloudNetworkAPI."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .clients import AddressPair, CloudNetworkAPI, Port
from .errors import AlreadyExistsError

logger = logging.getLogger(__name__)

# (direction, ethertype) pairs that together allow all traffic
ALLOW_ALL_RULES: tuple[tuple[str, str], ...] = (
    ("ingress", "IPv4"),
    ("ingress", "IPv6"),
    ("egress", "IPv4"),
    ("egress", "IPv6"),
)


class NetworkingService:
    """Port and security group helpers used by the reconcilers."""

    def __init__(self, network_client: CloudNetworkAPI) -> None:
        self._client = network_client

    def list_instance_ports(self, instance_id: str, network_id: str) -> list[Port]:
        """List the ports a compute instance owns on a network."""
        return self._client.list_ports({"device_id": instance_id, "network_id": network_id})

    def ensure_allowed_address_pairs(self, port: Port, pairs: Sequence[AddressPair]) -> Port:
        """Merge pairs into the port's allowed address pairs.

        The merge is additive: pairs already on the port, including ones not
        in the desired set, are kept. The port is only updated when something
        is missing.
        """
        current = list(port.allowed_address_pairs)
        known = {pair.ip_address for pair in current}
        missing = [pair for pair in pairs if pair.ip_address not in known]
        if not missing:
            return port

        merged = current + missing
        logger.info(
            "Updating allowed address pairs",
            extra={
                "port_id": port.id,
                "added": [pair.ip_address for pair in missing],
            },
        )
        return self._client.update_port(
            port.id, {"allowed_address_pairs": [pair.to_dict() for pair in merged]}
        )

    def ensure_allow_all_security_group_rules(self, group_id: str) -> None:
        """Make the group accept all traffic in both directions for IPv4 and IPv6."""
        existing = self._client.list_security_group_rules({"security_group_id": group_id})
        present = {
            (rule.direction, rule.ethertype)
            for rule in existing
            if rule.protocol is None
            and rule.port_range_min is None
            and rule.port_range_max is None
            and rule.remote_group_id is None
            and rule.remote_ip_prefix in (None, "", "0.0.0.0/0", "::/0")
        }
        for direction, ethertype in ALLOW_ALL_RULES:
            if (direction, ethertype) in present:
                continue
            try:
                self._client.create_security_group_rule(
                    {
                        "security_group_id": group_id,
                        "direction": direction,
                        "ethertype": ethertype,
                    }
                )
            except AlreadyExistsError:
                # The backend already carries an equivalent rule.
                continue
            logger.info(
                "Created allow-all security group rule",
                extra={
                    "security_group_id": group_id,
                    "direction": direction,
                    "ethertype": ethertype,
                },
            )
