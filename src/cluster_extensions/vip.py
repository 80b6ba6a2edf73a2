"""VIP port provisioning.

A VIP port only reserves an address on the cluster network. It is created
administratively down and never carries traffic itself; machines take over
the address through allowed address pairs.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .clients import Port, ResourceKind
from .ensurer import ResourceEnsurer
from .errors import NoFixedIPError, PrerequisiteNotReadyError

logger = logging.getLogger(__name__)


class VIPPortProvisioner:
    """Guarantees a named port exists on a network and returns its address."""

    def __init__(self, ensurer: ResourceEnsurer) -> None:
        self._ensurer = ensurer

    def ensure_port(
        self,
        name: str,
        description: str,
        network_id: str,
        tags: Sequence[str],
        security_groups: Sequence[str],
    ) -> str:
        """Ensure the VIP port exists and return its first fixed address.

        Args:
            name: Port name, also the idempotency key.
            description: Port description used on create.
            network_id: Network the port lives on.
            tags: Tags applied after creation.
            security_groups: Security groups for the port. Empty means backend default.

        Returns:
            The first fixed IP address of the port.

        Raises:
            PrerequisiteNotReadyError: If network_id or name is empty.
            NoFixedIPError: If the port has no assigned address.
        """
        if not network_id:
            raise PrerequisiteNotReadyError("cluster network", "cluster network is not ready")
        if not name:
            raise PrerequisiteNotReadyError(
                "keepalived port name", "keepalived port name must be provided"
            )

        create_spec: dict[str, object] = {
            "name": name,
            "description": description,
            "network_id": network_id,
            "admin_state_up": False,
        }
        if security_groups:
            create_spec["security_group_ids"] = list(security_groups)

        port = self._ensurer.ensure_resource(
            ResourceKind.PORT,
            {"name": name, "network_id": network_id},
            create_spec,
            tags=tags,
        )
        fixed_ips = port.fixed_ips if isinstance(port, Port) else []
        if not fixed_ips or not fixed_ips[0].ip_address:
            raise NoFixedIPError(port.id)

        address = fixed_ips[0].ip_address
        logger.debug("Resolved VIP port", extra={"port_id": port.id, "address": address})
        return address
