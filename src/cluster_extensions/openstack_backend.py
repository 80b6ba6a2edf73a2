"""openstacksdk adapters for the cloud collaborator contracts.

Library exceptions are translated at this boundary:
- ConflictException -> AlreadyExistsError
- NotFoundException (incl. ResourceNotFound) -> NotFoundError
Everything else propagates unchanged and is treated as transient.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import openstack
from openstack import exceptions as os_exc

from .clients import (
    AddressPair,
    ApplicationCredential,
    AuthenticatedUser,
    CloudResource,
    FixedIP,
    Port,
    ResourceKind,
    SecurityGroupRule,
)
from .errors import AlreadyExistsError, BackendUnavailableError, NotFoundError
from .networking import NetworkingService

logger = logging.getLogger(__name__)

# Service name -> catalog service type
SERVICE_TYPES: dict[str, str] = {
    "keystone": "identity",
    "cinder": "block-storage",
    "nova": "compute",
    "neutron": "network",
}

# Auth plugins that cannot create application credentials
RESTRICTED_AUTH_TYPES: tuple[str, ...] = ("v3applicationcredential", "v3token", "token")

# Resource kind -> network proxy getter used before replacing tags
TAGGABLE_GETTERS: dict[ResourceKind, str] = {
    ResourceKind.NETWORK: "get_network",
    ResourceKind.SUBNET: "get_subnet",
    ResourceKind.SECURITY_GROUP: "get_security_group",
    ResourceKind.PORT: "get_port",
}


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Map openstacksdk conflict and not-found errors onto the domain taxonomy."""
    try:
        yield
    except os_exc.ConflictException as e:
        raise AlreadyExistsError(f"{operation}: {e}") from e
    except os_exc.NotFoundException as e:
        raise NotFoundError(f"{operation}: {e}") from e


def _to_resource(obj: Any) -> CloudResource:
    return CloudResource(
        id=obj.id,
        name=obj.name or "",
        tags=list(getattr(obj, "tags", None) or []),
    )


def _to_port(obj: Any) -> Port:
    return Port(
        id=obj.id,
        name=obj.name or "",
        tags=list(obj.tags or []),
        network_id=obj.network_id or "",
        description=obj.description or "",
        device_id=obj.device_id or "",
        device_owner=obj.device_owner or "",
        admin_state_up=bool(obj.is_admin_state_up),
        fixed_ips=[
            FixedIP(ip_address=ip.get("ip_address", ""), subnet_id=ip.get("subnet_id", ""))
            for ip in obj.fixed_ips or []
        ],
        allowed_address_pairs=[
            AddressPair(ip_address=pair.get("ip_address", ""), mac_address=pair.get("mac_address") or "")
            for pair in obj.allowed_address_pairs or []
        ],
        security_group_ids=list(obj.security_group_ids or []),
    )


def _to_rule(obj: Any) -> SecurityGroupRule:
    return SecurityGroupRule(
        id=obj.id,
        security_group_id=obj.security_group_id,
        direction=obj.direction,
        ethertype=obj.ether_type or "IPv4",
        protocol=obj.protocol,
        port_range_min=obj.port_range_min,
        port_range_max=obj.port_range_max,
        remote_ip_prefix=obj.remote_ip_prefix,
        remote_group_id=obj.remote_group_id,
    )


class OpenStackNetworkClient:
    """CloudNetworkAPI backed by the openstacksdk network proxy."""

    def __init__(self, conn: openstack.connection.Connection) -> None:
        self._conn = conn

    def list_networks(self, filters: dict[str, Any]) -> list[CloudResource]:
        with translate_errors("list networks"):
            return [_to_resource(n) for n in self._conn.network.networks(**filters)]

    def create_network(self, spec: dict[str, Any]) -> CloudResource:
        with translate_errors(f"create network {spec.get('name', '')}"):
            return _to_resource(self._conn.network.create_network(**spec))

    def list_subnets(self, filters: dict[str, Any]) -> list[CloudResource]:
        with translate_errors("list subnets"):
            return [_to_resource(s) for s in self._conn.network.subnets(**filters)]

    def create_subnet(self, spec: dict[str, Any]) -> CloudResource:
        with translate_errors(f"create subnet {spec.get('cidr', '')}"):
            return _to_resource(self._conn.network.create_subnet(**spec))

    def list_security_groups(self, filters: dict[str, Any]) -> list[CloudResource]:
        with translate_errors("list security groups"):
            return [_to_resource(g) for g in self._conn.network.security_groups(**filters)]

    def create_security_group(self, spec: dict[str, Any]) -> CloudResource:
        with translate_errors(f"create security group {spec.get('name', '')}"):
            return _to_resource(self._conn.network.create_security_group(**spec))

    def list_ports(self, filters: dict[str, Any]) -> list[Port]:
        with translate_errors("list ports"):
            return [_to_port(p) for p in self._conn.network.ports(**filters)]

    def create_port(self, spec: dict[str, Any]) -> Port:
        with translate_errors(f"create port {spec.get('name', '')}"):
            return _to_port(self._conn.network.create_port(**spec))

    def update_port(self, port_id: str, changes: dict[str, Any]) -> Port:
        with translate_errors(f"update port {port_id}"):
            return _to_port(self._conn.network.update_port(port_id, **changes))

    def add_router_interface(self, router_id: str, subnet_id: str) -> None:
        with translate_errors(f"add subnet {subnet_id} to router {router_id}"):
            self._conn.network.add_interface_to_router(router_id, subnet_id=subnet_id)

    def replace_resource_tags(
        self, kind: ResourceKind, resource_id: str, tags: Sequence[str]
    ) -> list[str]:
        with translate_errors(f"replace tags on {kind.value} {resource_id}"):
            resource = getattr(self._conn.network, TAGGABLE_GETTERS[kind])(resource_id)
            updated = self._conn.network.set_tags(resource, list(tags))
        return list(getattr(updated, "tags", None) or tags)

    def list_security_group_rules(self, filters: dict[str, Any]) -> list[SecurityGroupRule]:
        with translate_errors("list security group rules"):
            return [_to_rule(r) for r in self._conn.network.security_group_rules(**filters)]

    def create_security_group_rule(self, spec: dict[str, Any]) -> SecurityGroupRule:
        with translate_errors(f"create rule in security group {spec.get('security_group_id', '')}"):
            return _to_rule(self._conn.network.create_security_group_rule(**spec))


class OpenStackIdentityClient:
    """CloudIdentityAPI backed by the openstacksdk identity proxy."""

    def __init__(self, conn: openstack.connection.Connection) -> None:
        self._conn = conn

    @property
    def identity_endpoint(self) -> str:
        return self._conn.auth.get("auth_url", "") or ""

    @property
    def region_name(self) -> str:
        return self._conn.config.region_name or ""

    def current_authenticated_user(self) -> AuthenticatedUser | None:
        user_id = self._conn.current_user_id
        if not user_id:
            return None
        return AuthenticatedUser(id=user_id)

    def create_application_credential(
        self, user_id: str, name: str, description: str
    ) -> ApplicationCredential:
        with translate_errors(f"create application credential {name}"):
            credential = self._conn.identity.create_application_credential(
                user=user_id, name=name, description=description
            )
        return ApplicationCredential(id=credential.id, secret=credential.secret, name=credential.name)


class OpenStackScope:
    """ClientScope over a single openstacksdk connection."""

    def __init__(self, conn: openstack.connection.Connection) -> None:
        self._conn = conn

    @classmethod
    def from_cloud(cls, cloud_name: str) -> OpenStackScope:
        """Connect using a named clouds.yaml entry."""
        logger.info("Connecting to OpenStack", extra={"cloud": cloud_name})
        return cls(openstack.connect(cloud=cloud_name))

    def project_id(self) -> str:
        return self._conn.current_project_id or ""

    def service_endpoint(self, service: str) -> str:
        service_type = SERVICE_TYPES.get(service)
        if service_type is None:
            raise ValueError(f"unknown service {service!r}, valid: {list(SERVICE_TYPES)}")
        return self._conn.endpoint_for(service_type) or ""

    def network_client(self) -> OpenStackNetworkClient:
        return OpenStackNetworkClient(self._conn)

    def networking_service(self) -> NetworkingService:
        return NetworkingService(self.network_client())

    def identity_client(self) -> OpenStackIdentityClient:
        """Identity client for issuing application credentials.

        Raises:
            BackendUnavailableError: If the session authenticates with a method
                that cannot create application credentials, or the catalog has
                no identity endpoint.
        """
        auth_type = (self._conn.config.config.get("auth_type") or "").lower()
        if auth_type in RESTRICTED_AUTH_TYPES:
            raise BackendUnavailableError(
                f"identity operations unavailable with auth type {auth_type}"
            )
        if not self._conn.endpoint_for("identity"):
            raise BackendUnavailableError("no identity endpoint in service catalog")
        return OpenStackIdentityClient(self._conn)
