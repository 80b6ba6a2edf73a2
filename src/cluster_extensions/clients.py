"""Collaborator contracts consumed by the extension reconcilers.

The reconcilers never talk to a cloud SDK or the Kubernetes API directly.
They depend on the protocols below, which are implemented by the
openstacksdk and kubernetes adapters in production and by in-memory
fakes in tests.

Every list operation accepts a filter mapping and returns zero or more
records. Every create operation is single-attempt: implementations must not
retry internally and must raise AlreadyExistsError when the backend reports
a conflict.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class ResourceKind(str, Enum):
    """Network resource kinds handled by the generic ensure primitive.

    Values match the resource collection names used for tag replacement.
    """

    NETWORK = "networks"
    SUBNET = "subnets"
    SECURITY_GROUP = "security-groups"
    PORT = "ports"


# =============================================================================
# Records
# =============================================================================


@dataclass
class CloudResource:
    """A network, subnet or security group as returned by the backend."""

    id: str
    name: str = ""
    tags: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FixedIP:
    """An address assigned to a port on a given subnet."""

    ip_address: str
    subnet_id: str = ""


@dataclass(frozen=True)
class AddressPair:
    """An allowed address pair on a port."""

    ip_address: str
    mac_address: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"ip_address": self.ip_address}
        if self.mac_address:
            data["mac_address"] = self.mac_address
        return data


@dataclass
class Port(CloudResource):
    """A network port."""

    network_id: str = ""
    description: str = ""
    device_id: str = ""
    device_owner: str = ""
    admin_state_up: bool = True
    fixed_ips: list[FixedIP] = field(default_factory=list)
    allowed_address_pairs: list[AddressPair] = field(default_factory=list)
    security_group_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SecurityGroupRule:
    """A security group rule. None means "any" for the match fields."""

    id: str
    security_group_id: str
    direction: str
    ethertype: str = "IPv4"
    protocol: str | None = None
    port_range_min: int | None = None
    port_range_max: int | None = None
    remote_ip_prefix: str | None = None
    remote_group_id: str | None = None


@dataclass(frozen=True)
class AuthenticatedUser:
    """The user behind the current authentication result."""

    id: str
    name: str = ""


@dataclass(frozen=True)
class ApplicationCredential:
    """A freshly issued application credential. The secret is only returned once."""

    id: str
    secret: str
    name: str = ""


@dataclass(frozen=True)
class ConfigKey:
    """Address of an externally owned, loosely typed configuration object.

    An empty namespace addresses a cluster-scoped object.
    """

    group: str
    version: str
    resource: str
    namespace: str
    name: str

    def __str__(self) -> str:
        scope = f"{self.namespace}/" if self.namespace else ""
        return f"{self.resource}.{self.group}/{self.version} {scope}{self.name}"


# =============================================================================
# Protocols
# =============================================================================


class CloudNetworkAPI(Protocol):
    """Network service operations."""

    def list_networks(self, filters: dict[str, Any]) -> list[CloudResource]: ...

    def create_network(self, spec: dict[str, Any]) -> CloudResource: ...

    def list_subnets(self, filters: dict[str, Any]) -> list[CloudResource]: ...

    def create_subnet(self, spec: dict[str, Any]) -> CloudResource: ...

    def list_security_groups(self, filters: dict[str, Any]) -> list[CloudResource]: ...

    def create_security_group(self, spec: dict[str, Any]) -> CloudResource: ...

    def list_ports(self, filters: dict[str, Any]) -> list[Port]: ...

    def create_port(self, spec: dict[str, Any]) -> Port: ...

    def update_port(self, port_id: str, changes: dict[str, Any]) -> Port: ...

    def add_router_interface(self, router_id: str, subnet_id: str) -> None: ...

    def replace_resource_tags(
        self, kind: ResourceKind, resource_id: str, tags: Sequence[str]
    ) -> list[str]: ...

    def list_security_group_rules(self, filters: dict[str, Any]) -> list[SecurityGroupRule]: ...

    def create_security_group_rule(self, spec: dict[str, Any]) -> SecurityGroupRule: ...


class CloudIdentityAPI(Protocol):
    """Identity service operations available to the acting user."""

    @property
    def identity_endpoint(self) -> str: ...

    @property
    def region_name(self) -> str: ...

    def current_authenticated_user(self) -> AuthenticatedUser | None: ...

    def create_application_credential(
        self, user_id: str, name: str, description: str
    ) -> ApplicationCredential: ...


class SecretStore(Protocol):
    """Named secret storage.

    get() raises NotFoundError when the secret is absent.
    create() raises AlreadyExistsError when a secret with that name exists.
    """

    def get(self, namespace: str, name: str) -> dict[str, bytes]: ...

    def create(
        self,
        namespace: str,
        name: str,
        data: dict[str, bytes],
        labels: dict[str, str],
    ) -> None: ...


class StructuredConfigReader(Protocol):
    """Reads one scalar string field out of an external configuration object.

    A missing object or missing field yields an empty string. A field that
    exists but is not a string raises ExtensionsError.
    """

    def read_field(self, key: ConfigKey, field_path: Sequence[str]) -> str: ...


class NetworkingService(Protocol):
    """Higher-level network operations built on CloudNetworkAPI."""

    def list_instance_ports(self, instance_id: str, network_id: str) -> list[Port]: ...

    def ensure_allowed_address_pairs(self, port: Port, pairs: Sequence[AddressPair]) -> Port: ...

    def ensure_allow_all_security_group_rules(self, group_id: str) -> None: ...


class ClientScope(Protocol):
    """Authenticated session for one cloud project.

    identity_client() raises BackendUnavailableError when identity operations
    cannot be performed with the current credentials.
    """

    def project_id(self) -> str: ...

    def service_endpoint(self, service: str) -> str: ...

    def network_client(self) -> CloudNetworkAPI: ...

    def networking_service(self) -> NetworkingService: ...

    def identity_client(self) -> CloudIdentityAPI: ...
