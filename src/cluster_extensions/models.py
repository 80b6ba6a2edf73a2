"""Pydantic models for cluster and machine records.

These models provide:
1. Type-safe YAML parsing of the desired-state records
2. Validation at the boundary (fail fast, fail loudly)
3. The extensions status record published for bootstrap tooling

Field aliases follow the camelCase names used in the serialized records.
Serialize with model_dump(by_alias=True, exclude_none=True).
"""

from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

KUBE_NETWORK_PLUGIN_CILIUM = "cilium"
KUBE_NETWORK_PLUGIN_FLANNEL = "flannel"
SUPPORTED_NETWORK_PLUGINS = (KUBE_NETWORK_PLUGIN_CILIUM, KUBE_NETWORK_PLUGIN_FLANNEL)

MEMORY_RESERVED_PATTERN = r"^-[0-9]+$"


class _Record(BaseModel):
    """Base for all records: unknown fields ignored, populate by name or alias."""

    model_config = {"extra": "ignore", "populate_by_name": True}


# =============================================================================
# Extensions Status
# =============================================================================


class VIPStatus(_Record):
    """A virtual IP backed by a reserved port."""

    vip: str = ""


class CiliumNetworkingStatus(_Record):
    project_id: str = Field("", alias="projectID")
    default_subnet_id: str = Field("", alias="defaultSubnetID")
    security_group_ids: list[str] = Field(default_factory=list, alias="securityGroupIDs")
    webhook_enable: bool | None = Field(None, alias="webhookEnable")


class NetworkingExtensionsStatus(_Record):
    cilium: CiliumNetworkingStatus | None = None


class LoadBalancersExtensionsStatus(_Record):
    control_plane: VIPStatus | None = Field(None, alias="controlPlane")
    ingress: VIPStatus | None = None
    # Shares the ingress front end.
    harbor: VIPStatus | None = None


class PlatformNTPStatus(_Record):
    server: str = ""


class PlatformManagementStatus(_Record):
    vip: str = ""


class PlatformExtensionsStatus(_Record):
    ntp: PlatformNTPStatus | None = None
    management: PlatformManagementStatus | None = None


class AppCredentialStatus(_Record):
    """Reference to the secret holding the cluster's application credential."""

    ref: str = ""


class OpenStackExtensionsStatus(_Record):
    mgmt: str = ""
    keystone: str = ""
    cinder: str = ""
    nova: str = ""
    neutron: str = ""
    project: str = ""
    project_domain: str = Field("", alias="projectDomain")
    app_credential: AppCredentialStatus | None = Field(None, alias="appCredential")
    region: str = ""


class EndpointsExtensionsStatus(_Record):
    """Service endpoint hosts, one per catalog service."""

    keystone: str = ""
    cinder: str = ""
    nova: str = ""
    neutron: str = ""


class ExtensionsStatus(_Record):
    """Infrastructure facts surfaced for bootstrap and config tooling.

    Sub-records are None until the first reconcile pass touches them.
    After that they are never reset to None.
    """

    networking: NetworkingExtensionsStatus | None = None
    load_balancers: LoadBalancersExtensionsStatus | None = Field(None, alias="loadBalancers")
    platform: PlatformExtensionsStatus | None = None
    open_stack: OpenStackExtensionsStatus | None = Field(None, alias="openStack")
    endpoints: EndpointsExtensionsStatus | None = None


# =============================================================================
# Cluster
# =============================================================================


class NetworkingExtensionsSpec(_Record):
    kube_network_plugin: str = Field(alias="kubeNetworkPlugin")

    @field_validator("kube_network_plugin")
    @classmethod
    def validate_plugin(cls, v: str) -> str:
        if v.lower() not in SUPPORTED_NETWORK_PLUGINS:
            raise ValueError(f"kubeNetworkPlugin must be one of {list(SUPPORTED_NETWORK_PLUGINS)}")
        return v


class NetworkInterfacesExtensionsSpec(_Record):
    # Required when kubeNetworkPlugin is flannel.
    flannel: str = ""


class ClusterExtensionsSpec(_Record):
    networking: NetworkingExtensionsSpec | None = None
    network_interfaces: NetworkInterfacesExtensionsSpec | None = Field(
        None, alias="networkInterfaces"
    )

    @model_validator(mode="after")
    def validate_flannel_interface(self) -> ClusterExtensionsSpec:
        if self.networking is None:
            return self
        if self.networking.kube_network_plugin.lower() != KUBE_NETWORK_PLUGIN_FLANNEL:
            return self
        if self.network_interfaces is None or not self.network_interfaces.flannel:
            raise ValueError(
                "networkInterfaces.flannel is required when kubeNetworkPlugin is flannel"
            )
        return self

    @property
    def network_plugin(self) -> str:
        if self.networking is None:
            return ""
        return self.networking.kube_network_plugin


class BastionSpec(_Record):
    # Unset means enabled once the section is present
    enabled: bool | None = None

    @property
    def is_enabled(self) -> bool:
        return self.enabled is not False


class APIServerLoadBalancerSpec(_Record):
    enabled: bool | None = None

    @property
    def is_enabled(self) -> bool:
        return self.enabled is not False


class ControlPlaneEndpoint(_Record):
    host: str = ""
    port: int = 0

    @property
    def is_valid(self) -> bool:
        return bool(self.host) and self.port != 0


class ClusterSpec(_Record):
    """Desired state of a cluster's cloud infrastructure."""

    tags: list[str] = Field(default_factory=list)
    pod_cidr_blocks: list[str] = Field(default_factory=list, alias="podCIDRBlocks")
    extensions: ClusterExtensionsSpec | None = None
    bastion: BastionSpec | None = None
    control_plane_endpoint: ControlPlaneEndpoint | None = Field(None, alias="controlPlaneEndpoint")
    api_server_floating_ip: str | None = Field(None, alias="apiServerFloatingIP")
    api_server_load_balancer: APIServerLoadBalancerSpec | None = Field(
        None, alias="apiServerLoadBalancer"
    )
    disable_external_network: bool = Field(False, alias="disableExternalNetwork")
    disable_api_server_floating_ip: bool = Field(False, alias="disableAPIServerFloatingIP")

    @property
    def bastion_enabled(self) -> bool:
        return self.bastion is not None and self.bastion.is_enabled

    @property
    def api_server_load_balancer_enabled(self) -> bool:
        lb = self.api_server_load_balancer
        return lb is not None and lb.is_enabled


class SubnetStatus(_Record):
    id: str
    name: str = ""
    cidr: str = ""
    tags: list[str] = Field(default_factory=list)


class NetworkStatus(_Record):
    id: str = ""
    name: str = ""
    subnets: list[SubnetStatus] = Field(default_factory=list)


class RouterStatus(_Record):
    id: str = ""
    name: str = ""


class SecurityGroupStatus(_Record):
    id: str = ""
    name: str = ""


class BastionStatus(_Record):
    id: str = ""
    ip: str = ""
    floating_ip: str = Field("", alias="floatingIP")


class ClusterStatus(_Record):
    """Observed state of a cluster, populated by the core infrastructure controller."""

    network: NetworkStatus | None = None
    external_network: NetworkStatus | None = Field(None, alias="externalNetwork")
    router: RouterStatus | None = None
    control_plane_security_group: SecurityGroupStatus | None = Field(
        None, alias="controlPlaneSecurityGroup"
    )
    worker_security_group: SecurityGroupStatus | None = Field(None, alias="workerSecurityGroup")
    bastion_security_group: SecurityGroupStatus | None = Field(
        None, alias="bastionSecurityGroup"
    )
    bastion: BastionStatus | None = None
    extensions: ExtensionsStatus | None = None


class ClusterObject(_Record):
    """A cluster record: identity, desired state and observed state."""

    name: Annotated[str, Field(min_length=1, max_length=253)]
    namespace: str = ""
    spec: ClusterSpec = Field(default_factory=ClusterSpec)
    status: ClusterStatus = Field(default_factory=ClusterStatus)


# =============================================================================
# Machine
# =============================================================================


class MachineLoadBalancersSpec(_Record):
    """VIPs this machine participates in."""

    control_plane_vip: bool = Field(False, alias="controlPlaneVIP")
    ingress_vip: bool = Field(False, alias="ingressVIP")


class MachineNetworkInterfacesSpec(_Record):
    keepalived: str = ""


class MachineMemoryExtensionsSpec(_Record):
    reserved: str = ""

    @field_validator("reserved")
    @classmethod
    def validate_reserved(cls, v: str) -> str:
        if v and not re.match(MEMORY_RESERVED_PATTERN, v):
            raise ValueError(f"reserved must match {MEMORY_RESERVED_PATTERN}")
        return v


class MachineExtensionsSpec(_Record):
    network_interfaces: MachineNetworkInterfacesSpec | None = Field(
        None, alias="networkInterfaces"
    )
    load_balancers: MachineLoadBalancersSpec | None = Field(None, alias="loadBalancers")
    memory: MachineMemoryExtensionsSpec | None = None


class MachineSpec(_Record):
    extensions: MachineExtensionsSpec | None = None


class MachineStatus(_Record):
    instance_id: str | None = Field(None, alias="instanceID")


class MachineObject(_Record):
    """A machine record belonging to a cluster."""

    name: Annotated[str, Field(min_length=1, max_length=253)]
    namespace: str = ""
    spec: MachineSpec = Field(default_factory=MachineSpec)
    status: MachineStatus = Field(default_factory=MachineStatus)
