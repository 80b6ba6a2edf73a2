"""Top-level reconcile passes for cluster and machine extensions.

A cluster pass runs a fixed sequence of steps:
1. Initialise the extensions status record
2. Load balancer VIPs
3. CNI overlay networking
4. Platform facts
5. Service endpoints
6. Application credential

The first hard error aborts the pass. Nothing is rolled back: resources
already created and status fields already set are reused by the next pass,
since every step re-derives its result from current backend state.

CONCURRENCY:
A pass runs on a single thread and makes blocking backend calls. There is no
locking across passes. Two passes over the same cluster running at the same
time can race on list-then-create and produce duplicates; callers must
serialize passes per object.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .address_pairs import AddressPairReconciler
from .appcred import AppCredentialReconciler
from .clients import ClientScope, SecretStore, StructuredConfigReader
from .cni import NetworkingExtensionReconciler
from .config import Config
from .ensurer import ResourceEnsurer
from .helpers import extract_endpoint_host
from .loadbalancers import LoadBalancerStatusReconciler
from .models import (
    AppCredentialStatus,
    CiliumNetworkingStatus,
    ClusterObject,
    EndpointsExtensionsStatus,
    ExtensionsStatus,
    LoadBalancersExtensionsStatus,
    MachineObject,
    NetworkingExtensionsStatus,
    OpenStackExtensionsStatus,
    PlatformExtensionsStatus,
    PlatformManagementStatus,
)
from .vip import VIPPortProvisioner

logger = logging.getLogger(__name__)


def _set_keystone(endpoints: EndpointsExtensionsStatus, host: str) -> None:
    endpoints.keystone = host


def _set_cinder(endpoints: EndpointsExtensionsStatus, host: str) -> None:
    endpoints.cinder = host


def _set_nova(endpoints: EndpointsExtensionsStatus, host: str) -> None:
    endpoints.nova = host


def _set_neutron(endpoints: EndpointsExtensionsStatus, host: str) -> None:
    endpoints.neutron = host


# Service name -> status setter, in resolution order
ENDPOINT_TARGETS: tuple[tuple[str, Callable[[EndpointsExtensionsStatus, str], None]], ...] = (
    ("keystone", _set_keystone),
    ("cinder", _set_cinder),
    ("nova", _set_nova),
    ("neutron", _set_neutron),
)


@dataclass
class ReconcileResult:
    """Result of a single reconcile pass."""

    cluster: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    steps_completed: list[str] = field(default_factory=list)
    status: ExtensionsStatus | None = None
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if the pass converged without error."""
        return self.error is None


def ensure_extensions_status(cluster: ClusterObject) -> ExtensionsStatus:
    """Materialise every sub-record of the cluster's extensions status.

    Existing values are kept; only missing records are created.
    """
    if cluster.status.extensions is None:
        cluster.status.extensions = ExtensionsStatus()
    ext = cluster.status.extensions
    if ext.load_balancers is None:
        ext.load_balancers = LoadBalancersExtensionsStatus()
    if ext.networking is None:
        ext.networking = NetworkingExtensionsStatus()
    if ext.networking.cilium is None:
        ext.networking.cilium = CiliumNetworkingStatus()
    if ext.open_stack is None:
        ext.open_stack = OpenStackExtensionsStatus()
    if ext.open_stack.app_credential is None:
        ext.open_stack.app_credential = AppCredentialStatus()
    if ext.platform is None:
        ext.platform = PlatformExtensionsStatus()
    if ext.endpoints is None:
        ext.endpoints = EndpointsExtensionsStatus()
    return ext


def reconcile_platform(cluster: ClusterObject, ext: ExtensionsStatus) -> None:
    """Publish the management VIP: the bastion address when a bastion is enabled."""
    if ext.platform is None:
        ext.platform = PlatformExtensionsStatus()
    if ext.platform.management is None:
        ext.platform.management = PlatformManagementStatus()

    bastion = cluster.status.bastion
    if cluster.spec.bastion_enabled and bastion is not None:
        ext.platform.management.vip = bastion.ip
    else:
        ext.platform.management.vip = ""


def reconcile_endpoints(
    scope: ClientScope,
    ext: ExtensionsStatus,
    services: Sequence[str] | None = None,
) -> None:
    """Publish the host of each catalog service endpoint.

    Lookup failures and empty endpoints leave the previous value untouched.
    """
    if ext.endpoints is None:
        ext.endpoints = EndpointsExtensionsStatus()
    wanted = set(services) if services is not None else None

    for service, setter in ENDPOINT_TARGETS:
        if wanted is not None and service not in wanted:
            continue
        try:
            endpoint = scope.service_endpoint(service)
        except Exception as e:
            logger.debug(
                "Failed to resolve service endpoint",
                extra={"service": service, "error": str(e)},
            )
            continue
        if not endpoint:
            continue
        setter(ext.endpoints, extract_endpoint_host(endpoint))


class ClusterExtensionsReconciler:
    """Runs the cluster extensions pass against a set of backends."""

    def __init__(
        self,
        scope: ClientScope,
        secret_store: SecretStore,
        config_reader: StructuredConfigReader | None = None,
        config: Config | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            scope: Authenticated cloud session.
            secret_store: Store for the application credential secret.
            config_reader: Reader for the external cluster config. None disables
                public VIP resolution (logged, not fatal).
            config: Process configuration. Defaults are used when omitted.
        """
        self._config = config or Config()
        self._scope = scope
        self._config_reader = config_reader
        self._networking = NetworkingExtensionReconciler(scope)
        self._app_credential = AppCredentialReconciler(
            scope,
            secret_store,
            secret_suffix=self._config.app_credential_secret_suffix,
            default_namespace=self._config.secret_namespace,
        )

    @property
    def config(self) -> Config:
        return self._config

    def _load_balancers(self) -> LoadBalancerStatusReconciler:
        provisioner = VIPPortProvisioner(ResourceEnsurer(self._scope.network_client()))
        return LoadBalancerStatusReconciler(
            provisioner,
            self._config_reader,
            self._config.public_vip_key,
            self._config.public_vip_path,
        )

    def reconcile(self, cluster: ClusterObject, result: ReconcileResult | None = None) -> ExtensionsStatus:
        """Run one pass, mutating cluster.status.extensions in place.

        Args:
            cluster: Cluster record. Its status is updated as steps complete.
            result: Optional result to record completed step names into.

        Returns:
            The cluster's extensions status.

        Raises:
            ExtensionsError: On the first hard failure. Earlier updates are kept.
        """
        ext = ensure_extensions_status(cluster)
        steps: list[tuple[str, Callable[[], None]]] = [
            ("loadBalancers", lambda: self._load_balancers().reconcile(cluster, ext)),
            ("networking", lambda: self._networking.reconcile(cluster, ext)),
            ("platform", lambda: reconcile_platform(cluster, ext)),
            (
                "endpoints",
                lambda: reconcile_endpoints(self._scope, ext, self._config.endpoint_services),
            ),
            ("appCredential", lambda: self._app_credential.reconcile(cluster, ext)),
        ]
        for step_name, step in steps:
            logger.debug("Running step", extra={"cluster": cluster.name, "step": step_name})
            step()
            if result is not None:
                result.steps_completed.append(step_name)

        control_plane = ext.load_balancers.control_plane if ext.load_balancers else None
        cilium = ext.networking.cilium if ext.networking else None
        logger.info(
            "Reconciled cluster extensions",
            extra={
                "cluster": cluster.name,
                "control_plane_vip": control_plane.vip if control_plane else "",
                "project_id": cilium.project_id if cilium else "",
            },
        )
        return ext

    def run_pass(self, cluster: ClusterObject) -> ReconcileResult:
        """Run one pass and capture the outcome instead of raising."""
        result = ReconcileResult(cluster=cluster.name)
        try:
            self.reconcile(cluster, result)
        except Exception as e:
            logger.error(
                "Cluster extensions reconcile failed",
                extra={
                    "cluster": cluster.name,
                    "steps_completed": list(result.steps_completed),
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            result.error = e
        result.status = cluster.status.extensions
        result.end_time = datetime.now(UTC)
        return result


class MachineExtensionsReconciler:
    """Runs the machine extensions pass (allowed address pairs)."""

    def __init__(self, scope: ClientScope) -> None:
        self._scope = scope

    def reconcile(self, machine: MachineObject | None, cluster: ClusterObject | None) -> int:
        """Returns the number of ports visited."""
        if machine is None or cluster is None:
            return 0
        extensions = machine.spec.extensions
        if extensions is None or extensions.load_balancers is None:
            return 0
        return AddressPairReconciler(self._scope.networking_service()).reconcile(machine, cluster)
