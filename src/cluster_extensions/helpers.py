"""Pure helpers shared by the reconcilers.

Nothing in this module talks to a backend.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any
from urllib.parse import urlsplit

from .errors import ExtensionsError
from .models import ClusterObject, NetworkStatus, SecurityGroupStatus

CILIUM_DEFAULT_SUBNET_TAG = "cilium-default"
RESOURCE_DESCRIPTION_PREFIX = "Created by cluster-api-provider-openstack cluster"


def cluster_resource_name(cluster: ClusterObject) -> str:
    """Stable base name for cloud resources owned by a cluster."""
    if cluster.namespace:
        return f"{cluster.namespace}-{cluster.name}"
    return cluster.name


def resource_description(cluster_name: str) -> str:
    return f"{RESOURCE_DESCRIPTION_PREFIX} {cluster_name}"


def deduplicate_strings(initial: Iterable[str], *extras: str) -> list[str]:
    """Merge values keeping the order of first occurrence.

    Empty strings and repeats are dropped.

    Example:
        deduplicate_strings(["a", "", "b", "a"], "c", "b") == ["a", "b", "c"]
    """
    seen: set[str] = set()
    result: list[str] = []
    for value in [*initial, *extras]:
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def _security_group_ids(groups: Iterable[SecurityGroupStatus | None]) -> list[str]:
    return sorted({group.id for group in groups if group is not None and group.id})


def collect_security_groups(cluster: ClusterObject) -> list[str]:
    """Sorted, deduplicated IDs of the control-plane, worker and bastion groups."""
    status = cluster.status
    return _security_group_ids(
        [
            status.control_plane_security_group,
            status.worker_security_group,
            status.bastion_security_group,
        ]
    )


def collect_control_plane_security_groups(cluster: ClusterObject) -> list[str]:
    return _security_group_ids([cluster.status.control_plane_security_group])


def pick_subnet_id(network: NetworkStatus | None) -> str:
    """Pick the subnet tagged for the CNI, falling back to the first subnet."""
    if network is None:
        return ""
    for subnet in network.subnets:
        if CILIUM_DEFAULT_SUBNET_TAG in subnet.tags:
            return subnet.id
    return network.subnets[0].id if network.subnets else ""


def should_attach_keepalived_floating_ip(cluster: ClusterObject | None) -> bool:
    """Whether a floating IP should front the keepalived control-plane VIP."""
    if cluster is None:
        return False
    spec = cluster.spec
    if cluster.status.external_network is None:
        return False
    if spec.disable_external_network or spec.disable_api_server_floating_ip:
        return False
    if spec.api_server_load_balancer_enabled:
        return False
    return True


def desired_keepalived_floating_ip(cluster: ClusterObject | None) -> str | None:
    """The floating address requested for the control-plane VIP, if any."""
    if cluster is None:
        return None
    spec = cluster.spec
    if spec.control_plane_endpoint is not None and spec.control_plane_endpoint.is_valid:
        return spec.control_plane_endpoint.host
    return spec.api_server_floating_ip


def extract_endpoint_host(endpoint: str) -> str:
    """Reduce a service URL to its host name.

    Falls back to the raw network location, then to the input itself.
    """
    if not endpoint:
        return ""
    try:
        parsed = urlsplit(endpoint)
        hostname = parsed.hostname
    except ValueError:
        return endpoint
    if hostname:
        return hostname
    return parsed.netloc or endpoint


def nested_string(obj: Mapping[str, Any], path: Sequence[str]) -> str:
    """Read a string field from a nested mapping.

    Returns an empty string when any segment is missing.

    Raises:
        ExtensionsError: If an intermediate value is not a mapping or the
            final value is not a string.
    """
    current: Any = obj
    walked: list[str] = []
    for segment in path:
        if not isinstance(current, Mapping):
            raise ExtensionsError(
                f"{'.'.join(walked)} is of type {type(current).__name__}, expected a mapping"
            )
        if segment not in current:
            return ""
        current = current[segment]
        walked.append(segment)
    if current is None:
        return ""
    if not isinstance(current, str):
        raise ExtensionsError(
            f"{'.'.join(walked)} is of type {type(current).__name__}, expected a string"
        )
    return current
