"""Tests for the pure helper functions."""

from __future__ import annotations

import pytest
from conftest import make_cluster

from cluster_extensions.errors import ExtensionsError
from cluster_extensions.helpers import (
    cluster_resource_name,
    collect_control_plane_security_groups,
    collect_security_groups,
    deduplicate_strings,
    desired_keepalived_floating_ip,
    extract_endpoint_host,
    nested_string,
    pick_subnet_id,
    resource_description,
    should_attach_keepalived_floating_ip,
)
from cluster_extensions.models import ClusterObject, NetworkStatus


class TestDeduplicateStrings:
    """Tests for order-preserving deduplication."""

    def test_first_occurrence_order(self) -> None:
        """Test that empties and repeats are dropped in first-seen order."""
        assert deduplicate_strings(["a", "", "b", "a"], "c", "b") == ["a", "b", "c"]

    def test_empty_inputs(self) -> None:
        assert deduplicate_strings([]) == []
        assert deduplicate_strings([], "", "") == []

    def test_extras_only(self) -> None:
        assert deduplicate_strings([], "vpc-cni", "tenant-a-demo") == ["vpc-cni", "tenant-a-demo"]


class TestNaming:
    """Tests for resource naming helpers."""

    def test_namespaced_cluster(self) -> None:
        cluster = make_cluster(name="demo", namespace="tenant-a")
        assert cluster_resource_name(cluster) == "tenant-a-demo"

    def test_cluster_without_namespace(self) -> None:
        cluster = make_cluster(name="demo", namespace="")
        assert cluster_resource_name(cluster) == "demo"

    def test_resource_description(self) -> None:
        assert resource_description("tenant-a-demo") == (
            "Created by cluster-api-provider-openstack cluster tenant-a-demo"
        )


class TestSecurityGroups:
    """Tests for security group collection."""

    def test_collects_sorted_unique_ids(self) -> None:
        """Test that the three groups are merged, sorted and deduplicated."""
        cluster = make_cluster()
        cluster.status.bastion_security_group = cluster.status.worker_security_group
        assert collect_security_groups(cluster) == ["sg-control-plane", "sg-worker"]

    def test_missing_groups_are_skipped(self) -> None:
        cluster = ClusterObject(name="bare")
        assert collect_security_groups(cluster) == []
        assert collect_control_plane_security_groups(cluster) == []

    def test_control_plane_only(self) -> None:
        cluster = make_cluster()
        assert collect_control_plane_security_groups(cluster) == ["sg-control-plane"]


class TestPickSubnetId:
    """Tests for CNI subnet selection."""

    def test_prefers_tagged_subnet(self) -> None:
        network = NetworkStatus.model_validate(
            {
                "id": "net-1",
                "subnets": [
                    {"id": "subnet-a"},
                    {"id": "subnet-b", "tags": ["cilium-default"]},
                ],
            }
        )
        assert pick_subnet_id(network) == "subnet-b"

    def test_falls_back_to_first_subnet(self) -> None:
        network = NetworkStatus.model_validate(
            {"id": "net-1", "subnets": [{"id": "subnet-a"}, {"id": "subnet-b"}]}
        )
        assert pick_subnet_id(network) == "subnet-a"

    def test_no_subnets(self) -> None:
        assert pick_subnet_id(None) == ""
        assert pick_subnet_id(NetworkStatus(id="net-1")) == ""


class TestKeepalivedFloatingIP:
    """Tests for floating IP rules on the control-plane VIP."""

    def test_attach_requires_external_network(self) -> None:
        cluster = make_cluster()
        assert should_attach_keepalived_floating_ip(cluster) is False

        cluster.status.external_network = NetworkStatus(id="ext-net")
        assert should_attach_keepalived_floating_ip(cluster) is True

    @pytest.mark.parametrize(
        "override",
        [
            {"disableExternalNetwork": True},
            {"disableAPIServerFloatingIP": True},
            {"apiServerLoadBalancer": {"enabled": True}},
            {"apiServerLoadBalancer": {}},
        ],
    )
    def test_attach_disabled(self, override: dict[str, object]) -> None:
        cluster = make_cluster(**override)
        cluster.status.external_network = NetworkStatus(id="ext-net")
        assert should_attach_keepalived_floating_ip(cluster) is False

    def test_attach_with_load_balancer_turned_off(self) -> None:
        cluster = make_cluster(apiServerLoadBalancer={"enabled": False})
        cluster.status.external_network = NetworkStatus(id="ext-net")
        assert should_attach_keepalived_floating_ip(cluster) is True

    def test_attach_none_cluster(self) -> None:
        assert should_attach_keepalived_floating_ip(None) is False

    def test_desired_prefers_valid_endpoint(self) -> None:
        cluster = make_cluster(
            controlPlaneEndpoint={"host": "198.51.100.7", "port": 6443},
            apiServerFloatingIP="198.51.100.8",
        )
        assert desired_keepalived_floating_ip(cluster) == "198.51.100.7"

    def test_desired_falls_back_to_requested_address(self) -> None:
        cluster = make_cluster(
            controlPlaneEndpoint={"host": "198.51.100.7", "port": 0},
            apiServerFloatingIP="198.51.100.8",
        )
        assert desired_keepalived_floating_ip(cluster) == "198.51.100.8"

    def test_desired_unset(self) -> None:
        assert desired_keepalived_floating_ip(make_cluster()) is None
        assert desired_keepalived_floating_ip(None) is None


class TestExtractEndpointHost:
    """Tests for endpoint host extraction."""

    @pytest.mark.parametrize(
        ("endpoint", "expected"),
        [
            ("https://keystone.example.com:5000/v3", "keystone.example.com"),
            ("http://10.0.0.1:8774/v2.1", "10.0.0.1"),
            ("https://[fd00::1]:9696", "fd00::1"),
            ("keystone.example.com", "keystone.example.com"),
            ("", ""),
        ],
    )
    def test_extract(self, endpoint: str, expected: str) -> None:
        assert extract_endpoint_host(endpoint) == expected


class TestNestedString:
    """Tests for nested field reads."""

    def test_reads_string(self) -> None:
        obj = {"data": {"cluster_attrs": {"public_vip": "10.0.0.10"}}}
        assert nested_string(obj, ("data", "cluster_attrs", "public_vip")) == "10.0.0.10"

    def test_missing_segment_is_empty(self) -> None:
        obj = {"data": {}}
        assert nested_string(obj, ("data", "cluster_attrs", "public_vip")) == ""

    def test_null_value_is_empty(self) -> None:
        obj = {"data": {"public_vip": None}}
        assert nested_string(obj, ("data", "public_vip")) == ""

    def test_non_string_value_raises(self) -> None:
        """Test that a present but mistyped field is an error."""
        obj = {"data": {"public_vip": 42}}
        with pytest.raises(ExtensionsError) as exc_info:
            nested_string(obj, ("data", "public_vip"))

        assert "expected a string" in str(exc_info.value)

    def test_non_mapping_intermediate_raises(self) -> None:
        obj = {"data": ["not", "a", "mapping"]}
        with pytest.raises(ExtensionsError):
            nested_string(obj, ("data", "public_vip"))
