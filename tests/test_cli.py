"""Tests for the command line entry points."""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner
from conftest import make_cluster, make_machine
from openstack_mock import CLUSTER_NETWORK_ID, MockCloudContext

from cluster_extensions.cli import cli
from cluster_extensions.clients import Port


@pytest.fixture(autouse=True)
def quiet_environment() -> Generator[None, None, None]:
    """Run every CLI test with a clean environment and without reconfiguring logging."""
    with patch.dict(os.environ, {}, clear=True):
        with patch("cluster_extensions.main.setup_logging"):
            yield


def _write_cluster(path: Path, **overrides: object) -> Path:
    cluster = make_cluster(**overrides)
    path.write_text(yaml.safe_dump(cluster.model_dump(by_alias=True, exclude_none=True)))
    return path


class TestReconcileCluster:
    """Tests for `reconcile cluster`."""

    def test_prints_status(self, tmp_path: Path, cloud: MockCloudContext) -> None:
        spec_file = _write_cluster(tmp_path / "cluster.yaml")

        result = CliRunner().invoke(cli, ["reconcile", "cluster", str(spec_file)])

        assert result.exit_code == 0, result.output
        status = yaml.safe_load(result.stdout)["extensions"]
        assert status["loadBalancers"]["controlPlane"]["vip"] == "10.0.0.10"
        assert status["openStack"]["mgmt"] == "203.0.113.5"
        assert status["openStack"]["appCredential"]["ref"] == "tenant-a-demo-openstack-app-cred"

    def test_writes_output_file(self, tmp_path: Path, cloud: MockCloudContext) -> None:
        spec_file = _write_cluster(tmp_path / "cluster.yaml")
        output = tmp_path / "status.yaml"

        result = CliRunner().invoke(
            cli, ["reconcile", "cluster", str(spec_file), "--output", str(output)]
        )

        assert result.exit_code == 0, result.output
        status = yaml.safe_load(output.read_text())["extensions"]
        assert status["endpoints"]["neutron"] == "neutron.example.com"

    def test_failed_pass_emits_partial_status(self, tmp_path: Path, cloud: MockCloudContext) -> None:
        spec_file = _write_cluster(tmp_path / "cluster.yaml", podCIDRBlocks=[])

        result = CliRunner().invoke(cli, ["reconcile", "cluster", str(spec_file)])

        assert result.exit_code == 1
        status = yaml.safe_load(result.stdout)["extensions"]
        assert status["loadBalancers"]["ingress"]["vip"] == "10.0.0.11"

    def test_invalid_record(self, tmp_path: Path, cloud: MockCloudContext) -> None:
        spec_file = tmp_path / "cluster.yaml"
        spec_file.write_text("name: ''\n")

        result = CliRunner().invoke(cli, ["reconcile", "cluster", str(spec_file)])

        assert result.exit_code == 1
        assert cloud.network.create_count() == 0

    def test_invalid_configuration(self, tmp_path: Path, cloud: MockCloudContext) -> None:
        spec_file = _write_cluster(tmp_path / "cluster.yaml")

        with patch.dict(os.environ, {"LOG_LEVEL": "LOUD"}):
            result = CliRunner().invoke(cli, ["reconcile", "cluster", str(spec_file)])

        assert result.exit_code == 1
        assert cloud.network.create_count() == 0

    def test_backend_initialization_failure(self, tmp_path: Path) -> None:
        spec_file = _write_cluster(tmp_path / "cluster.yaml")

        with patch(
            "cluster_extensions.main.build_backends", side_effect=RuntimeError("no clouds.yaml")
        ):
            result = CliRunner().invoke(cli, ["reconcile", "cluster", str(spec_file)])

        assert result.exit_code == 1


class TestReconcileMachine:
    """Tests for `reconcile machine`."""

    def test_propagates_vips(self, tmp_path: Path, cloud: MockCloudContext) -> None:
        cluster = make_cluster()
        cluster.status.extensions = None
        cluster_file = tmp_path / "cluster.yaml"
        data = cluster.model_dump(by_alias=True, exclude_none=True)
        data["status"]["extensions"] = {"loadBalancers": {"controlPlane": {"vip": "10.0.0.10"}}}
        cluster_file.write_text(yaml.safe_dump(data))
        machine_file = tmp_path / "machine.yaml"
        machine_file.write_text(yaml.safe_dump(make_machine().model_dump(by_alias=True)))
        cloud.state.add_port(Port(id="vm-port", device_id="instance-1", network_id=CLUSTER_NETWORK_ID))

        result = CliRunner().invoke(
            cli, ["reconcile", "machine", str(machine_file), str(cluster_file)]
        )

        assert result.exit_code == 0, result.output
        pairs = cloud.state.ports["vm-port"].allowed_address_pairs
        assert [p.ip_address for p in pairs] == ["10.0.0.10"]


class TestValidate:
    """Tests for `validate`."""

    def test_valid_cluster(self, tmp_path: Path) -> None:
        spec_file = _write_cluster(tmp_path / "cluster.yaml")

        result = CliRunner().invoke(cli, ["validate", str(spec_file)])

        assert result.exit_code == 0
        assert "demo is valid" in result.output

    def test_invalid_machine(self, tmp_path: Path) -> None:
        machine_file = tmp_path / "machine.yaml"
        machine_file.write_text(
            yaml.safe_dump({"name": "m", "spec": {"extensions": {"memory": {"reserved": "512"}}}})
        )

        result = CliRunner().invoke(cli, ["validate", "--kind", "machine", str(machine_file)])

        assert result.exit_code != 0
        assert "reserved" in result.output
