"""Main entry point for the cluster extensions engine.

Each invocation runs exactly one pass over one object:
- Cluster pass: load balancer VIPs, CNI networking, platform facts,
  endpoints and the application credential
- Machine pass: allowed address pairs on the instance's ports

The engine holds no state between passes. The caller owns persistence of the
returned status and decides when to run the next pass.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from .clients import ClientScope, SecretStore, StructuredConfigReader
from .config import Config, ConfigurationError
from .kubernetes_backend import KubernetesConfigReader, KubernetesSecretStore, load_kube_config
from .models import ClusterObject
from .openstack_backend import OpenStackScope
from .reconciler import (
    ClusterExtensionsReconciler,
    MachineExtensionsReconciler,
    ReconcileResult,
)
from .spec_loader import SpecLoadError, dump_status, load_cluster, load_machine

# LogRecord attributes that are not user supplied extras
_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging with JSON output on stderr.

    stdout is reserved for the status document written by the CLI.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # Reduce noise from client libraries
    for noisy in ("openstack", "keystoneauth", "kubernetes", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_backends(
    config: Config,
) -> tuple[ClientScope, SecretStore, StructuredConfigReader]:
    """Connect to OpenStack and Kubernetes using the process configuration."""
    scope = OpenStackScope.from_cloud(config.cloud_name)
    load_kube_config(config.kube_in_cluster)
    return scope, KubernetesSecretStore(), KubernetesConfigReader()


def run_cluster_pass(
    cluster: ClusterObject,
    config: Config,
    scope: ClientScope,
    secret_store: SecretStore,
    config_reader: StructuredConfigReader | None,
) -> ReconcileResult:
    """Run one cluster pass against already constructed backends."""
    reconciler = ClusterExtensionsReconciler(scope, secret_store, config_reader, config)
    return reconciler.run_pass(cluster)


def reconcile_cluster_file(spec_file: Path, output: Path | None = None) -> int:
    """Load a cluster record, run one pass and emit the resulting status.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    logging.getLogger().setLevel(config.log_level)

    try:
        cluster = load_cluster(spec_file)
    except SpecLoadError as e:
        logger.error("Cluster record loading failed", extra={"error": str(e)})
        return 1

    try:
        scope, secret_store, config_reader = build_backends(config)
    except Exception as e:
        logger.error(
            "Failed to initialize backends",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return 1

    result = run_cluster_pass(cluster, config, scope, secret_store, config_reader)

    # Partial progress is emitted even on failure so it can be persisted
    document = dump_status(cluster)
    if output is not None:
        output.write_text(document, encoding="utf-8")
    else:
        sys.stdout.write(document)

    logger.info(
        "Cluster pass finished",
        extra={
            "cluster": cluster.name,
            "success": result.success,
            "steps_completed": result.steps_completed,
            "duration_seconds": result.duration_seconds,
        },
    )
    return 0 if result.success else 1


def reconcile_machine_file(machine_file: Path, cluster_file: Path) -> int:
    """Load machine and cluster records and run one machine pass.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    logging.getLogger().setLevel(config.log_level)

    try:
        machine = load_machine(machine_file)
        cluster = load_cluster(cluster_file)
    except SpecLoadError as e:
        logger.error("Record loading failed", extra={"error": str(e)})
        return 1

    try:
        scope, _, _ = build_backends(config)
        ports = MachineExtensionsReconciler(scope).reconcile(machine, cluster)
    except Exception as e:
        logger.exception("Machine pass failed", extra={"machine": machine.name, "error": str(e)})
        return 1

    logger.info("Machine pass finished", extra={"machine": machine.name, "ports": ports})
    return 0
