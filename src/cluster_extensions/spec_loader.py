"""Cluster and machine record loading with validation.

SECURITY: File reads enforce a size limit. Input validation is performed at
the boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import ClusterObject, MachineObject

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class SpecLoadError(Exception):
    """Raised when record loading or validation fails."""

    pass


def _read_document(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise SpecLoadError(f"Record file not found: {path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat record file {path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Record file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read record file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Record file must contain a YAML mapping: {path}")

    # Kubernetes-style format: apiVersion, kind, metadata, spec, status
    if "apiVersion" in raw_data and "metadata" in raw_data:
        metadata = raw_data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise SpecLoadError(f"metadata section must be a mapping: {path}")
        return {
            "name": metadata.get("name", ""),
            "namespace": metadata.get("namespace", ""),
            "spec": raw_data.get("spec") or {},
            "status": raw_data.get("status") or {},
        }

    # Flat format: the record itself
    return raw_data


def _load(path: Path, record_class: type[RecordT]) -> RecordT:
    data = _read_document(path)
    try:
        record = record_class.model_validate(data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {path}:\n{error_list}") from e

    logger.info("Loaded %s from %s", record_class.__name__, path)
    return record


def load_cluster(path: Path) -> ClusterObject:
    """Load and validate a cluster record.

    Raises:
        SpecLoadError: If the file cannot be read or fails validation.
    """
    return _load(path, ClusterObject)


def load_machine(path: Path) -> MachineObject:
    """Load and validate a machine record.

    Raises:
        SpecLoadError: If the file cannot be read or fails validation.
    """
    return _load(path, MachineObject)


def dump_status(cluster: ClusterObject) -> str:
    """Serialize a cluster's extensions status as YAML."""
    extensions = cluster.status.extensions
    data = extensions.model_dump(by_alias=True, exclude_none=True) if extensions else {}
    return yaml.safe_dump({"extensions": data}, default_flow_style=False, sort_keys=False)
