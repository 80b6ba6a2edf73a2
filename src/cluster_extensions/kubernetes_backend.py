"""Kubernetes adapters for secret storage and external config reads.

API errors are translated at this boundary:
- 404 -> NotFoundError (or an empty value for config reads)
- 409 -> AlreadyExistsError
Everything else propagates unchanged.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from typing import Any

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from .clients import ConfigKey
from .errors import AlreadyExistsError, NotFoundError
from .helpers import nested_string

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def load_kube_config(in_cluster: bool) -> None:
    """Load Kubernetes client credentials from the pod or the local kubeconfig."""
    if in_cluster:
        k8s_config.load_incluster_config()
    else:
        k8s_config.load_kube_config()


class KubernetesSecretStore:
    """SecretStore backed by core/v1 Secrets."""

    def __init__(self, core_api: k8s_client.CoreV1Api | None = None) -> None:
        self._api = core_api or k8s_client.CoreV1Api()

    def get(self, namespace: str, name: str) -> dict[str, bytes]:
        try:
            secret = self._api.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                raise NotFoundError(f"secret {namespace}/{name} not found") from e
            raise
        return {key: base64.b64decode(value) for key, value in (secret.data or {}).items()}

    def create(
        self,
        namespace: str,
        name: str,
        data: dict[str, bytes],
        labels: dict[str, str],
    ) -> None:
        body = k8s_client.V1Secret(
            metadata=k8s_client.V1ObjectMeta(name=name, namespace=namespace, labels=dict(labels)),
            data={key: base64.b64encode(value).decode("ascii") for key, value in data.items()},
            type="Opaque",
        )
        try:
            self._api.create_namespaced_secret(namespace, body)
        except ApiException as e:
            if e.status == HTTP_CONFLICT:
                raise AlreadyExistsError(f"secret {namespace}/{name} already exists") from e
            raise
        logger.debug("Created secret", extra={"namespace": namespace, "secret": name})


class KubernetesConfigReader:
    """StructuredConfigReader backed by the custom objects API."""

    def __init__(self, custom_api: k8s_client.CustomObjectsApi | None = None) -> None:
        self._api = custom_api or k8s_client.CustomObjectsApi()

    def get_object(self, key: ConfigKey) -> dict[str, Any] | None:
        """Fetch the raw object, or None if it does not exist."""
        try:
            if key.namespace:
                return self._api.get_namespaced_custom_object(
                    key.group, key.version, key.namespace, key.resource, key.name
                )
            return self._api.get_cluster_custom_object(
                key.group, key.version, key.resource, key.name
            )
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                return None
            raise

    def read_field(self, key: ConfigKey, field_path: Sequence[str]) -> str:
        obj = self.get_object(key)
        if obj is None:
            logger.debug("Config object not found", extra={"config": str(key)})
            return ""
        return nested_string(obj, field_path)
