"""Configuration management with validation.

All settings come from environment variables and are validated at load time
so a misconfigured process fails before it touches any backend.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from .appcred import DEFAULT_SECRET_SUFFIX
from .clients import ConfigKey


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Location of the externally owned cluster config holding the public VIP
DEFAULT_CLUSTER_CONFIG_GROUP = "servicecatalog.ecp.com"
DEFAULT_CLUSTER_CONFIG_VERSION = "v1"
DEFAULT_CLUSTER_CONFIG_RESOURCE = "configs"
DEFAULT_CLUSTER_CONFIG_NAMESPACE = "ems"
DEFAULT_CLUSTER_CONFIG_NAME = "clusterconfig"
DEFAULT_CLUSTER_CONFIG_FIELD_PATH = "data.cluster_attrs.public_vip"

# Catalog services whose endpoint hosts are published, in publication order
KNOWN_ENDPOINT_SERVICES: tuple[str, ...] = ("keystone", "cinder", "nova", "neutron")

VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Limits for inputs read from disk
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max record file

# Input validation patterns
VALID_NAMESPACE_PATTERN = r"^[a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?$"
VALID_SECRET_SUFFIX_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


@dataclass(frozen=True)
class Config:
    """Process configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-pass.
    """

    # clouds.yaml entry used by openstacksdk
    cloud_name: str = "openstack"

    # Secrets
    secret_namespace: str = "default"
    app_credential_secret_suffix: str = DEFAULT_SECRET_SUFFIX

    # External cluster config
    cluster_config_group: str = DEFAULT_CLUSTER_CONFIG_GROUP
    cluster_config_version: str = DEFAULT_CLUSTER_CONFIG_VERSION
    cluster_config_resource: str = DEFAULT_CLUSTER_CONFIG_RESOURCE
    cluster_config_namespace: str = DEFAULT_CLUSTER_CONFIG_NAMESPACE
    cluster_config_name: str = DEFAULT_CLUSTER_CONFIG_NAME
    cluster_config_field_path: str = DEFAULT_CLUSTER_CONFIG_FIELD_PATH

    # Endpoints
    endpoint_services: tuple[str, ...] = field(default_factory=lambda: KNOWN_ENDPOINT_SERVICES)

    # Kubernetes client
    kube_in_cluster: bool = False

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.cloud_name:
            errors.append("OS_CLOUD is required")

        if not re.match(VALID_NAMESPACE_PATTERN, self.secret_namespace):
            errors.append(
                f"SECRET_NAMESPACE must match pattern {VALID_NAMESPACE_PATTERN}: "
                f"{self.secret_namespace}"
            )

        if not re.match(VALID_SECRET_SUFFIX_PATTERN, self.app_credential_secret_suffix):
            errors.append(
                f"APP_CREDENTIAL_SECRET_SUFFIX must match pattern {VALID_SECRET_SUFFIX_PATTERN}: "
                f"{self.app_credential_secret_suffix}"
            )

        for env_var, value in (
            ("CLUSTER_CONFIG_GROUP", self.cluster_config_group),
            ("CLUSTER_CONFIG_VERSION", self.cluster_config_version),
            ("CLUSTER_CONFIG_RESOURCE", self.cluster_config_resource),
            ("CLUSTER_CONFIG_NAME", self.cluster_config_name),
        ):
            if not value:
                errors.append(f"{env_var} must not be empty")

        if not self.public_vip_path or any(not segment for segment in self.public_vip_path):
            errors.append(
                f"CLUSTER_CONFIG_FIELD_PATH must be a dotted path: {self.cluster_config_field_path}"
            )

        unknown = [s for s in self.endpoint_services if s not in KNOWN_ENDPOINT_SERVICES]
        if unknown:
            errors.append(
                f"ENDPOINT_SERVICES contains unknown services {unknown}, "
                f"valid: {list(KNOWN_ENDPOINT_SERVICES)}"
            )

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def public_vip_key(self) -> ConfigKey:
        return ConfigKey(
            group=self.cluster_config_group,
            version=self.cluster_config_version,
            resource=self.cluster_config_resource,
            namespace=self.cluster_config_namespace,
            name=self.cluster_config_name,
        )

    @property
    def public_vip_path(self) -> tuple[str, ...]:
        if not self.cluster_config_field_path:
            return ()
        return tuple(self.cluster_config_field_path.split("."))

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            OS_CLOUD: clouds.yaml entry for the OpenStack connection (default: openstack)
            SECRET_NAMESPACE: Namespace for credential secrets of clusters without one
                (default: default)
            APP_CREDENTIAL_SECRET_SUFFIX: Suffix of the credential secret name
                (default: openstack-app-cred)
            CLUSTER_CONFIG_GROUP / CLUSTER_CONFIG_VERSION / CLUSTER_CONFIG_RESOURCE:
                API coordinates of the external cluster config
            CLUSTER_CONFIG_NAMESPACE / CLUSTER_CONFIG_NAME: Location of the object.
                An empty namespace means cluster scoped.
            CLUSTER_CONFIG_FIELD_PATH: Dotted path of the public VIP field
                (default: data.cluster_attrs.public_vip)
            ENDPOINT_SERVICES: Comma separated service names to publish
                (default: keystone,cinder,nova,neutron)
            KUBE_IN_CLUSTER: If "true", use in-cluster Kubernetes credentials
            LOG_LEVEL: Root log level (default: INFO)
        """

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        def get_list(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
            value = os.environ.get(key)
            if value is None:
                return default
            return tuple(item.strip() for item in value.split(",") if item.strip())

        return cls(
            cloud_name=os.environ.get("OS_CLOUD", "openstack"),
            secret_namespace=os.environ.get("SECRET_NAMESPACE", "default"),
            app_credential_secret_suffix=os.environ.get(
                "APP_CREDENTIAL_SECRET_SUFFIX", DEFAULT_SECRET_SUFFIX
            ),
            cluster_config_group=os.environ.get(
                "CLUSTER_CONFIG_GROUP", DEFAULT_CLUSTER_CONFIG_GROUP
            ),
            cluster_config_version=os.environ.get(
                "CLUSTER_CONFIG_VERSION", DEFAULT_CLUSTER_CONFIG_VERSION
            ),
            cluster_config_resource=os.environ.get(
                "CLUSTER_CONFIG_RESOURCE", DEFAULT_CLUSTER_CONFIG_RESOURCE
            ),
            cluster_config_namespace=os.environ.get(
                "CLUSTER_CONFIG_NAMESPACE", DEFAULT_CLUSTER_CONFIG_NAMESPACE
            ),
            cluster_config_name=os.environ.get("CLUSTER_CONFIG_NAME", DEFAULT_CLUSTER_CONFIG_NAME),
            cluster_config_field_path=os.environ.get(
                "CLUSTER_CONFIG_FIELD_PATH", DEFAULT_CLUSTER_CONFIG_FIELD_PATH
            ),
            endpoint_services=get_list("ENDPOINT_SERVICES", KNOWN_ENDPOINT_SERVICES),
            kube_in_cluster=get_bool("KUBE_IN_CLUSTER", False),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
