"""Application credential issuance for a cluster.

The stored secret's name is derived from the cluster name and is itself the
idempotency key: if a secret with that name exists, the credential counts as
issued and is adopted without calling the identity service.

STATE MACHINE (per cluster):
    ref set            -> done, no backend calls
    secret found       -> adopt, set ref
    identity missing   -> skip, not an error
    otherwise          -> issue credential, render clouds.yaml, create secret, set ref
"""

from __future__ import annotations

import logging

import yaml

from .clients import ApplicationCredential, ClientScope, SecretStore
from .errors import AlreadyExistsError, BackendUnavailableError, ExtensionsError, NotFoundError
from .helpers import cluster_resource_name, resource_description
from .models import (
    AppCredentialStatus,
    ClusterObject,
    ExtensionsStatus,
    OpenStackExtensionsStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_SECRET_SUFFIX = "openstack-app-cred"
CLOUDS_YAML_KEY = "clouds.yaml"
CACERT_KEY = "cacert"
CREDENTIAL_ID_LABEL = "creId"


def render_clouds_yaml(
    cluster_name: str,
    auth_url: str,
    credential: ApplicationCredential,
    region: str,
) -> str:
    """Render a clouds.yaml document with one entry authenticating via the credential."""
    document = {
        "clouds": {
            cluster_name: {
                "identity_api_version": 3,
                "auth": {
                    "auth_url": auth_url,
                    "application_credential_id": credential.id,
                    "application_credential_secret": credential.secret,
                },
                "region_name": region,
            }
        }
    }
    return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)


class AppCredentialReconciler:
    """Issues an application credential once per cluster and stores it as a secret."""

    def __init__(
        self,
        scope: ClientScope,
        secret_store: SecretStore,
        secret_suffix: str = DEFAULT_SECRET_SUFFIX,
        default_namespace: str = "default",
    ) -> None:
        self._scope = scope
        self._secret_store = secret_store
        self._secret_suffix = secret_suffix
        self._default_namespace = default_namespace

    def secret_name(self, cluster: ClusterObject) -> str:
        return f"{cluster_resource_name(cluster)}-{self._secret_suffix}"

    def reconcile(self, cluster: ClusterObject, ext: ExtensionsStatus) -> None:
        """Ensure ext.open_stack.app_credential.ref points at a stored credential.

        Raises:
            ExtensionsError: If the authenticated user cannot be determined.
        """
        if ext.open_stack is None:
            ext.open_stack = OpenStackExtensionsStatus()
        if ext.open_stack.app_credential is None:
            ext.open_stack.app_credential = AppCredentialStatus()
        status = ext.open_stack.app_credential

        name = self.secret_name(cluster)
        if status.ref == name:
            return

        namespace = cluster.namespace or self._default_namespace
        try:
            self._secret_store.get(namespace, name)
        except NotFoundError:
            pass
        else:
            logger.info(
                "Adopted existing application credential secret",
                extra={"namespace": namespace, "secret": name},
            )
            status.ref = name
            return

        try:
            identity = self._scope.identity_client()
        except BackendUnavailableError:
            logger.debug("Identity client unavailable, skipping application credential reconcile")
            return

        user = identity.current_authenticated_user()
        if user is None or not user.id:
            raise ExtensionsError("missing user ID in auth result")

        base_name = cluster_resource_name(cluster)
        credential = identity.create_application_credential(
            user.id,
            name=f"{base_name}-appcred",
            description=resource_description(base_name),
        )
        logger.info(
            "Created application credential",
            extra={"credential_id": credential.id, "user_id": user.id},
        )

        clouds_yaml = render_clouds_yaml(
            base_name, identity.identity_endpoint, credential, identity.region_name
        )
        data = {
            CLOUDS_YAML_KEY: clouds_yaml.encode("utf-8"),
            CACERT_KEY: b"\n",
        }
        try:
            self._secret_store.create(
                namespace, name, data, labels={CREDENTIAL_ID_LABEL: credential.id}
            )
        except AlreadyExistsError:
            logger.info(
                "Application credential secret created concurrently, adopting",
                extra={"namespace": namespace, "secret": name},
            )
        else:
            logger.info(
                "Created application credential secret",
                extra={"namespace": namespace, "secret": name},
            )
        status.ref = name
