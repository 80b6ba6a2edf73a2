"""Generic list-then-create primitive for single network resources.

Idempotency comes purely from querying before mutating:
- 0 matches: create once, then apply tags
- 1 match: return it, no mutation
- 2+ matches: AmbiguousResourceError, never auto-resolved

There is no locking. Two concurrent callers using the same filter can both
observe zero matches and both create. When the backend rejects the second
create with a conflict, the resource is re-listed and adopted; otherwise the
duplicate is left for the next pass to surface as an ambiguity.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from .clients import CloudNetworkAPI, CloudResource, ResourceKind
from .errors import AlreadyExistsError, AmbiguousResourceError

logger = logging.getLogger(__name__)

# Resource kind -> (list method, create method) on CloudNetworkAPI
RESOURCE_OPERATIONS: dict[ResourceKind, tuple[str, str]] = {
    ResourceKind.NETWORK: ("list_networks", "create_network"),
    ResourceKind.SUBNET: ("list_subnets", "create_subnet"),
    ResourceKind.SECURITY_GROUP: ("list_security_groups", "create_security_group"),
    ResourceKind.PORT: ("list_ports", "create_port"),
}


class ResourceEnsurer:
    """Find-or-create for networks, subnets, security groups and ports."""

    def __init__(self, network_client: CloudNetworkAPI) -> None:
        self._client = network_client

    def find(self, kind: ResourceKind, filters: dict[str, Any]) -> CloudResource | None:
        """Return the single resource matching filters, or None.

        Raises:
            AmbiguousResourceError: If more than one resource matches.
        """
        list_method, _ = RESOURCE_OPERATIONS[kind]
        matches = getattr(self._client, list_method)(filters)
        if len(matches) > 1:
            raise AmbiguousResourceError(kind.value, filters, len(matches))
        return matches[0] if matches else None

    def ensure_resource(
        self,
        kind: ResourceKind,
        filters: dict[str, Any],
        create_spec: dict[str, Any],
        tags: Sequence[str] | None = None,
    ) -> CloudResource:
        """Return the resource matching filters, creating it from create_spec if absent.

        Args:
            kind: Resource kind.
            filters: Lookup filter that must identify at most one resource.
            create_spec: Attributes used when creating.
            tags: Tags applied after creation. Failures propagate.

        Returns:
            The existing or newly created resource.

        Raises:
            AmbiguousResourceError: If more than one resource matches.
        """
        existing = self.find(kind, filters)
        if existing is not None:
            logger.debug(
                "Resource already exists",
                extra={"kind": kind.value, "resource_id": existing.id, "filters": filters},
            )
            return existing

        _, create_method = RESOURCE_OPERATIONS[kind]
        try:
            created = getattr(self._client, create_method)(create_spec)
        except AlreadyExistsError:
            adopted = self.find(kind, filters)
            if adopted is None:
                raise
            logger.info(
                "Adopted resource created concurrently",
                extra={"kind": kind.value, "resource_id": adopted.id, "filters": filters},
            )
            return adopted

        if tags:
            created.tags = self._client.replace_resource_tags(kind, created.id, list(tags))

        logger.info(
            "Created resource",
            extra={
                "kind": kind.value,
                "resource_id": created.id,
                "resource_name": create_spec.get("name", ""),
            },
        )
        return created

    def ensure(
        self,
        kind: ResourceKind,
        filters: dict[str, Any],
        create_spec: dict[str, Any],
        tags: Sequence[str] | None = None,
    ) -> str:
        """Same as ensure_resource() but returns only the resource ID."""
        return self.ensure_resource(kind, filters, create_spec, tags).id
