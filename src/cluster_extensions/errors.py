"""Error taxonomy for extension reconciliation.

Every failure raised by the ensure primitives and reconcilers derives from
ExtensionsError so callers can tell domain faults apart from raw backend
exceptions (which are propagated unchanged and treated as transient).

CLASSIFICATION:
- NotFoundError: zero matches / missing object. Benign, triggers create.
- AlreadyExistsError: create lost a race with another creator. Benign, adopt.
- AmbiguousResourceError: more than one match on a unique filter. Fatal.
- PrerequisiteNotReadyError: an input the step depends on is not available yet.
- NoFixedIPError: a VIP port resolved without an address.
- BackendUnavailableError: a backend capability is not configured. Non-fatal.
"""

from __future__ import annotations

from typing import Any


class ExtensionsError(Exception):
    """Base class for all extension reconciliation errors."""

    pass


class NotFoundError(ExtensionsError):
    """Raised by backends when a requested object does not exist."""

    pass


class AlreadyExistsError(ExtensionsError):
    """Raised by backends when a create conflicts with an existing object."""

    pass


class AmbiguousResourceError(ExtensionsError):
    """Raised when a lookup intended to be unique returned several matches.

    This is a configuration fault. It is never resolved by picking one.
    """

    def __init__(self, kind: str, filters: dict[str, Any], count: int) -> None:
        self.kind = kind
        self.filters = dict(filters)
        self.count = count
        super().__init__(f"found {count} {kind} resources matching {self.filters}, expected at most one")


class PrerequisiteNotReadyError(ExtensionsError):
    """Raised when a step cannot run because an input is not available yet."""

    def __init__(self, prerequisite: str, message: str | None = None) -> None:
        self.prerequisite = prerequisite
        super().__init__(message or f"{prerequisite} is not ready")


class NoFixedIPError(ExtensionsError):
    """Raised when a VIP port has no assigned fixed address."""

    def __init__(self, port_id: str) -> None:
        self.port_id = port_id
        super().__init__(f"keepalived VIP port {port_id} has no fixed IP")


class BackendUnavailableError(ExtensionsError):
    """Raised when a backend capability is not configured for this scope.

    Distinct from transient failures: dependent steps are skipped, not failed.
    """

    pass
