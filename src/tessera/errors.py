"""Error taxonomy for the framework.

Only :class:`ConfigurationError` is raised to callers (at registration time).
The navigation errors are carried inside result objects, invocation faults are
recorded as diagnostics, and layout inconsistencies are logged and clamped.
"""

from __future__ import annotations


class TesseraError(Exception):
    """Base class for every error defined by the framework."""


class ConfigurationError(TesseraError):
    """A route or tree operation was malformed (bad path, missing factory, cycle)."""


class NavigationRejected(TesseraError):
    """A guard or the auth check refused a transition."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"navigation to {path} rejected: {reason}")
        self.path = path
        self.reason = reason


class NavigationFailure(TesseraError):
    """A transition could not be completed (unknown route, factory fault, ...)."""

    def __init__(self, path: str, reason: str, cause: BaseException | None = None) -> None:
        super().__init__(f"navigation to {path} failed: {reason}")
        self.path = path
        self.reason = reason
        self.cause = cause


class InvocationFault(TesseraError):
    """A node capability raised while being dispatched."""

    def __init__(self, component_type: str, capability: str, cause: BaseException) -> None:
        super().__init__(f"{component_type}.{capability} faulted: {cause!r}")
        self.component_type = component_type
        self.capability = capability
        self.cause = cause


class LayoutInconsistency(TesseraError):
    """Track or bound definitions that had to be clamped to resolve."""
