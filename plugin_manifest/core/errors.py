"""
Error types raised by the install core.

Most failures are reported as structured ``InstallResult`` values.
The exceptions here are the few conditions that must reach the
caller explicitly: a plan that cannot be ordered, a target that
cannot be patched safely, and a descriptor the engine cannot dispatch.
"""

from __future__ import annotations


class ManifestError(Exception):
    """Base class for all install-core errors."""


class CircularDependencyError(ManifestError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        path = list(cycle)
        if len(path) == 1 or (path and path[0] != path[-1]):
            path.append(path[0])
        super().__init__("Circular dependencies detected: " + " → ".join(path))


class MalformedTargetError(ManifestError):
    """Raised when a config module does not have the expected shape."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class UnknownOperationTypeError(ManifestError):
    """Raised when a descriptor carries an operation type with no handler."""

    def __init__(self, operation_type: object):
        self.operation_type = operation_type
        super().__init__(f"Unknown install type: {operation_type}")
