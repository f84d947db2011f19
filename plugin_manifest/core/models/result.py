"""
InstallResult — the outcome contract of every install operation.

Appliers and the installer return results, they do not raise for
ordinary failures. A batch result carries its children in
``batch_results``; children are plain results.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

InstallStatus = Literal[
    "installed",
    "batch-installed",
    "appended",
    "merged",
    "would-install",
    "would-append",
    "would-merge",
    "skipped",
    "error",
    "cancelled",
    "partial",
]


class ErrorKind(str, Enum):
    """Why an operation did not apply."""

    NOT_FOUND = "not_found"
    TOO_LARGE = "too_large"
    MALFORMED_TARGET = "malformed_target"
    ALREADY_COMPLETED = "already_completed"
    CAPABILITY_MISSING = "capability_missing"


class InstallResult(BaseModel):
    """Result of applying one asset descriptor (or a batch of them)."""

    success: bool
    source: str = ""
    destination: str = ""
    status: InstallStatus = "installed"
    message: str | None = None
    error_kind: ErrorKind | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    batch_results: list[InstallResult] | None = None

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def failed(self) -> bool:
        """An outcome that counts as a failure (not a success, skip or user cancel)."""
        return not self.success and self.status not in ("skipped", "cancelled")

    @property
    def is_batch(self) -> bool:
        return self.batch_results is not None

    @classmethod
    def installed(
        cls,
        source: str,
        destination: str,
        status: InstallStatus = "installed",
        message: str | None = None,
        **kwargs: Any,
    ) -> InstallResult:
        """Create a success result."""
        return cls(
            success=True,
            source=source,
            destination=destination,
            status=status,
            message=message,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        source: str,
        destination: str,
        message: str,
        **kwargs: Any,
    ) -> InstallResult:
        """Create a skip result (nothing to do, not a failure)."""
        kwargs.setdefault("success", False)
        return cls(
            source=source,
            destination=destination,
            status="skipped",
            message=message,
            **kwargs,
        )

    @classmethod
    def error(
        cls,
        source: str,
        destination: str,
        message: str,
        kind: ErrorKind | None = None,
        **kwargs: Any,
    ) -> InstallResult:
        """Create a failure result."""
        return cls(
            success=False,
            source=source,
            destination=destination,
            status="error",
            message=message,
            error_kind=kind,
            **kwargs,
        )

    @classmethod
    def cancelled(cls, source: str, destination: str, message: str) -> InstallResult:
        """Create a result for an operation the user declined."""
        return cls(
            success=False,
            source=source,
            destination=destination,
            status="cancelled",
            message=message,
        )

    @classmethod
    def batch(
        cls,
        success: bool,
        source: str,
        destination: str,
        status: InstallStatus,
        message: str,
        children: list[InstallResult],
        **kwargs: Any,
    ) -> InstallResult:
        """Create an aggregated result carrying per-child detail."""
        return cls(
            success=success,
            source=source,
            destination=destination,
            status=status,
            message=message,
            batch_results=list(children),
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
