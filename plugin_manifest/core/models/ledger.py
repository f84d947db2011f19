"""
Ledger document — the persisted record of completed install operations.

Serialized to ``config/manifest_registry.json`` by the registry:

    {
      "schema_version": 1,
      "modules": {module: {operation_type: {tag: [record, ...]}}},
      "_dependencies": {parent: {dependency: edge}}
    }

Records are append-only. Dependency edges are keyed by ordered pair
and overwritten when re-recorded.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class LedgerRecord(BaseModel):
    """One completed operation instance.

    Only the fields relevant to the operation type are set; anything
    else a caller records is kept as an extra field.
    """

    model_config = ConfigDict(extra="allow")

    destination: str | None = None
    source: str | None = None
    marker: str | None = None
    key: str | None = None
    env_vars: list[str] | None = None
    added_count: int | None = None
    completed: bool = True
    installed_at: str = Field(default_factory=_now_iso)


class DependencyEdge(BaseModel):
    """A recorded parent → dependency installation."""

    model_config = ConfigDict(extra="allow")

    required: bool = False
    tags: list[str] | None = None
    reason: str = ""
    installed_at: str = Field(default_factory=_now_iso)


# module → operation type → tag → records
ModuleOperations = dict[str, dict[str, list[LedgerRecord]]]


class LedgerDocument(BaseModel):
    """Root ledger model."""

    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = 1
    modules: dict[str, ModuleOperations] = Field(default_factory=dict)
    dependencies: dict[str, dict[str, DependencyEdge]] = Field(
        default_factory=dict,
        alias="_dependencies",
    )

    def records(self, module: str, operation_type: str, tag: str) -> list[LedgerRecord]:
        """Records for one module/operation/tag, empty if none."""
        return self.modules.get(module, {}).get(operation_type, {}).get(tag, [])

    def append(
        self,
        module: str,
        operation_type: str,
        tag: str,
        record: LedgerRecord,
    ) -> None:
        self.modules.setdefault(module, {}).setdefault(operation_type, {}).setdefault(
            tag, []
        ).append(record)
