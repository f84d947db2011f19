"""
Manifest registry — the ledger of completed install operations.

The ledger is stored as JSON in ``config/manifest_registry.json`` (or
wherever the project points it). Every mutation is a whole-file
read-modify-write, saved atomically (temp file, then rename) so a crash
mid-write never leaves a truncated ledger.

Paths are stored relative to the application root so the ledger stays
valid when the application moves.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plugin_manifest.core.appliers.copy import migration_files
from plugin_manifest.core.models.asset import AssetDescriptor, DependencyConfig, OperationType
from plugin_manifest.core.models.ledger import DependencyEdge, LedgerDocument, LedgerRecord
from plugin_manifest.core.models.project import DEFAULT_LEDGER_PATH

logger = logging.getLogger(__name__)

# Whether a completed operation type may be run again on request
REINSTALL_POLICY: dict[str, bool] = {
    OperationType.COPY.value: True,
    OperationType.APPEND_ENV.value: True,
    OperationType.COPY_SAFE.value: False,
    OperationType.APPEND.value: False,
    OperationType.MERGE.value: False,
}


def _op_key(operation_type: OperationType | str) -> str:
    return operation_type.value if isinstance(operation_type, OperationType) else str(operation_type)


class ManifestRegistry:
    """Ledger access for one application root.

    The ledger is re-read on every call; nothing is cached between
    operations.
    """

    def __init__(self, app_root: Path, path: Path | None = None):
        self._root = Path(app_root)
        self._path = path or self._root / DEFAULT_LEDGER_PATH

    @property
    def path(self) -> Path:
        return self._path

    @property
    def app_root(self) -> Path:
        return self._root

    # ── Load / save ─────────────────────────────────────────────

    def load(self) -> LedgerDocument:
        """Load the ledger. Missing or corrupt files load as an empty ledger."""
        if not self._path.is_file():
            logger.debug("No ledger at %s, starting empty", self._path)
            return LedgerDocument()

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return LedgerDocument.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.warning("Corrupt ledger %s: %s, starting empty", self._path, e)
            self._preserve_corrupt()
            return LedgerDocument()
        except OSError as e:
            logger.warning("Cannot load ledger from %s: %s, starting empty", self._path, e)
            return LedgerDocument()

    @property
    def corrupt_path(self) -> Path:
        return self._path.with_name(self._path.name + ".corrupt")

    def _preserve_corrupt(self) -> None:
        """Keep a copy of an unreadable ledger before the next save replaces it."""
        try:
            shutil.copy2(self._path, self.corrupt_path)
        except OSError as e:
            logger.error("Cannot back up corrupt ledger to %s: %s", self.corrupt_path, e)
            return
        logger.warning("Corrupt ledger copied to %s", self.corrupt_path)

    def save(self, document: LedgerDocument) -> None:
        """Write the ledger atomically (write to temp, then rename)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data = document.model_dump(mode="json", by_alias=True, exclude_none=True)
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".manifest_registry_",
                suffix=".tmp",
            )
            tmp = Path(tmp_path)
            try:
                with open(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                tmp.replace(self._path)
                logger.debug("Ledger saved to %s", self._path)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("Failed to save ledger to %s: %s", self._path, e)
            raise

    # ── Paths ───────────────────────────────────────────────────

    def to_relative(self, path: str | Path) -> str:
        """Strip the application root prefix and normalize separators."""
        text = str(path).replace("\\", "/")
        root = str(self._root).replace("\\", "/").rstrip("/")
        if text == root:
            return ""
        if text.startswith(root + "/"):
            text = text[len(root) + 1:]
        while text.startswith("./"):
            text = text[2:]
        return text

    def to_absolute(self, path: str | Path) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self._root / p

    # ── Recording ───────────────────────────────────────────────

    def record_installed(
        self,
        module: str,
        operation_type: OperationType | str,
        tag: str,
        data: dict[str, Any],
    ) -> LedgerRecord:
        """Append a timestamped record of a completed operation."""
        data = dict(data)
        for field in ("source", "destination"):
            if data.get(field):
                data[field] = self.to_relative(data[field])

        record = LedgerRecord.model_validate(data)
        document = self.load()
        document.append(module, _op_key(operation_type), tag, record)
        self.save(document)
        logger.info("Recorded %s/%s/%s", module, _op_key(operation_type), tag)
        return record

    def record_dependency(
        self,
        parent: str,
        dependency: str,
        config: DependencyConfig | dict[str, Any] | None = None,
    ) -> None:
        """Record (or overwrite) the parent → dependency edge."""
        if isinstance(config, DependencyConfig):
            snapshot = config.snapshot()
        else:
            snapshot = dict(config or {})

        document = self.load()
        document.dependencies.setdefault(parent, {})[dependency] = DependencyEdge.model_validate(
            {k: v for k, v in snapshot.items() if v is not None}
        )
        self.save(document)
        logger.info("Recorded dependency %s → %s", parent, dependency)

    # ── Completion checks ───────────────────────────────────────

    def is_operation_completed(
        self,
        module: str,
        operation_type: OperationType | str,
        tag: str,
        descriptor: AssetDescriptor,
    ) -> bool:
        """Whether the operation this descriptor describes is already done."""
        op = _op_key(operation_type)

        if op in (OperationType.COPY.value, OperationType.COPY_SAFE.value):
            return self._is_copy_completed(module, op, tag, descriptor)

        if op == OperationType.APPEND_ENV.value:
            return False  # always re-checked against the file itself

        records = self.load().records(module, op, tag)
        destination = self.to_relative(descriptor.destination or "")

        if op == OperationType.APPEND.value:
            marker = descriptor.marker or None
            return any(
                r.destination == destination and (r.marker or None) == marker for r in records
            )

        if op == OperationType.MERGE.value:
            return any(r.destination == destination and r.key == descriptor.key for r in records)

        return False

    def _is_copy_completed(
        self,
        module: str,
        op: str,
        tag: str,
        descriptor: AssetDescriptor,
    ) -> bool:
        if not descriptor.source:
            return False
        source = self.to_absolute(descriptor.source)

        if not source.is_dir():
            if not descriptor.destination:
                return False
            return self.to_absolute(descriptor.destination).exists()

        files = migration_files(source)
        if not files:
            return True

        recorded = {r.source for r in self.load().records(module, op, tag)}
        return all(self.to_relative(f) in recorded for f in files)

    @staticmethod
    def can_reinstall(operation_type: OperationType | str) -> bool:
        return REINSTALL_POLICY.get(_op_key(operation_type), False)

    # ── Dependency queries ──────────────────────────────────────

    def get_dependencies(self, module: str) -> dict[str, DependencyEdge]:
        """Recorded dependencies of ``module``."""
        return dict(self.load().dependencies.get(module, {}))

    def get_dependents(self, module: str) -> list[str]:
        """Modules that recorded ``module`` as a dependency."""
        return [
            parent
            for parent, deps in self.load().dependencies.items()
            if module in deps
        ]

    def has_dependencies(self, module: str) -> bool:
        return bool(self.load().dependencies.get(module))

    # ── Reporting ───────────────────────────────────────────────

    def get_installed(
        self,
        module: str | None = None,
        operation_type: OperationType | str | None = None,
        tag: str | None = None,
    ) -> dict[str, Any]:
        """Ledger contents, optionally narrowed to module / type / tag.

        Narrowing returns the nested value at that level (records for a
        full module/type/tag triple).
        """
        data = self.load().model_dump(mode="json", exclude_none=True)["modules"]
        if module is None:
            return data

        operations = data.get(module, {})
        if operation_type is None:
            return operations

        tags = operations.get(_op_key(operation_type), {})
        if tag is None:
            return tags

        return {tag: tags.get(tag, [])}

    def get_module_status(self, module: str) -> dict[str, Any]:
        """Summary of what has been recorded for one module."""
        document = self.load()
        operations = document.modules.get(module, {})

        last_installed = None
        tags: set[str] = set()
        counts: dict[str, int] = {}
        for op, by_tag in operations.items():
            for tag, records in by_tag.items():
                tags.add(tag)
                counts[op] = counts.get(op, 0) + len(records)
                for r in records:
                    if last_installed is None or r.installed_at > last_installed:
                        last_installed = r.installed_at

        return {
            "module": module,
            "installed": bool(operations),
            "operation_counts": counts,
            "tags": sorted(tags),
            "last_installed": last_installed,
            "dependencies": sorted(document.dependencies.get(module, {})),
            "dependents": sorted(
                parent for parent, deps in document.dependencies.items() if module in deps
            ),
        }

    def get_all_module_statuses(self) -> dict[str, dict[str, Any]]:
        document = self.load()
        names = sorted(set(document.modules) | set(document.dependencies))
        return {name: self.get_module_status(name) for name in names}
