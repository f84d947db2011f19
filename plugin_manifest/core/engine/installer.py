"""
Installer — applies one asset descriptor to the host application.

The installer is the dispatch point between declarative descriptors and
the appliers that touch files. It resolves paths against the
application root, consults the ledger for operations that must only
happen once, and records successful operations.

Flow:
    descriptor → ledger check → applier → result → ledger record
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from plugin_manifest.core.appliers.append import TextAppender
from plugin_manifest.core.appliers.copy import FileCopier
from plugin_manifest.core.appliers.env import EnvInstaller
from plugin_manifest.core.appliers.merge import ConfigMerger
from plugin_manifest.core.errors import UnknownOperationTypeError
from plugin_manifest.core.models.asset import AssetDescriptor, OperationType
from plugin_manifest.core.models.result import ErrorKind, InstallResult
from plugin_manifest.core.persistence.registry import ManifestRegistry
from plugin_manifest.core.session import Session

if TYPE_CHECKING:
    from plugin_manifest.core.engine.orchestrator import DependencyInstaller

logger = logging.getLogger(__name__)


@dataclass
class InstallOptions:
    """Flags for one install run.

    ``no_dependencies`` wins over ``with_dependencies``;
    ``update_dependencies`` implies ``existing`` and ``with_dependencies``.
    """

    force: bool = False
    existing: bool = False
    dry_run: bool = False
    with_dependencies: bool = False
    all_deps: bool = False
    no_dependencies: bool = False
    update_dependencies: bool = False
    session: Session | None = None

    def __post_init__(self) -> None:
        if self.update_dependencies:
            self.existing = True
            self.with_dependencies = True
        if self.no_dependencies:
            self.with_dependencies = False

    def flags(self) -> dict[str, bool]:
        return {
            "force": self.force,
            "existing": self.existing,
            "dry_run": self.dry_run,
            "with_dependencies": self.with_dependencies,
            "all_deps": self.all_deps,
        }


_REQUIRED_FIELDS: dict[OperationType, tuple[str, ...]] = {
    OperationType.COPY: ("source", "destination"),
    OperationType.COPY_SAFE: ("source", "destination"),
    OperationType.APPEND: ("destination", "content"),
    OperationType.APPEND_ENV: ("destination",),
    OperationType.MERGE: ("destination", "key"),
    OperationType.DEPENDENCIES: (),
}


class Installer:
    """Dispatches descriptors to appliers and keeps the ledger current."""

    def __init__(
        self,
        registry: ManifestRegistry,
        app_root: Path,
        *,
        copier: FileCopier | None = None,
        appender: TextAppender | None = None,
        env_installer: EnvInstaller | None = None,
        merger: ConfigMerger | None = None,
        dependency_installer: DependencyInstaller | None = None,
    ):
        self.registry = registry
        self.app_root = Path(app_root)
        self.copier = copier or FileCopier()
        self.appender = appender or TextAppender()
        self.env_installer = env_installer or EnvInstaller()
        self.merger = merger or ConfigMerger()
        self.dependency_installer = dependency_installer

        self._handlers: dict[OperationType, Callable[[AssetDescriptor, InstallOptions], InstallResult]] = {
            OperationType.COPY: self._install_copy,
            OperationType.COPY_SAFE: self._install_copy_safe,
            OperationType.APPEND: self._install_append,
            OperationType.APPEND_ENV: self._install_env,
            OperationType.MERGE: self._install_merge,
            OperationType.DEPENDENCIES: self._install_dependencies,
        }

    def resolve_path(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self.app_root / p

    def install(
        self,
        descriptor: AssetDescriptor,
        options: InstallOptions | None = None,
    ) -> InstallResult:
        """Apply one descriptor.

        Raises:
            UnknownOperationTypeError: If nothing handles the descriptor's type.
            MalformedTargetError: If a merge target is not a config module.
        """
        options = options or InstallOptions()
        handler = self._handlers.get(descriptor.operation_type)
        if handler is None:
            raise UnknownOperationTypeError(str(descriptor.operation_type))

        missing = [
            name
            for name in _REQUIRED_FIELDS.get(descriptor.operation_type, ())
            if getattr(descriptor, name) is None
        ]
        if missing:
            return InstallResult.error(
                descriptor.source or "",
                descriptor.destination or "",
                f"Malformed {descriptor.operation_type.value} asset: missing {', '.join(missing)}",
            )

        result = handler(descriptor, options)
        logger.info(
            "%s %s/%s: %s%s",
            descriptor.operation_type.value,
            descriptor.module or "?",
            descriptor.tag,
            result.status,
            f" ({result.message})" if result.message else "",
        )
        return result

    # ── Copy ────────────────────────────────────────────────────

    def _install_copy(self, descriptor: AssetDescriptor, options: InstallOptions) -> InstallResult:
        source = self.resolve_path(descriptor.source)
        destination = self.resolve_path(descriptor.destination)

        if descriptor.options.get("rename_with_plugin"):
            namespace = descriptor.options.get("plugin_namespace") or descriptor.module
            result = self.copier.install_migrations(source, destination, namespace, options.dry_run)
        elif destination.exists() and not options.force and not options.existing:
            return InstallResult.skip(
                str(source), str(destination), "File exists (use --force to overwrite)"
            )
        else:
            updating = destination.exists()
            result = self.copier.copy(source, destination, options.dry_run)
            if updating and result.success:
                result = result.model_copy(update={"message": "Updated existing file"})

        self._record_copy(descriptor, result, options)
        return result

    def _install_copy_safe(self, descriptor: AssetDescriptor, options: InstallOptions) -> InstallResult:
        source = self.resolve_path(descriptor.source)
        destination = self.resolve_path(descriptor.destination)

        if destination.exists():
            return InstallResult.skip(
                str(source), str(destination), "File exists (copy-safe never overwrites)"
            )

        result = self.copier.copy(source, destination, options.dry_run)
        self._record_copy(descriptor, result, options)
        return result

    def _record_copy(
        self,
        descriptor: AssetDescriptor,
        result: InstallResult,
        options: InstallOptions,
    ) -> None:
        if options.dry_run:
            return
        if result.is_batch:
            for child in result.batch_results or []:
                if child.success:
                    self.registry.record_installed(
                        descriptor.module,
                        descriptor.operation_type,
                        descriptor.tag,
                        {"source": child.source, "destination": child.destination},
                    )
        elif result.success:
            self.registry.record_installed(
                descriptor.module,
                descriptor.operation_type,
                descriptor.tag,
                {"source": result.source, "destination": result.destination},
            )

    # ── Append ──────────────────────────────────────────────────

    def _install_append(self, descriptor: AssetDescriptor, options: InstallOptions) -> InstallResult:
        destination = self.resolve_path(descriptor.destination)

        if not options.force and self.registry.is_operation_completed(
            descriptor.module, OperationType.APPEND, descriptor.tag, descriptor
        ):
            return InstallResult.skip(
                descriptor.content,
                str(destination),
                "Already appended (use --force to append again)",
                error_kind=ErrorKind.ALREADY_COMPLETED,
            )

        result = self.appender.append(
            destination, descriptor.content, descriptor.marker, options.dry_run
        )

        if result.success and not options.dry_run:
            self.registry.record_installed(
                descriptor.module,
                OperationType.APPEND,
                descriptor.tag,
                {"destination": str(destination), "marker": descriptor.marker or None},
            )
        return result

    # ── Env ─────────────────────────────────────────────────────

    def _install_env(self, descriptor: AssetDescriptor, options: InstallOptions) -> InstallResult:
        destination = self.resolve_path(descriptor.destination)
        result = self.env_installer.append_vars(
            destination, descriptor.env_vars, descriptor.comment, options.dry_run
        )

        if result.success and not options.dry_run and result.metadata.get("added"):
            self.registry.record_installed(
                descriptor.module,
                OperationType.APPEND_ENV,
                descriptor.tag,
                {
                    "destination": str(destination),
                    "env_vars": result.metadata.get("added_vars", []),
                    "added_count": result.metadata["added"],
                },
            )
        return result

    # ── Merge ───────────────────────────────────────────────────

    def _install_merge(self, descriptor: AssetDescriptor, options: InstallOptions) -> InstallResult:
        destination = self.resolve_path(descriptor.destination)

        if not options.force and self.registry.is_operation_completed(
            descriptor.module, OperationType.MERGE, descriptor.tag, descriptor
        ):
            return InstallResult.skip(
                descriptor.key,
                str(destination),
                "Already merged (use --force to merge again)",
                error_kind=ErrorKind.ALREADY_COMPLETED,
            )

        result = self.merger.merge(destination, descriptor.key, descriptor.value, options.dry_run)

        if result.success and not options.dry_run:
            self.registry.record_installed(
                descriptor.module,
                OperationType.MERGE,
                descriptor.tag,
                {"destination": str(destination), "key": descriptor.key},
            )
        return result

    # ── Dependencies ────────────────────────────────────────────

    def _install_dependencies(self, descriptor: AssetDescriptor, options: InstallOptions) -> InstallResult:
        if self.dependency_installer is None:
            return InstallResult.error(
                "dependencies", "dependencies",
                "Dependency installer not available",
                ErrorKind.CAPABILITY_MISSING,
            )
        if options.session is None:
            return InstallResult.error(
                "dependencies", "dependencies",
                "Dependency installation needs an interactive session",
                ErrorKind.CAPABILITY_MISSING,
            )
        return self.dependency_installer.install_dependencies(descriptor, options, options.session)
