"""
Dependency orchestrator — interactive install of a module's dependencies.

Selects which declared dependencies to install (required ones always,
optional ones by condition, flag or prompt), expands the selection
through the resolver so nested dependencies come along, confirms the
plan, then installs module by module in dependency order.

A module installed once in this session is not installed again, so a
diamond (A → B, A → C, B → D, C → D) installs D once.
"""

from __future__ import annotations

import logging

from plugin_manifest.core.catalog import ModuleCatalog
from plugin_manifest.core.engine.installer import Installer, InstallOptions
from plugin_manifest.core.engine.resolver import DependencyInfo, DependencyResolver, ResolveOptions
from plugin_manifest.core.errors import CircularDependencyError, MalformedTargetError, ManifestError
from plugin_manifest.core.models.asset import AssetDescriptor, DependencyConfig
from plugin_manifest.core.models.result import ErrorKind, InstallResult
from plugin_manifest.core.persistence.registry import ManifestRegistry
from plugin_manifest.core.session import Session

logger = logging.getLogger(__name__)


class DependencyInstaller:
    """Installs dependency modules on behalf of a parent module."""

    def __init__(
        self,
        resolver: DependencyResolver,
        installer: Installer,
        registry: ManifestRegistry,
        catalog: ModuleCatalog,
    ):
        self._resolver = resolver
        self._installer = installer
        self._registry = registry
        self._catalog = catalog
        self._installed: set[str] = set()

    @property
    def installed_this_session(self) -> frozenset[str]:
        return frozenset(self._installed)

    def install_dependencies(
        self,
        descriptor: AssetDescriptor,
        options: InstallOptions,
        session: Session,
    ) -> InstallResult:
        """Run the whole select → resolve → confirm → install flow."""
        parent = descriptor.module or "Unknown"
        declared = descriptor.dependencies

        if not declared:
            return InstallResult.skip(
                "dependencies", "dependencies", "No dependencies defined", success=True
            )

        if not options.with_dependencies:
            return InstallResult.skip(
                "dependencies",
                "dependencies",
                "Dependency installation not requested (use --with-dependencies)",
                success=True,
            )

        session.out()
        session.out(f"Processing dependencies for {parent}...")

        selected = self._select(self._resolver.dependency_info(declared), options, session)
        if not selected:
            return InstallResult.skip(
                "dependencies", "dependencies", "No dependencies selected for installation",
                success=True,
            )

        try:
            tree = self._resolver.build_dependency_tree(
                self._catalog.as_mapping(),
                selected,
                ResolveOptions(install_optional=False, force_all=options.all_deps),
            )
        except CircularDependencyError as e:
            session.error(str(e))
            return InstallResult.error("dependencies", "dependencies", str(e))

        configs = self._edge_configs(declared, tree)
        order = list(tree)

        session.out()
        session.out("Dependency installation order:")
        for position, name in enumerate(order, start=1):
            session.out(f"  {position}. {name}")

        if not options.dry_run and not session.ask_yes_no(
            "Proceed with dependency installation?", default=True
        ):
            return InstallResult.cancelled(
                "dependencies", "dependencies", "Dependency installation cancelled by user"
            )

        return self._install_in_order(parent, order, configs, options, session)

    # ── Selection ───────────────────────────────────────────────

    def _select(
        self,
        info: dict[str, DependencyInfo],
        options: InstallOptions,
        session: Session,
    ) -> list[str]:
        selected: list[str] = []
        for name, dep in info.items():
            kind = "required" if dep.required else "optional"
            session.out(f"  - {name} ({kind}): {dep.reason}")

            if name not in self._catalog:
                session.out("    Not available (module not found); skipped")
                continue

            if dep.condition is not None and not dep.condition_met:
                if dep.required:
                    session.out("    Condition not met (required, installing anyway)")
                else:
                    session.out("    Condition not met; skipped")
                    continue

            if dep.required or options.all_deps:
                selected.append(name)
            elif options.dry_run:
                session.out("    Optional; not prompted in dry run")
            elif session.ask_yes_no(f"    {dep.prompt}", default=False):
                selected.append(name)

        return selected

    @staticmethod
    def _edge_configs(
        declared: dict[str, DependencyConfig],
        tree: dict[str, dict[str, DependencyConfig]],
    ) -> dict[str, DependencyConfig]:
        """Config for every module in the plan.

        Directly declared dependencies use the parent's config; nested
        ones use the first config found in the tree.
        """
        configs = dict(declared)
        for deps in tree.values():
            for name, config in deps.items():
                configs.setdefault(name, config)
        return configs

    # ── Install ─────────────────────────────────────────────────

    def _install_in_order(
        self,
        parent: str,
        order: list[str],
        configs: dict[str, DependencyConfig],
        options: InstallOptions,
        session: Session,
    ) -> InstallResult:
        results: list[InstallResult] = []
        installed = duplicates = failed = 0

        for name in order:
            config = configs.get(name) or DependencyConfig()

            if name in self._installed:
                duplicates += 1
                session.out(f"  [SKIP] {name} (already installed in this session)")
                if not options.dry_run:
                    self._registry.record_dependency(parent, name, config)
                continue

            session.out()
            session.out(f"Installing {name}...")
            result = self._install_module(name, config, options, session)
            results.append(result)

            if result.success:
                installed += 1
                self._installed.add(name)
                if not options.dry_run:
                    self._registry.record_dependency(parent, name, config)
                continue

            failed += 1
            if config.required:
                session.error(f"Required dependency {name} failed to install. Stopping.")
                break
            session.out(f"  Optional dependency {name} failed; continuing")

        message = f"Dependencies: {installed} installed"
        if duplicates:
            message += f", {duplicates} skipped (duplicates)"
        if failed:
            message += f", {failed} failed"

        return InstallResult.batch(
            failed == 0,
            "dependencies",
            "dependencies",
            "batch-installed" if failed == 0 else "partial",
            message,
            results,
            metadata={"installed": installed, "skipped": duplicates, "failed": failed},
        )

    def _install_module(
        self,
        name: str,
        config: DependencyConfig,
        options: InstallOptions,
        session: Session,
    ) -> InstallResult:
        """Install one dependency module's assets (narrowed to its tags)."""
        descriptors = self._catalog.get(name)
        if descriptors is None:
            return InstallResult.error(name, name, f"Module {name} is not available", ErrorKind.NOT_FOUND)

        if config.tags is not None:
            descriptors = [d for d in descriptors if d.tag in config.tags]

        installed = skipped = failed = 0
        for descriptor in descriptors:
            if descriptor.is_dependencies:
                continue
            try:
                result = self._installer.install(descriptor, options)
            except ManifestError as e:
                kind = ErrorKind.MALFORMED_TARGET if isinstance(e, MalformedTargetError) else None
                result = InstallResult.error(
                    descriptor.source or descriptor.key or "",
                    descriptor.destination or "",
                    str(e),
                    kind,
                )

            session.out(f"  {describe(result)}")
            if result.skipped:
                skipped += 1
            elif result.success:
                installed += 1
            else:
                failed += 1

        return InstallResult(
            success=failed == 0,
            source=name,
            destination=name,
            status="installed" if failed == 0 else "partial",
            message=f"{name}: {installed} installed, {skipped} skipped, {failed} failed",
            metadata={"installed": installed, "skipped": skipped, "failed": failed},
        )


def describe(result: InstallResult) -> str:
    """One plain-text line for a result."""
    label = result.status.upper()
    target = result.destination or result.source
    line = f"[{label}] {target}"
    if result.message:
        line += f" ({result.message})"
    return line
