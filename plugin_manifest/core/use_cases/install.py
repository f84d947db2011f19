"""
Install use case — install one module, or all modules, into the app.

Loads the project, discovers modules, wires the services, then applies
each selected module's descriptors tag by tag. With --with-dependencies
the module's dependencies install before any of its own assets. Every
module install outside dry-run leaves one entry in the audit log.

Flow:
    config → discover → wire → per module: per tag: install → audit
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from plugin_manifest.core.catalog import ModuleCatalog
from plugin_manifest.core.config.loader import ConfigError
from plugin_manifest.core.engine.installer import InstallOptions
from plugin_manifest.core.engine.wiring import Services, open_services
from plugin_manifest.core.errors import MalformedTargetError, ManifestError
from plugin_manifest.core.models.asset import AssetDescriptor
from plugin_manifest.core.models.project import Project
from plugin_manifest.core.models.result import ErrorKind, InstallResult
from plugin_manifest.core.persistence.audit import AuditEntry

logger = logging.getLogger(__name__)

ALL_TAGS = "all"


def generate_operation_id() -> str:
    """Unique id shared by the audit entries of one run."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return f"install-{now}-{uuid.uuid4().hex[:6]}"


@dataclass
class AssetOutcome:
    """One descriptor's result, with the tag it was installed under."""

    tag: str
    result: InstallResult

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, **self.result.to_dict()}


@dataclass
class ModuleReport:
    """Outcome of installing one module."""

    module: str
    tag: str | None = None
    outcomes: list[AssetOutcome] = field(default_factory=list)
    error: str | None = None
    duration_ms: int = 0

    @property
    def installed(self) -> int:
        return sum(1 for o in self.outcomes if o.result.success and not o.result.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.result.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.result.failed)

    @property
    def ok(self) -> bool:
        return self.error is None and self.failed == 0

    @property
    def status(self) -> str:
        if self.ok:
            return "ok"
        if self.installed > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "module": self.module,
            "tag": self.tag or ALL_TAGS,
            "status": self.status,
            "installed": self.installed,
            "skipped": self.skipped,
            "failed": self.failed,
            "assets": [o.to_dict() for o in self.outcomes],
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class InstallRunResult:
    """Result of an install run over one or more modules."""

    project: Project | None = None
    project_root: Path | None = None
    operation_id: str = ""
    dry_run: bool = False
    reports: list[ModuleReport] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and all(r.ok for r in self.reports)

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {
            "project_name": self.project.name if self.project else "",
            "project_root": str(self.project_root),
            "operation_id": self.operation_id,
            "dry_run": self.dry_run,
            "ok": self.ok,
            "modules": [r.to_dict() for r in self.reports],
        }


def install_module(
    services: Services,
    module: str,
    tag: str | None = None,
    options: InstallOptions | None = None,
) -> ModuleReport:
    """Install one module's assets (all tags, or just ``tag``)."""
    options = options or InstallOptions()
    report = ModuleReport(module=module, tag=tag)
    started = time.monotonic()

    if module not in services.catalog:
        report.error = f"Module '{module}' not found or has no manifest"
        return report

    by_tag = services.catalog.by_tag(module)
    if tag and tag != ALL_TAGS:
        if tag not in by_tag:
            report.error = (
                f"Tag '{tag}' not found in {module}. Available tags: {', '.join(by_tag)}"
            )
            return report
        by_tag = {tag: by_tag[tag]}

    # Dependencies go first so the module's own assets land after them
    first = None
    if options.with_dependencies:
        first = services.catalog.dependencies_of(module)
        if first is not None and first.tag in by_tag:
            report.outcomes.append(AssetOutcome(tag=first.tag, result=_apply(services, first, options)))
        else:
            first = None

    for tag_name, descriptors in by_tag.items():
        for descriptor in descriptors:
            if descriptor is first:
                continue
            report.outcomes.append(AssetOutcome(tag=tag_name, result=_apply(services, descriptor, options)))

    report.duration_ms = int((time.monotonic() - started) * 1000)
    return report


def _apply(services: Services, descriptor: AssetDescriptor, options: InstallOptions) -> InstallResult:
    try:
        return services.installer.install(descriptor, options)
    except ManifestError as e:
        logger.error("%s/%s: %s", descriptor.module, descriptor.tag, e)
        kind = ErrorKind.MALFORMED_TARGET if isinstance(e, MalformedTargetError) else None
        return InstallResult.error(
            descriptor.source or descriptor.key or "",
            descriptor.destination or "",
            str(e),
            kind,
        )


def _audit(services: Services, report: ModuleReport, options: InstallOptions, operation_id: str) -> None:
    services.audit.write(
        AuditEntry(
            operation_id=operation_id,
            operation_type="install",
            module=report.module,
            tags=sorted({o.tag for o in report.outcomes}),
            options=options.flags(),
            status=report.status,
            assets_total=len(report.outcomes),
            assets_installed=report.installed,
            assets_skipped=report.skipped,
            assets_failed=report.failed,
            duration_ms=report.duration_ms,
            errors=[
                o.result.message or o.result.status
                for o in report.outcomes
                if o.result.failed
            ] + ([report.error] if report.error else []),
        )
    )


def run_install(
    config_path: Path | None = None,
    modules: list[str] | None = None,
    tag: str | None = None,
    install_all: bool = False,
    options: InstallOptions | None = None,
    catalog: ModuleCatalog | None = None,
) -> InstallRunResult:
    """Install the named modules, or every discovered module.

    Args:
        config_path: Explicit manifest.yml (default: search upward).
        modules: Module names to install.
        tag: Restrict to one tag (None or "all" = every tag).
        install_all: Install every discovered module.
        options: Install flags (and the interactive session).
        catalog: Pre-built catalog (default: discover from config).
    """
    options = options or InstallOptions()
    result = InstallRunResult(dry_run=options.dry_run)

    try:
        project, services = open_services(config_path, catalog)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.project = project
    result.project_root = services.app_root
    result.operation_id = generate_operation_id()

    targets = services.catalog.names() if install_all else list(modules or [])
    if not targets:
        result.error = "No modules to install" if install_all else "No module specified"
        return result

    for name in targets:
        report = install_module(services, name, tag, options)
        result.reports.append(report)
        if not options.dry_run:
            _audit(services, report, options, result.operation_id)

    logger.info(
        "Install %s: %d module(s), %s",
        result.operation_id,
        len(result.reports),
        "ok" if result.ok else "with failures",
    )
    return result
