"""
Service wiring — builds the collaborators for one session.

The installer and the dependency orchestrator need each other: the
installer delegates ``dependencies`` descriptors to the orchestrator,
and the orchestrator installs each dependency's assets through the
installer. They are built in stages: installer first, orchestrator
second, then the orchestrator is attached to the installer.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from plugin_manifest.core.catalog import ModuleCatalog, discover_modules
from plugin_manifest.core.config.loader import open_project
from plugin_manifest.core.engine.conditions import ConditionEvaluator
from plugin_manifest.core.engine.installer import Installer
from plugin_manifest.core.engine.orchestrator import DependencyInstaller
from plugin_manifest.core.engine.resolver import DependencyResolver
from plugin_manifest.core.models.project import Project
from plugin_manifest.core.persistence.audit import AuditWriter
from plugin_manifest.core.persistence.registry import ManifestRegistry


@dataclass
class Services:
    """Everything an install session needs, wired together."""

    app_root: Path
    catalog: ModuleCatalog
    registry: ManifestRegistry
    resolver: DependencyResolver
    installer: Installer
    dependency_installer: DependencyInstaller
    audit: AuditWriter


def build_services(
    app_root: Path,
    catalog: ModuleCatalog,
    project: Project | None = None,
) -> Services:
    """Wire registry, resolver, installer and orchestrator for ``app_root``."""
    project = project or Project(name=app_root.name)

    registry = ManifestRegistry(app_root, app_root / project.ledger)
    evaluator = ConditionEvaluator(app_root, app_root / project.config_file)
    resolver = DependencyResolver(evaluator)

    installer = Installer(registry, app_root)
    dependency_installer = DependencyInstaller(resolver, installer, registry, catalog)
    installer.dependency_installer = dependency_installer

    return Services(
        app_root=app_root,
        catalog=catalog,
        registry=registry,
        resolver=resolver,
        installer=installer,
        dependency_installer=dependency_installer,
        audit=AuditWriter(app_root / project.audit_log),
    )


def open_services(
    config_path: Path | None = None,
    catalog: ModuleCatalog | None = None,
) -> tuple[Project, Services]:
    """Load manifest.yml, discover modules (unless given) and wire services.

    Raises:
        ConfigError: If the project config is missing or invalid.
    """
    project, root = open_project(config_path)
    if catalog is None:
        catalog = discover_modules(project, root)
    return project, build_services(root, catalog, project)
