"""
Dependencies use case — declared dependencies, resolved trees and
what the ledger has recorded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plugin_manifest.core.catalog import ModuleCatalog
from plugin_manifest.core.config.loader import ConfigError
from plugin_manifest.core.engine.resolver import ResolveOptions
from plugin_manifest.core.engine.wiring import Services, open_services
from plugin_manifest.core.errors import CircularDependencyError

logger = logging.getLogger(__name__)


@dataclass
class DependencyRow:
    """One declared dependency of a module."""

    name: str
    required: bool
    tags: list[str] | None
    reason: str
    available: bool
    condition_met: bool = True
    recorded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "required": self.required,
            "tags": self.tags,
            "reason": self.reason,
            "available": self.available,
            "condition_met": self.condition_met,
            "recorded": self.recorded,
        }


@dataclass
class ModuleDependencies:
    module: str
    direct: list[DependencyRow] = field(default_factory=list)
    install_order: list[str] | None = None    # set when the tree was requested
    dependents: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "module": self.module,
            "dependencies": [row.to_dict() for row in self.direct],
            "dependents": self.dependents,
        }
        if self.install_order is not None:
            data["install_order"] = self.install_order
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class DependenciesResult:
    modules: list[ModuleDependencies] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {"modules": [m.to_dict() for m in self.modules]}


def describe_dependencies(services: Services, module: str, tree: bool = False) -> ModuleDependencies:
    """Declared dependencies of ``module``, optionally with the full install order."""
    report = ModuleDependencies(module=module)
    registry = services.registry

    descriptor = services.catalog.dependencies_of(module)
    declared = descriptor.dependencies if descriptor else {}
    recorded = registry.get_dependencies(module)

    for name, info in services.resolver.dependency_info(declared).items():
        report.direct.append(
            DependencyRow(
                name=name,
                required=info.required,
                tags=info.tags,
                reason=info.reason,
                available=name in services.catalog,
                condition_met=info.condition_met,
                recorded=name in recorded,
            )
        )

    report.dependents = registry.get_dependents(module)

    if tree:
        try:
            order = services.resolver.build_dependency_tree(
                services.catalog.as_mapping(), [module], ResolveOptions(force_all=True)
            )
            report.install_order = list(order)
        except CircularDependencyError as e:
            report.error = str(e)

    return report


def get_dependencies(
    config_path: Path | None = None,
    module: str | None = None,
    tree: bool = False,
    catalog: ModuleCatalog | None = None,
) -> DependenciesResult:
    """Dependency report for ``module``, or every module that declares any."""
    result = DependenciesResult()
    try:
        _project, services = open_services(config_path, catalog)
    except ConfigError as e:
        result.error = str(e)
        return result

    if module is not None:
        if module not in services.catalog:
            result.error = f"Module '{module}' not found or has no manifest"
            return result
        names = [module]
    else:
        names = [
            name
            for name in services.catalog.names()
            if services.catalog.dependencies_of(name) is not None
        ]

    result.modules = [describe_dependencies(services, name, tree) for name in names]
    return result
