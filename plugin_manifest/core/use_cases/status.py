"""
Status use case — what the ledger says has been installed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plugin_manifest.core.catalog import ModuleCatalog
from plugin_manifest.core.config.loader import ConfigError
from plugin_manifest.core.engine.wiring import open_services
from plugin_manifest.core.models.project import Project

logger = logging.getLogger(__name__)


@dataclass
class StatusResult:
    """Ledger summary for one module or all of them."""

    project: Project | None = None
    project_root: Path | None = None
    ledger_path: Path | None = None
    modules: dict[str, dict[str, Any]] = field(default_factory=dict)
    dependencies: dict[str, dict[str, dict[str, Any]]] | None = None
    audit_entries: int = 0
    error: str | None = None

    @property
    def installed_count(self) -> int:
        return sum(1 for m in self.modules.values() if m.get("installed"))

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        data: dict[str, Any] = {
            "project_name": self.project.name if self.project else "",
            "project_root": str(self.project_root),
            "ledger": str(self.ledger_path),
            "installed_count": self.installed_count,
            "modules": self.modules,
            "audit_entries": self.audit_entries,
        }
        if self.dependencies is not None:
            data["dependencies"] = self.dependencies
        return data


def get_status(
    config_path: Path | None = None,
    module: str | None = None,
    include_dependencies: bool = False,
    catalog: ModuleCatalog | None = None,
) -> StatusResult:
    """Report ledger state for ``module``, or for every known module.

    Known modules are those discovered now plus those the ledger
    remembers (a module may have been uninstalled since).
    """
    result = StatusResult()
    try:
        project, services = open_services(config_path, catalog)
    except ConfigError as e:
        result.error = str(e)
        return result

    registry = services.registry
    result.project = project
    result.project_root = services.app_root
    result.ledger_path = registry.path
    result.audit_entries = services.audit.entry_count()

    if module is not None:
        result.modules = {module: registry.get_module_status(module)}
        names = [module]
    else:
        statuses = registry.get_all_module_statuses()
        for name in services.catalog.names():
            statuses.setdefault(name, registry.get_module_status(name))
        result.modules = dict(sorted(statuses.items()))
        names = list(result.modules)

    if include_dependencies:
        result.dependencies = {
            name: {dep: edge.model_dump(exclude_none=True) for dep, edge in registry.get_dependencies(name).items()}
            for name in names
            if registry.has_dependencies(name)
        }

    return result
