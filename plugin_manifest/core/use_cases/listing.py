"""
List use case — modules, their tags and assets, with completion markers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from plugin_manifest.core.catalog import ModuleCatalog
from plugin_manifest.core.config.loader import ConfigError
from plugin_manifest.core.engine.wiring import Services, open_services
from plugin_manifest.core.models.asset import AssetDescriptor, OperationType

logger = logging.getLogger(__name__)


@dataclass
class AssetView:
    """One declared asset and whether the ledger considers it done."""

    operation_type: str
    tag: str
    label: str
    completed: bool = False
    can_reinstall: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.operation_type,
            "tag": self.tag,
            "label": self.label,
            "completed": self.completed,
            "can_reinstall": self.can_reinstall,
        }


@dataclass
class ModuleListing:
    name: str
    tags: dict[str, list[AssetView]] = field(default_factory=dict)

    @property
    def asset_count(self) -> int:
        return sum(len(assets) for assets in self.tags.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tags": {tag: [a.to_dict() for a in assets] for tag, assets in self.tags.items()},
        }


@dataclass
class ListResult:
    project_root: Path | None = None
    modules: list[ModuleListing] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {
            "project_root": str(self.project_root),
            "modules": [m.to_dict() for m in self.modules],
        }


def _label(services: Services, descriptor: AssetDescriptor) -> str:
    registry = services.registry
    op = descriptor.operation_type
    if op == OperationType.DEPENDENCIES:
        return ", ".join(descriptor.dependencies) or "(none)"
    if op == OperationType.MERGE:
        return f"{descriptor.key} → {registry.to_relative(descriptor.destination or '')}"
    if op == OperationType.APPEND_ENV:
        return f"{', '.join(descriptor.env_vars)} → {registry.to_relative(descriptor.destination or '')}"
    if op == OperationType.APPEND:
        return f"→ {registry.to_relative(descriptor.destination or '')}"
    return (
        f"{registry.to_relative(descriptor.source or '')} → "
        f"{registry.to_relative(descriptor.destination or '')}"
    )


def _completed(services: Services, descriptor: AssetDescriptor) -> bool:
    registry = services.registry
    op = descriptor.operation_type
    if op == OperationType.DEPENDENCIES:
        recorded = registry.get_dependencies(descriptor.module)
        return bool(descriptor.dependencies) and all(
            name in recorded for name in descriptor.dependencies
        )
    if op == OperationType.APPEND_ENV:
        # Re-checked on every install; show whether it ever ran
        return bool(registry.get_installed(descriptor.module, op, descriptor.tag)[descriptor.tag])
    return registry.is_operation_completed(descriptor.module, op, descriptor.tag, descriptor)


def describe_module(services: Services, name: str) -> ModuleListing:
    listing = ModuleListing(name=name)
    for tag, descriptors in services.catalog.by_tag(name).items():
        listing.tags[tag] = [
            AssetView(
                operation_type=d.operation_type.value,
                tag=tag,
                label=_label(services, d),
                completed=_completed(services, d),
                can_reinstall=services.registry.can_reinstall(d.operation_type),
            )
            for d in descriptors
        ]
    return listing


def list_modules(
    config_path: Path | None = None,
    module: str | None = None,
    catalog: ModuleCatalog | None = None,
) -> ListResult:
    """List every discovered module (or just ``module``)."""
    result = ListResult()
    try:
        _project, services = open_services(config_path, catalog)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.project_root = services.app_root

    if module is not None:
        if module not in services.catalog:
            result.error = f"Module '{module}' not found or has no manifest"
            return result
        names = [module]
    else:
        names = services.catalog.names()

    result.modules = [describe_module(services, name) for name in names]
    return result
