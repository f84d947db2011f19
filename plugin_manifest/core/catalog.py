"""
Module catalog — which modules exist and what assets they declare.

Modules are discovered two ways:

    manifest.yml        modules: {Blog: "blog_plugin.manifest:manifest"}
    entry points        group "plugin_manifest.modules", name = module name

Each target is a zero-argument callable returning a list of asset
descriptors (or plain dicts that validate into them). A manifest that
fails to import or validate is logged and skipped; it never aborts
discovery of the others.
"""

from __future__ import annotations

import importlib
import logging
import sys
from collections.abc import Iterable, Mapping
from importlib.metadata import entry_points
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plugin_manifest.core.errors import ManifestError
from plugin_manifest.core.models.asset import AssetDescriptor
from plugin_manifest.core.models.project import Project

logger = logging.getLogger(__name__)


def _to_descriptors(module: str, assets: Iterable[Any]) -> list[AssetDescriptor]:
    descriptors = []
    for position, asset in enumerate(assets, start=1):
        if not isinstance(asset, AssetDescriptor):
            try:
                asset = AssetDescriptor.model_validate(asset)
            except ValidationError as e:
                raise ManifestError(f"Invalid asset #{position} {_describe_raw(asset)}: {e}") from e
        descriptors.append(asset.with_module(module))
    return descriptors


def _describe_raw(asset: Any) -> str:
    if isinstance(asset, Mapping):
        kind = asset.get("type", asset.get("operation_type", "copy"))
        return f"(type={kind!r}, tag={asset.get('tag', 'default')!r})"
    return f"({type(asset).__name__})"


class ModuleCatalog:
    """Module name → asset descriptors, in discovery order."""

    def __init__(self, modules: Mapping[str, Iterable[Any]] | None = None):
        self._modules: dict[str, list[AssetDescriptor]] = {}
        for name, assets in (modules or {}).items():
            self.add(name, assets)

    def add(self, name: str, assets: Iterable[Any]) -> None:
        """Register a module. Modules declaring no assets are ignored.

        Raises:
            ManifestError: If an asset does not validate as a descriptor.
        """
        descriptors = _to_descriptors(name, assets)
        if not descriptors:
            logger.debug("Module %s declares no assets; ignored", name)
            return
        self._modules[name] = descriptors

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def names(self) -> list[str]:
        return list(self._modules)

    def get(self, name: str) -> list[AssetDescriptor] | None:
        descriptors = self._modules.get(name)
        return list(descriptors) if descriptors is not None else None

    def as_mapping(self) -> dict[str, list[AssetDescriptor]]:
        return {name: list(descriptors) for name, descriptors in self._modules.items()}

    def by_tag(self, name: str) -> dict[str, list[AssetDescriptor]]:
        """A module's descriptors grouped by tag, tags in first-seen order."""
        grouped: dict[str, list[AssetDescriptor]] = {}
        for descriptor in self._modules.get(name, []):
            grouped.setdefault(descriptor.tag, []).append(descriptor)
        return grouped

    def dependencies_of(self, name: str) -> AssetDescriptor | None:
        """The module's first ``dependencies`` descriptor, if any."""
        return next((d for d in self._modules.get(name, []) if d.is_dependencies), None)


# ── Discovery ───────────────────────────────────────────────────


def load_manifest(target: str) -> list[Any]:
    """Import ``package.module:function`` and call it.

    Raises:
        ManifestError: If the target is malformed, not importable, not
            callable, or does not return a list.
    """
    module_path, sep, attr = target.partition(":")
    if not sep or not module_path or not attr:
        raise ManifestError(f"Invalid manifest target '{target}' (expected 'package.module:function')")

    try:
        obj: Any = importlib.import_module(module_path)
    except ImportError as e:
        raise ManifestError(f"Cannot import {module_path}: {e}") from e

    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ManifestError(f"{module_path} has no attribute '{attr}'") from e

    if not callable(obj):
        raise ManifestError(f"Manifest target '{target}' is not callable")

    assets = obj()
    if not isinstance(assets, (list, tuple)):
        raise ManifestError(f"Manifest '{target}' returned {type(assets).__name__}, expected a list")
    return list(assets)


def discover_modules(project: Project, project_root: Path | None = None) -> ModuleCatalog:
    """Build the catalog from the project config and installed entry points.

    Modules named in the project config win over entry points of the
    same name. ``project_root`` is put on ``sys.path`` so app-local
    module packages can be imported.
    """
    if project_root is not None:
        root = str(project_root)
        if root not in sys.path:
            sys.path.insert(0, root)

    catalog = ModuleCatalog()

    for name, target in project.modules.items():
        try:
            catalog.add(name, load_manifest(target))
        except Exception as e:
            logger.warning("Skipping module %s: %s", name, e)

    if project.entry_point_group:
        for ep in entry_points(group=project.entry_point_group):
            if ep.name in catalog:
                continue
            try:
                manifest = ep.load()
                assets = manifest()
                catalog.add(ep.name, assets)
            except Exception as e:
                logger.warning("Skipping module %s (entry point %s): %s", ep.name, ep.value, e)

    logger.debug("Discovered %d module(s): %s", len(catalog), ", ".join(catalog.names()))
    return catalog
