"""
Manifest builder — helpers for writing a module's manifest function.

A module declares its assets with a zero-argument callable that returns
a list of descriptors. ``ManifestBuilder`` produces descriptors for the
common cases with sensible default destinations::

    from plugin_manifest.core.manifest import ManifestBuilder

    def manifest():
        m = ManifestBuilder("Blog", root=Path(__file__).parent)
        return [
            *m.migrations("migrations"),
            *m.config("config/blog.py", "config/blog.py"),
            *m.env_vars({"BLOG_PAGE_SIZE": "20"}),
            *m.bootstrap_append("from blog import setup\\nsetup()"),
            *m.config_merge("Blog", {"enabled": True}),
            *m.dependencies({"Comments": {"required": True}}),
        ]

Destinations are relative to the host application's root.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from plugin_manifest.core.models.asset import (
    AssetDescriptor,
    DependencyConfig,
    OperationType,
    Tag,
)

DEFAULT_MIGRATIONS_DIR = "config/migrations"
DEFAULT_CONFIG_FILE = "app_local.py"
DEFAULT_BOOTSTRAP_FILE = "bootstrap.py"


class ManifestBuilder:
    """Descriptor factory bound to one module.

    Args:
        module: The module's name (also its migration namespace).
        root: Directory that relative *source* paths resolve against,
            usually the module package's directory.
    """

    def __init__(self, module: str, root: Path | None = None):
        self.module = module
        self.root = root

    def _source(self, source: str | Path) -> str:
        path = Path(source)
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        return str(path)

    def _asset(self, **fields: Any) -> list[AssetDescriptor]:
        return [AssetDescriptor.model_validate({"module": self.module, **fields})]

    def migrations(
        self,
        source: str | Path,
        destination: str = DEFAULT_MIGRATIONS_DIR,
    ) -> list[AssetDescriptor]:
        """Migrations, renamed with the module namespace on install."""
        return self._asset(
            operation_type=OperationType.COPY,
            tag=Tag.MIGRATIONS,
            source=self._source(source),
            destination=destination,
            options={"plugin_namespace": self.module, "rename_with_plugin": True},
        )

    def config(
        self,
        source: str | Path,
        destination: str,
        can_overwrite: bool = False,
    ) -> list[AssetDescriptor]:
        """A config file. Copy-safe unless ``can_overwrite``."""
        return self._asset(
            operation_type=OperationType.COPY if can_overwrite else OperationType.COPY_SAFE,
            tag=Tag.CONFIG,
            source=self._source(source),
            destination=destination,
        )

    def env_vars(
        self,
        env_vars: dict[str, str],
        comment: str | None = None,
        destination: str = ".env",
    ) -> list[AssetDescriptor]:
        return self._asset(
            operation_type=OperationType.APPEND_ENV,
            tag=Tag.ENVS,
            env_vars=env_vars,
            destination=destination,
            comment=comment if comment is not None else f"# {self.module} Configuration",
        )

    def env_example(self, source: str | Path) -> list[AssetDescriptor]:
        """An example env file, copied as ``.env.<module>.example``."""
        return self._asset(
            operation_type=OperationType.COPY_SAFE,
            tag=Tag.ENVS,
            source=self._source(source),
            destination=f".env.{self.module.lower()}.example",
        )

    def webroot(
        self,
        source: str | Path,
        destination: str | None = None,
    ) -> list[AssetDescriptor]:
        """Public assets (css, js, images), mirrored into the web root."""
        return self._asset(
            operation_type=OperationType.COPY,
            tag=Tag.WEBROOT,
            source=self._source(source),
            destination=destination or f"webroot/{self.module.lower()}",
        )

    def bootstrap_append(
        self,
        content: str,
        marker: str | None = None,
        bootstrap_file: str = DEFAULT_BOOTSTRAP_FILE,
    ) -> list[AssetDescriptor]:
        """Code appended once to a bootstrap file, guarded by a marker."""
        return self._asset(
            operation_type=OperationType.APPEND,
            tag=Tag.BOOTSTRAP,
            content=content,
            destination=f"config/{bootstrap_file}",
            marker=marker if marker is not None else f"# {self.module} Configuration",
        )

    def bootstrap_after(self, content: str, marker: str | None = None) -> list[AssetDescriptor]:
        return self.bootstrap_append(content, marker, "bootstrap_after.py")

    def plugin_bootstrap_after(self, content: str, marker: str | None = None) -> list[AssetDescriptor]:
        """Code appended to the file run after every module has bootstrapped."""
        return self.bootstrap_append(content, marker, "plugin_bootstrap_after.py")

    def config_merge(
        self,
        key: str,
        value: Any,
        config_file: str = DEFAULT_CONFIG_FILE,
    ) -> list[AssetDescriptor]:
        """A key merged into the app config module (never overwritten)."""
        return self._asset(
            operation_type=OperationType.MERGE,
            tag=Tag.CONFIG,
            key=key,
            value=value,
            destination=f"config/{config_file}",
        )

    def dependencies(
        self,
        dependencies: dict[str, DependencyConfig | dict[str, Any]],
    ) -> list[AssetDescriptor]:
        return self._asset(
            operation_type=OperationType.DEPENDENCIES,
            tag=Tag.DEPENDENCIES,
            dependencies=dependencies,
        )
