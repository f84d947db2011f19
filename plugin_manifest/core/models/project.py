"""
Project model — the host application the modules install into.

Loaded from manifest.yml. The application root is the directory that
holds the config file; every relative path below resolves against it.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_LEDGER_PATH = "config/manifest_registry.json"
DEFAULT_CONFIG_FILE = "config/app_local.py"
DEFAULT_AUDIT_LOG = ".state/audit.ndjson"
DEFAULT_ENTRY_POINT_GROUP = "plugin_manifest.modules"


class Project(BaseModel):
    """Root project identity — loaded from manifest.yml."""

    version: int = 1

    name: str
    description: str = ""

    ledger: str = DEFAULT_LEDGER_PATH
    config_file: str = DEFAULT_CONFIG_FILE    # consulted by ConfigKeyExists conditions
    audit_log: str = DEFAULT_AUDIT_LOG

    # Module name → "package.module:function" returning the module's assets
    modules: dict[str, str] = Field(default_factory=dict)
    entry_point_group: str | None = DEFAULT_ENTRY_POINT_GROUP
