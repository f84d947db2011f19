"""
Domain models — Pydantic types for the install core.

All models are re-exported here for convenient access:

    from plugin_manifest.core.models import AssetDescriptor, InstallResult, OperationType
"""

from plugin_manifest.core.models.asset import (
    AlwaysCondition,
    AssetDescriptor,
    Condition,
    ConfigKeyExists,
    DependencyConfig,
    FileExists,
    OperationType,
    Predicate,
    RawValue,
    Tag,
)
from plugin_manifest.core.models.ledger import DependencyEdge, LedgerDocument, LedgerRecord
from plugin_manifest.core.models.project import Project
from plugin_manifest.core.models.result import ErrorKind, InstallResult, InstallStatus

__all__ = [
    # asset.py
    "AlwaysCondition",
    "AssetDescriptor",
    "Condition",
    "ConfigKeyExists",
    "DependencyConfig",
    # ledger.py
    "DependencyEdge",
    # result.py
    "ErrorKind",
    "FileExists",
    "InstallResult",
    "InstallStatus",
    "LedgerDocument",
    "LedgerRecord",
    "OperationType",
    "Predicate",
    # project.py
    "Project",
    "RawValue",
    "Tag",
]
