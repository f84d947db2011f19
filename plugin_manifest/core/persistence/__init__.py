"""
Persistence — the install ledger and the audit log.
"""

from plugin_manifest.core.persistence.audit import AuditEntry, AuditWriter
from plugin_manifest.core.persistence.registry import ManifestRegistry

__all__ = [
    "AuditEntry",
    "AuditWriter",
    "ManifestRegistry",
]
