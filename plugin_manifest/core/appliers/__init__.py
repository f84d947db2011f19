"""
Appliers — the file effects behind each operation type.

Each applier takes resolved paths and returns an ``InstallResult``.
They know nothing about modules, tags or the ledger.
"""

from plugin_manifest.core.appliers.append import TextAppender
from plugin_manifest.core.appliers.copy import FileCopier
from plugin_manifest.core.appliers.env import EnvInstaller
from plugin_manifest.core.appliers.merge import ConfigMerger

__all__ = [
    "ConfigMerger",
    "EnvInstaller",
    "FileCopier",
    "TextAppender",
]
