"""
Engine — resolution, dispatch and orchestration of asset installs.
"""

from plugin_manifest.core.engine.conditions import ConditionEvaluator
from plugin_manifest.core.engine.installer import Installer, InstallOptions
from plugin_manifest.core.engine.orchestrator import DependencyInstaller
from plugin_manifest.core.engine.resolver import DependencyInfo, DependencyResolver, ResolveOptions
from plugin_manifest.core.engine.wiring import Services, build_services, open_services

__all__ = [
    "ConditionEvaluator",
    "DependencyInfo",
    "DependencyInstaller",
    "DependencyResolver",
    "InstallOptions",
    "Installer",
    "ResolveOptions",
    "Services",
    "build_services",
    "open_services",
]
