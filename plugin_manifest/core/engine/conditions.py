"""
Condition evaluation for optional dependencies.

Read-only: checks the filesystem and the app config module, or calls an
injected predicate.
"""

from __future__ import annotations

import logging
from pathlib import Path

from plugin_manifest.core.appliers.merge import config_has_key
from plugin_manifest.core.models.asset import (
    AlwaysCondition,
    Condition,
    ConfigKeyExists,
    FileExists,
    Predicate,
)

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """Evaluates dependency conditions for one application.

    Args:
        app_root: Base for relative ``FileExists`` paths.
        config_file: Config module consulted by ``ConfigKeyExists``.
    """

    def __init__(self, app_root: Path | None = None, config_file: Path | None = None):
        self._app_root = app_root
        self._config_file = config_file

    def evaluate(self, condition: Condition | None) -> bool:
        """True if the condition is met (the dependency applies)."""
        if condition is None or isinstance(condition, AlwaysCondition):
            return True
        if isinstance(condition, FileExists):
            path = Path(condition.path)
            if not path.is_absolute() and self._app_root is not None:
                path = self._app_root / path
            return path.exists()
        if isinstance(condition, ConfigKeyExists):
            if self._config_file is None:
                logger.debug("No config file configured; '%s' treated as absent", condition.key)
                return False
            return config_has_key(self._config_file, condition.key)
        if isinstance(condition, Predicate):
            return bool(condition.fn())
        logger.warning("Unknown dependency condition: %r", condition)
        return False
