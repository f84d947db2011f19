"""
Configuration loader — reads manifest.yml into the Project model.

The directory holding manifest.yml is the application root: ledger,
config module, audit log and every relative asset destination resolve
against it.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from plugin_manifest.core.models.project import Project

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILE = "manifest.yml"


class ConfigError(Exception):
    """Raised when project configuration is invalid or missing."""


def find_project_file(start_dir: Path | None = None) -> Path | None:
    """Search for manifest.yml from ``start_dir`` (default: cwd) upward."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROJECT_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_project(path: Path | None = None) -> Project:
    """Load and validate manifest.yml.

    Args:
        path: Explicit path. If None, searches upward from the cwd.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = find_project_file()

    if path is None:
        raise ConfigError(
            f"No {PROJECT_CONFIG_FILE} found in this directory or any parent. "
            "Create one, or pass --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading project config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Name defaults to the application directory
    data.setdefault("name", path.parent.resolve().name)

    try:
        project = Project.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid project configuration: {e}") from e

    logger.info("Loaded project '%s' with %d configured module(s)", project.name, len(project.modules))
    return project


def project_root(config_path: Path) -> Path:
    """The application root for a config file path."""
    return config_path.parent.resolve()


def open_project(config_path: Path | None = None) -> tuple[Project, Path]:
    """Locate, load and return the project with its application root.

    Raises:
        ConfigError: As ``load_project``.
    """
    path = config_path or find_project_file()
    project = load_project(path)
    assert path is not None  # load_project raises when nothing was found
    return project, project_root(path)
