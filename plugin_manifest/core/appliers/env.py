"""
Env installer — add missing variables to a dotenv-style file.

Only variables whose names are not already defined are written; the
values of existing variables are never touched. The file is created
(empty) when absent.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from plugin_manifest.core.appliers.append import append_block, read_target
from plugin_manifest.core.models.result import ErrorKind, InstallResult

logger = logging.getLogger(__name__)

MAX_ENV_SIZE = 1_048_576

_ENV_LINE = re.compile(r"^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=(.*)$")


def parse_env_vars(content: str) -> dict[str, str]:
    """Parse ``NAME=value`` lines, ignoring blanks and ``#`` comments.

    Surrounding quotes are stripped from values. Later definitions win.
    """
    env: dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = _ENV_LINE.match(stripped)
        if not match:
            continue
        name, value = match.group(1), match.group(2).strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        env[name] = value
    return env


class EnvInstaller:
    """Appends env variables that a file does not define yet."""

    max_size = MAX_ENV_SIZE

    def append_vars(
        self,
        file_path: Path,
        env_vars: dict[str, str],
        comment: str | None = None,
        dry_run: bool = False,
    ) -> InstallResult:
        """Append the missing subset of ``env_vars`` under an optional comment.

        Values are written verbatim (no quoting). The result metadata
        carries ``added``, ``skipped`` and ``added_vars``.
        """
        dest = str(file_path)

        if not env_vars:
            return InstallResult.skip("env_vars", dest, "Added 0 variable(s)", success=True)

        if not file_path.exists() and not dry_run:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text("", encoding="utf-8")
            logger.info("Created %s", dest)

        if file_path.is_file():
            existing, failure = read_target(file_path, self.max_size)
            if failure is not None:
                return failure.model_copy(update={"source": "env_vars"})
        else:
            existing = ""

        defined = parse_env_vars(existing)
        missing = {name: value for name, value in env_vars.items() if name not in defined}
        skipped = len(env_vars) - len(missing)
        metadata = {"added": len(missing), "skipped": skipped, "added_vars": list(missing)}

        if not missing:
            return InstallResult.skip(
                "env_vars", dest, "All environment variables already exist",
                error_kind=ErrorKind.ALREADY_COMPLETED,
                metadata=metadata,
            )

        lines = [f"{name}={value}" for name, value in missing.items()]
        if comment:
            lines.insert(0, comment)

        if not dry_run:
            append_block(file_path, existing, "\n".join(lines) + "\n")
            logger.debug("Added %d env var(s) to %s", len(missing), dest)

        message = f"Added {len(missing)} variable(s)"
        if skipped:
            message += f", skipped {skipped} existing"

        return InstallResult.installed(
            "env_vars",
            dest,
            "would-append" if dry_run else "appended",
            message,
            metadata=metadata,
        )
