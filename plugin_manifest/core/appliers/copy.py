"""
File copier — plain copies, directory mirrors and migration batches.

Migrations are timestamp-named Python files (``20240101000000_create_posts.py``).
When installed into the host application they are renamed with the
owning module's namespace so two modules cannot collide, and the
migration class inside is renamed to match:

    20240101000000_create_posts.py   class CreatePosts(...)
        → 20240101000000_blog_create_posts.py   class BlogCreatePosts(...)
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from plugin_manifest.core.models.result import ErrorKind, InstallResult

logger = logging.getLogger(__name__)

MIGRATION_PATTERN = re.compile(r"^(\d{14})_(.+)\.py$")

# Files a migrations directory may hold that are never installed
IGNORED_MIGRATION_FILES = frozenset({"schema-dump-default.lock"})


# ── Inflection ──────────────────────────────────────────────────


def underscore(name: str) -> str:
    """``AcmeBlog`` / ``Acme/Blog`` / ``acme-blog`` → ``acme_blog``."""
    name = re.sub(r"[/\\\-\s.]+", "_", name)
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return re.sub(r"_+", "_", name).strip("_").lower()


def camelize(name: str) -> str:
    """``create_posts`` → ``CreatePosts``. Already-camel input is kept."""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[_\W]+", name) if part)


def migration_files(directory: Path) -> list[Path]:
    """Timestamp-named migration files in ``directory``, sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(
        p
        for p in directory.iterdir()
        if p.is_file()
        and p.name not in IGNORED_MIGRATION_FILES
        and MIGRATION_PATTERN.match(p.name)
    )


class FileCopier:
    """Copies files and directories into the host application."""

    def copy(self, source: Path, destination: Path, dry_run: bool = False) -> InstallResult:
        """Copy a file, or mirror a directory tree, to ``destination``.

        Existing files under ``destination`` are overwritten; callers
        decide beforehand whether that is allowed.
        """
        src, dest = str(source), str(destination)
        if not source.exists():
            return InstallResult.error(src, dest, f"Source does not exist: {src}", ErrorKind.NOT_FOUND)

        if dry_run:
            return InstallResult.installed(src, dest, "would-install")

        if source.is_dir():
            shutil.copytree(source, destination, dirs_exist_ok=True)
            logger.debug("Mirrored directory %s → %s", src, dest)
        else:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
            logger.debug("Copied %s → %s", src, dest)

        return InstallResult.installed(src, dest)

    def install_migration(
        self,
        source_file: Path,
        namespace: str,
        destination_dir: Path,
        dry_run: bool = False,
    ) -> InstallResult:
        """Install one migration under its namespaced name."""
        src = str(source_file)
        match = MIGRATION_PATTERN.match(source_file.name)
        if not match:
            return InstallResult.error(src, str(destination_dir), "Invalid migration filename format")

        timestamp, rest = match.groups()
        prefix = underscore(namespace)
        new_name = f"{timestamp}_{prefix}_{rest}.py"
        destination = destination_dir / new_name
        dest = str(destination)

        if destination.exists():
            return InstallResult.skip(
                src, dest, "Migration already installed",
                error_kind=ErrorKind.ALREADY_COMPLETED,
            )

        class_name = camelize(rest)
        new_class = camelize(prefix) + class_name
        content = source_file.read_text(encoding="utf-8")
        content = re.sub(
            rf"\bclass\s+{re.escape(class_name)}\b",
            f"class {new_class}",
            content,
        )

        if not dry_run:
            destination_dir.mkdir(parents=True, exist_ok=True)
            destination.write_text(content, encoding="utf-8")
            logger.debug("Installed migration %s as %s", source_file.name, new_name)

        return InstallResult.installed(
            src, dest, "would-install" if dry_run else "installed", f"Installed as {new_name}"
        )

    def install_migrations(
        self,
        source_dir: Path,
        destination_dir: Path,
        namespace: str,
        dry_run: bool = False,
    ) -> InstallResult:
        """Install every migration in ``source_dir`` as one batch result.

        Status is ``batch-installed`` when at least one file was installed
        and none failed, ``skipped`` when every file was already present,
        ``partial`` or ``error`` when some or all failed.
        """
        src, dest = str(source_dir), str(destination_dir)
        if not source_dir.is_dir():
            return InstallResult.error(
                src, dest, f"Migrations directory does not exist: {src}", ErrorKind.NOT_FOUND
            )

        children = [
            self.install_migration(f, namespace, destination_dir, dry_run)
            for f in migration_files(source_dir)
        ]
        installed = sum(1 for r in children if r.success)
        skipped = sum(1 for r in children if r.skipped)
        failed = sum(1 for r in children if r.failed)

        message = f"Installed {installed} migration(s), skipped {skipped}"
        if failed:
            message += f", {failed} failed"
            status = "partial" if installed else "error"
        elif installed:
            status = "batch-installed"
        else:
            status = "skipped"

        return InstallResult.batch(
            installed > 0 and failed == 0,
            src,
            dest,
            status,
            message,
            children,
            metadata={"installed": installed, "skipped": skipped, "failed": failed},
        )
