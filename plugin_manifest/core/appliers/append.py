"""
Text appender — idempotent append of a content block to a text file.

Used for bootstrap snippets: a module appends its setup lines to the
host application's bootstrap file once. Idempotency comes from the
marker (usually a comment line): if the marker is already in the file,
nothing is written. Without a marker, the trimmed content itself is
searched for.

Existing bytes are never modified; new text only ever goes at the end.
"""

from __future__ import annotations

import logging
from pathlib import Path

from plugin_manifest.core.models.result import ErrorKind, InstallResult

logger = logging.getLogger(__name__)

# Maximum file size the appender will touch (1 MiB)
MAX_APPEND_SIZE = 1_048_576


def block_separator(existing: str) -> str:
    """Text needed between existing content and a new block.

    Guarantees the block starts on a fresh line after one blank line.
    """
    if not existing:
        return ""
    if existing.endswith("\n"):
        return "\n"
    return "\n\n"


def append_block(file_path: Path, existing: str, block: str) -> None:
    """Append ``block`` after ``existing``, keeping prior bytes intact."""
    text = block_separator(existing) + block
    if not text.endswith("\n"):
        text += "\n"
    with file_path.open("a", encoding="utf-8", newline="") as f:
        f.write(text)


def read_target(file_path: Path, max_size: int) -> tuple[str | None, InstallResult | None]:
    """Read an append target, or return the error result explaining why not."""
    dest = str(file_path)
    if not file_path.is_file():
        return None, InstallResult.error(
            "", dest, f"File does not exist: {dest}", ErrorKind.NOT_FOUND
        )
    if file_path.stat().st_size > max_size:
        return None, InstallResult.error(
            "", dest, "File too large (>1MB), manual review required", ErrorKind.TOO_LARGE
        )
    try:
        return file_path.read_bytes().decode("utf-8"), None
    except UnicodeDecodeError as e:
        return None, InstallResult.error(
            "", dest, f"Could not read file: {e.reason}", ErrorKind.MALFORMED_TARGET
        )


class TextAppender:
    """Appends content blocks, skipping those already present."""

    max_size = MAX_APPEND_SIZE

    def append(
        self,
        file_path: Path,
        content: str,
        marker: str | None = None,
        dry_run: bool = False,
    ) -> InstallResult:
        """Append ``content`` (preceded by ``marker`` when given) to the file.

        Returns:
            appended / would-append, skipped if the marker (or the content,
            when there is no marker) is already present, error if the file
            is missing, too large or unreadable.
        """
        dest = str(file_path)
        existing, failure = read_target(file_path, self.max_size)
        if failure is not None:
            return failure.model_copy(update={"source": content})

        if marker:
            if marker in existing:
                return InstallResult.skip(
                    content, dest, "Marker already exists in file",
                    error_kind=ErrorKind.ALREADY_COMPLETED,
                )
        elif content.strip() in existing:
            return InstallResult.skip(
                content, dest, "Content already exists in file",
                error_kind=ErrorKind.ALREADY_COMPLETED,
            )

        block = f"{marker}\n{content}" if marker else content

        if not dry_run:
            append_block(file_path, existing, block)
            logger.debug("Appended %d chars to %s", len(block), dest)

        return InstallResult.installed(content, dest, "would-append" if dry_run else "appended")
