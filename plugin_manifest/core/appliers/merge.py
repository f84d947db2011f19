"""
Config merger — add keys to an app config module without rewriting it.

A config module is a Python file whose body is (optionally) a docstring
and imports, followed by exactly one ``NAME = {...}`` assignment of a
dict literal. Comments may appear anywhere::

    # Local overrides
    import os

    CONFIG = {
        "App": {
            "name": "My Application",
        },
        "Database": {
            "host": os.environ.get("DB_HOST", "localhost"),
        },
    }

The merger parses the file only to find positions. The new entry is
spliced in as text immediately before the closing brace of the target
dict, so comments, formatting and unrelated keys are left byte-for-byte
unchanged. This is a best-effort transformer for that one shape, not a
general source rewriter.
"""

from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from plugin_manifest.core.errors import MalformedTargetError
from plugin_manifest.core.models.asset import RawValue
from plugin_manifest.core.models.result import ErrorKind, InstallResult

logger = logging.getLogger(__name__)

# Maximum config module size the merger will touch (1 MiB)
MAX_CONFIG_SIZE = 1_048_576

INDENT = "    "


@dataclass
class ConfigModule:
    """A parsed config module: its text, variable name and root dict node."""

    path: str
    text: str
    name: str
    root: ast.Dict

    def offset(self, lineno: int, byte_col: int) -> int:
        """Convert an AST (1-based line, UTF-8 byte column) to a text offset."""
        starts = _line_starts(self.text)
        start = starts[lineno - 1]
        end = starts[lineno] if lineno < len(starts) else len(self.text)
        line = self.text[start:end]
        prefix = line.encode("utf-8")[:byte_col].decode("utf-8", errors="ignore")
        return start + len(prefix)


def _line_starts(text: str) -> list[int]:
    return [0] + [m.end() for m in re.finditer("\n", text)]


def parse_config_module(text: str, path: str = "<config>") -> ConfigModule:
    """Parse and validate the config module shape.

    Raises:
        MalformedTargetError: If the text is not valid Python or does not
            consist of a single dict-literal assignment.
    """
    try:
        tree = ast.parse(text)
    except SyntaxError as e:
        raise MalformedTargetError(path, f"not valid Python ({e.msg}, line {e.lineno})") from e

    body = [n for n in tree.body if not isinstance(n, (ast.Import, ast.ImportFrom))]
    if (
        body
        and isinstance(body[0], ast.Expr)
        and isinstance(body[0].value, ast.Constant)
        and isinstance(body[0].value.value, str)
    ):
        body = body[1:]  # module docstring

    if len(body) != 1:
        raise MalformedTargetError(
            path, "expected exactly one top-level NAME = {...} assignment"
        )

    stmt = body[0]
    if (
        not isinstance(stmt, ast.Assign)
        or len(stmt.targets) != 1
        or not isinstance(stmt.targets[0], ast.Name)
    ):
        raise MalformedTargetError(path, "top-level statement is not a NAME = {...} assignment")

    if not isinstance(stmt.value, ast.Dict):
        raise MalformedTargetError(path, f"'{stmt.targets[0].id}' is not assigned a dict literal")

    return ConfigModule(path=path, text=text, name=stmt.targets[0].id, root=stmt.value)


def _entry(node: ast.Dict, key: str) -> ast.expr | None:
    """Value node for a string key in a dict literal, or None."""
    for k, v in zip(node.keys, node.values):
        if isinstance(k, ast.Constant) and k.value == key:
            return v
    return None


def _find_parent(module: ConfigModule, segments: list[str]) -> tuple[ast.Dict | None, str]:
    """Walk all but the last segment of a dot-path.

    Returns:
        (parent dict node, "") when found, or (None, missing path) when a
        segment does not exist.

    Raises:
        MalformedTargetError: If a non-terminal segment is not a dict literal.
    """
    node = module.root
    walked: list[str] = []
    for segment in segments[:-1]:
        walked.append(segment)
        child = _entry(node, segment)
        if child is None:
            return None, ".".join(walked)
        if not isinstance(child, ast.Dict):
            raise MalformedTargetError(module.path, f"'{'.'.join(walked)}' is not a dict")
        node = child
    return node, ""


# ── Value serialization ─────────────────────────────────────────


def export_key(key: Any) -> str:
    if isinstance(key, (str, int)) and not isinstance(key, bool):
        return repr(key)
    raise TypeError(f"Unsupported config key type: {type(key).__name__}")


def export_value(value: Any, indent: str = "") -> str:
    """Serialize a value as Python source, indented for nesting at ``indent``.

    ``RawValue`` code is emitted verbatim.
    """
    if isinstance(value, RawValue):
        return value.code

    if isinstance(value, dict):
        if not value:
            return "{}"
        inner = indent + INDENT
        lines = ["{"]
        for k, v in value.items():
            lines.append(f"{inner}{export_key(k)}: {export_value(v, inner)},")
        lines.append(f"{indent}}}")
        return "\n".join(lines)

    if isinstance(value, (list, tuple)):
        opening, closing = ("[", "]") if isinstance(value, list) else ("(", ")")
        if not value:
            return opening + closing
        inner = indent + INDENT
        lines = [opening]
        for item in value:
            lines.append(f"{inner}{export_value(item, inner)},")
        lines.append(f"{indent}{closing}")
        return "\n".join(lines)

    if value is None or isinstance(value, (str, bool, int, float)):
        return repr(value)

    raise TypeError(f"Cannot write {type(value).__name__} into a config module")


# ── Reading ─────────────────────────────────────────────────────


def _to_python(node: ast.expr, text: str) -> Any:
    if isinstance(node, ast.Dict):
        result: dict[Any, Any] = {}
        for k, v in zip(node.keys, node.values):
            if k is None:
                continue  # ** unpacking
            key = k.value if isinstance(k, ast.Constant) else ast.get_source_segment(text, k)
            result[key] = _to_python(v, text)
        return result
    try:
        return ast.literal_eval(node)
    except (ValueError, TypeError, SyntaxError):
        return RawValue(ast.get_source_segment(text, node) or "")


def read_config(path: Path) -> dict[str, Any]:
    """Load a config module as data.

    Literal values come back as Python objects; anything else (calls,
    names, expressions) comes back as ``RawValue`` holding its source.
    """
    text = path.read_bytes().decode("utf-8")
    module = parse_config_module(text, str(path))
    return _to_python(module.root, text)


def config_has_key(path: Path, key: str) -> bool:
    """Whether the dot-path ``key`` exists in the config module at ``path``."""
    if not path.is_file():
        return False
    try:
        module = parse_config_module(path.read_bytes().decode("utf-8"), str(path))
    except (MalformedTargetError, UnicodeDecodeError) as e:
        logger.debug("Config %s unreadable for key lookup: %s", path, e)
        return False

    node: ast.expr = module.root
    for segment in key.split("."):
        if not isinstance(node, ast.Dict):
            return False
        child = _entry(node, segment)
        if child is None:
            return False
        node = child
    return True


# ── Splicing ────────────────────────────────────────────────────


def splice_entry(module: ConfigModule, parent: ast.Dict, key: str, value: Any) -> str:
    """Return the module text with ``key: value`` added to ``parent``."""
    text = module.text
    newline = "\r\n" if "\r\n" in text else "\n"
    brace = module.offset(parent.end_lineno, parent.end_col_offset - 1)
    line_start = text.rfind("\n", 0, brace) + 1
    before_brace = text[line_start:brace]

    edits: list[tuple[int, str]] = []

    # A trailing comma after the current last entry, if it lacks one
    if parent.values:
        last = parent.values[-1]
        last_end = module.offset(last.end_lineno, last.end_col_offset)
        between = text[last_end:brace]
        code_only = "\n".join(line.split("#", 1)[0] for line in between.split("\n"))
        if "," not in code_only:
            edits.append((last_end, ","))

    if before_brace.strip() == "":
        # Closing brace on its own line: insert whole lines above it
        entry_indent = before_brace + INDENT
        entry = f"{entry_indent}{export_key(key)}: {export_value(value, entry_indent)},"
        edits.append((line_start, entry.replace("\n", newline) + newline))
    elif not parent.values:
        # Empty inline dict: open it up
        base = re.match(r"[ \t]*", text[line_start:]).group(0)
        entry_indent = base + INDENT
        entry = f"{entry_indent}{export_key(key)}: {export_value(value, entry_indent)},"
        edits.append((brace, newline + entry.replace("\n", newline) + newline + base))
    else:
        # Non-empty inline dict: stay inline
        base = re.match(r"[ \t]*", text[line_start:]).group(0)
        entry = f" {export_key(key)}: {export_value(value, base)}"
        edits.append((brace, entry.replace("\n", newline)))

    # Back to front; at equal offsets the later edit goes in first so the
    # earlier one (the comma) ends up in front of it
    for _, (offset, insert) in sorted(enumerate(edits), key=lambda e: (e[1][0], e[0]), reverse=True):
        text = text[:offset] + insert + text[offset:]
    return text


class ConfigMerger:
    """Merges one key into a config module, never overwriting existing keys."""

    max_size = MAX_CONFIG_SIZE

    def merge(
        self,
        file_path: Path,
        key: str,
        value: Any,
        dry_run: bool = False,
    ) -> InstallResult:
        """Merge ``key`` (a dot-path such as ``"App.version"``) into the file.

        Returns:
            merged / would-merge on success, skipped if the key exists,
            error if the file or a parent key is missing or the file is
            too large.

        Raises:
            MalformedTargetError: The file is not a config module, or a
                parent segment is not a dict.
        """
        dest = str(file_path)

        if not file_path.is_file():
            return InstallResult.error(key, dest, f"File does not exist: {dest}", ErrorKind.NOT_FOUND)

        if file_path.stat().st_size > self.max_size:
            return InstallResult.error(
                key,
                dest,
                "Config file too large (>1MB), manual review required",
                ErrorKind.TOO_LARGE,
            )

        segments = key.split(".")
        if not all(segments):
            return InstallResult.error(key, dest, f"Invalid config key: '{key}'")

        try:
            text = file_path.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedTargetError(dest, f"not UTF-8 text ({e.reason})") from e

        module = parse_config_module(text, dest)
        parent, missing = _find_parent(module, segments)
        if parent is None:
            return InstallResult.error(
                key, dest, f"Parent key '{missing}' does not exist in config", ErrorKind.NOT_FOUND
            )

        if _entry(parent, segments[-1]) is not None:
            return InstallResult.skip(
                key,
                dest,
                f"Key '{key}' already exists in config",
                error_kind=ErrorKind.ALREADY_COMPLETED,
            )

        new_text = splice_entry(module, parent, segments[-1], value)

        if not dry_run:
            file_path.write_bytes(new_text.encode("utf-8"))
            logger.debug("Merged '%s' into %s", key, dest)

        return InstallResult.installed(key, dest, "would-merge" if dry_run else "merged")
