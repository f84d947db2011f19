"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import importlib
import sys
import textwrap
from pathlib import Path

import pytest

from plugin_manifest.core.catalog import ModuleCatalog
from plugin_manifest.core.engine.wiring import Services, build_services
from plugin_manifest.core.models.asset import AssetDescriptor, OperationType
from plugin_manifest.core.persistence.registry import ManifestRegistry


class ScriptedSession:
    """Session double: records output, answers questions from a script.

    Answers are consumed in order by both ``ask_yes_no`` and ``ask``;
    when the script runs out, yes/no questions get ``confirm`` and free
    questions get their default.
    """

    def __init__(self, answers: list | None = None, confirm: bool = True):
        self.lines: list[str] = []
        self.errors: list[str] = []
        self.questions: list[str] = []
        self._answers = list(answers or [])
        self._confirm = confirm

    def out(self, message: str = "") -> None:
        self.lines.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def ask_yes_no(self, question: str, default: bool = False) -> bool:
        self.questions.append(question)
        if self._answers:
            return bool(self._answers.pop(0))
        return self._confirm

    def ask(self, question: str, default: str = "") -> str:
        self.questions.append(question)
        if self._answers:
            return str(self._answers.pop(0))
        return default

    @property
    def output(self) -> str:
        return "\n".join(self.lines)


@pytest.fixture
def app_root(tmp_path: Path) -> Path:
    """An empty host application with a config/ directory."""
    root = tmp_path / "app"
    (root / "config").mkdir(parents=True)
    return root


@pytest.fixture
def registry(app_root: Path) -> ManifestRegistry:
    return ManifestRegistry(app_root)


@pytest.fixture
def session() -> ScriptedSession:
    return ScriptedSession()


@pytest.fixture
def scripted_session():
    """Factory for sessions with scripted answers."""
    return ScriptedSession


@pytest.fixture
def module_sources(tmp_path: Path):
    """Factory: a module source dir holding one file, plus its copy asset.

    ``module_sources("Blog")`` creates ``modules/Blog/blog.txt`` and returns
    a copy descriptor installing it to ``out/blog.txt`` in the app.
    """

    def make(name: str, **fields) -> AssetDescriptor:
        src_dir = tmp_path / "modules" / name
        src_dir.mkdir(parents=True, exist_ok=True)
        src = src_dir / f"{name.lower()}.txt"
        src.write_text(f"{name} asset\n")
        data = {
            "operation_type": OperationType.COPY,
            "tag": "config",
            "source": str(src),
            "destination": f"out/{name.lower()}.txt",
            "module": name,
        }
        data.update(fields)
        return AssetDescriptor.model_validate(data)

    return make


@pytest.fixture
def make_services(app_root: Path):
    """Factory: wire services over a catalog built from ``{name: [assets]}``."""

    def make(modules: dict[str, list]) -> Services:
        return build_services(app_root, ModuleCatalog(modules))

    return make


@pytest.fixture
def module_package():
    """Factory: write an importable module package.

    ``module_package(root, "blog_module", source)`` writes
    ``root/blog_module/__init__.py`` and ``root/blog_module/manifest.py``
    holding ``source``. Imported packages and sys.path entries are removed
    afterwards so tests can reuse package names.
    """
    created: list[str] = []
    path_before = list(sys.path)

    def make(root: Path, package: str, source: str) -> Path:
        pkg = root / package
        pkg.mkdir(parents=True, exist_ok=True)
        (pkg / "__init__.py").write_text("")
        (pkg / "manifest.py").write_text(textwrap.dedent(source))
        created.append(package)
        importlib.invalidate_caches()
        return pkg

    yield make

    for name in list(sys.modules):
        if any(name == p or name.startswith(p + ".") for p in created):
            del sys.modules[name]
    sys.path[:] = path_before
