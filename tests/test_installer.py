"""
Tests for the Installer — dispatch, ledger checks and recording.
"""

from pathlib import Path

import pytest

from plugin_manifest.core.engine.installer import Installer, InstallOptions
from plugin_manifest.core.errors import MalformedTargetError, UnknownOperationTypeError
from plugin_manifest.core.models import AssetDescriptor, ErrorKind, OperationType
from plugin_manifest.core.persistence.registry import ManifestRegistry


@pytest.fixture
def installer(registry: ManifestRegistry, app_root: Path) -> Installer:
    return Installer(registry, app_root)


def _bootstrap(app_root: Path) -> Path:
    path = app_root / "config" / "bootstrap.py"
    path.write_text("import app\n")
    return path


def _config(app_root: Path) -> Path:
    path = app_root / "config" / "app_local.py"
    path.write_text('CONFIG = {\n    "App": {},\n}\n')
    return path


APPEND = AssetDescriptor(
    operation_type=OperationType.APPEND,
    tag="bootstrap",
    destination="config/bootstrap.py",
    content="app.load('Blog')",
    marker="# Blog Configuration",
    module="Blog",
)

MERGE = AssetDescriptor(
    operation_type=OperationType.MERGE,
    tag="config",
    destination="config/app_local.py",
    key="Blog",
    value={"enabled": True},
    module="Blog",
)


class TestInstallOptions:
    def test_update_dependencies_implies(self):
        options = InstallOptions(update_dependencies=True)
        assert options.existing
        assert options.with_dependencies

    def test_no_dependencies_wins(self):
        options = InstallOptions(with_dependencies=True, no_dependencies=True)
        assert not options.with_dependencies

    def test_flags(self):
        assert InstallOptions(force=True).flags() == {
            "force": True,
            "existing": False,
            "dry_run": False,
            "with_dependencies": False,
            "all_deps": False,
        }


class TestDispatch:
    def test_malformed_descriptor(self, installer: Installer):
        bad = AssetDescriptor(operation_type=OperationType.APPEND, destination="x", module="Blog")
        result = installer.install(bad)
        assert result.failed
        assert "missing content" in result.message

    def test_unknown_type_raises(self, installer: Installer):
        del installer._handlers[OperationType.MERGE]
        with pytest.raises(UnknownOperationTypeError):
            installer.install(MERGE)

    def test_relative_paths_resolve_against_root(self, installer: Installer, app_root: Path):
        assert installer.resolve_path("config/x.py") == app_root / "config" / "x.py"
        assert installer.resolve_path("/abs/x.py") == Path("/abs/x.py")


class TestCopy:
    def test_copy_and_record(self, installer: Installer, registry: ManifestRegistry, app_root: Path, module_sources):
        descriptor = module_sources("Blog")
        result = installer.install(descriptor)
        assert result.status == "installed"
        assert (app_root / "out" / "blog.txt").read_text() == "Blog asset\n"

        records = registry.get_installed("Blog", "copy", "config")["config"]
        assert records[0]["destination"] == "out/blog.txt"

    def test_existing_file_skipped_without_force(self, installer: Installer, app_root: Path, module_sources):
        descriptor = module_sources("Blog")
        (app_root / "out").mkdir()
        (app_root / "out" / "blog.txt").write_text("local edits")

        result = installer.install(descriptor)
        assert result.skipped
        assert "--force" in result.message
        assert (app_root / "out" / "blog.txt").read_text() == "local edits"

    def test_force_overwrites(self, installer: Installer, app_root: Path, module_sources):
        descriptor = module_sources("Blog")
        (app_root / "out").mkdir()
        (app_root / "out" / "blog.txt").write_text("local edits")

        result = installer.install(descriptor, InstallOptions(force=True))
        assert result.success
        assert result.message == "Updated existing file"
        assert (app_root / "out" / "blog.txt").read_text() == "Blog asset\n"

    def test_existing_flag_overwrites(self, installer: Installer, app_root: Path, module_sources):
        descriptor = module_sources("Blog")
        (app_root / "out").mkdir()
        (app_root / "out" / "blog.txt").write_text("old")
        assert installer.install(descriptor, InstallOptions(existing=True)).success

    def test_copy_safe_never_overwrites(self, installer: Installer, app_root: Path, module_sources):
        descriptor = module_sources("Blog", operation_type=OperationType.COPY_SAFE)
        (app_root / "out").mkdir()
        (app_root / "out" / "blog.txt").write_text("mine")

        result = installer.install(descriptor, InstallOptions(force=True))
        assert result.skipped
        assert "copy-safe" in result.message
        assert (app_root / "out" / "blog.txt").read_text() == "mine"

    def test_migrations_recorded_per_file(self, installer: Installer, registry: ManifestRegistry, tmp_path: Path):
        src = tmp_path / "modules" / "Blog" / "migrations"
        src.mkdir(parents=True)
        (src / "20240101000000_create_posts.py").write_text("class CreatePosts:\n    pass\n")
        (src / "20240102000000_add_slug.py").write_text("class AddSlug:\n    pass\n")

        descriptor = AssetDescriptor(
            tag="migrations",
            source=str(src),
            destination="config/migrations",
            options={"rename_with_plugin": True},
            module="Blog",
        )
        result = installer.install(descriptor)
        assert result.status == "batch-installed"
        assert len(registry.get_installed("Blog", "copy", "migrations")["migrations"]) == 2
        assert registry.is_operation_completed("Blog", OperationType.COPY, "migrations", descriptor)


class TestAppend:
    def test_append_and_record(self, installer: Installer, registry: ManifestRegistry, app_root: Path):
        path = _bootstrap(app_root)
        result = installer.install(APPEND)
        assert result.status == "appended"
        assert "# Blog Configuration\napp.load('Blog')\n" in path.read_text()
        assert registry.is_operation_completed("Blog", OperationType.APPEND, "bootstrap", APPEND)

    def test_ledger_prevents_repeat(self, installer: Installer, app_root: Path):
        path = _bootstrap(app_root)
        installer.install(APPEND)
        # Marker removed by hand: the ledger still says it was done
        path.write_text("import app\n")

        result = installer.install(APPEND)
        assert result.skipped
        assert result.error_kind == ErrorKind.ALREADY_COMPLETED
        assert path.read_text() == "import app\n"

    def test_force_bypasses_ledger(self, installer: Installer, app_root: Path):
        path = _bootstrap(app_root)
        installer.install(APPEND)
        path.write_text("import app\n")

        result = installer.install(APPEND, InstallOptions(force=True))
        assert result.status == "appended"
        assert "# Blog Configuration" in path.read_text()

    def test_missing_target(self, installer: Installer, registry: ManifestRegistry):
        result = installer.install(APPEND)
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert not registry.is_operation_completed("Blog", OperationType.APPEND, "bootstrap", APPEND)


class TestEnv:
    def test_env_recorded_only_when_added(self, installer: Installer, registry: ManifestRegistry, app_root: Path):
        descriptor = AssetDescriptor(
            operation_type=OperationType.APPEND_ENV,
            tag="envs",
            destination=".env",
            env_vars={"BLOG_KEY": "abc"},
            module="Blog",
        )
        assert installer.install(descriptor).status == "appended"
        assert (app_root / ".env").read_text() == "BLOG_KEY=abc\n"

        again = installer.install(descriptor)
        assert again.skipped
        records = registry.get_installed("Blog", "append-env", "envs")["envs"]
        assert len(records) == 1
        assert records[0]["env_vars"] == ["BLOG_KEY"]


class TestMerge:
    def test_merge_and_record(self, installer: Installer, registry: ManifestRegistry, app_root: Path):
        path = _config(app_root)
        result = installer.install(MERGE)
        assert result.status == "merged"
        assert "'Blog': {" in path.read_text()
        assert registry.is_operation_completed("Blog", OperationType.MERGE, "config", MERGE)

        assert installer.install(MERGE).message == "Already merged (use --force to merge again)"

    def test_malformed_target_propagates(self, installer: Installer, app_root: Path):
        (app_root / "config" / "app_local.py").write_text("A = 1\nB = 2\n")
        with pytest.raises(MalformedTargetError):
            installer.install(MERGE)


class TestDryRun:
    def test_no_side_effects(self, installer: Installer, registry: ManifestRegistry, app_root: Path, module_sources):
        bootstrap = _bootstrap(app_root)
        config = _config(app_root)
        before = {p: p.read_bytes() for p in (bootstrap, config)}
        options = InstallOptions(dry_run=True)

        env = AssetDescriptor(
            operation_type=OperationType.APPEND_ENV, tag="envs",
            destination=".env", env_vars={"A": "1"}, module="Blog",
        )
        results = [
            installer.install(module_sources("Blog"), options),
            installer.install(APPEND, options),
            installer.install(MERGE, options),
            installer.install(env, options),
        ]
        assert [r.status for r in results] == ["would-install", "would-append", "would-merge", "would-append"]

        assert {p: p.read_bytes() for p in (bootstrap, config)} == before
        assert not (app_root / "out").exists()
        assert not (app_root / ".env").exists()
        assert not registry.path.exists()


class TestDependencies:
    DEPS = AssetDescriptor(
        operation_type=OperationType.DEPENDENCIES,
        tag="dependencies",
        dependencies={"Comments": {"required": True}},
        module="Blog",
    )

    def test_without_orchestrator(self, installer: Installer):
        result = installer.install(self.DEPS, InstallOptions(with_dependencies=True))
        assert result.error_kind == ErrorKind.CAPABILITY_MISSING

    def test_without_session(self, make_services):
        services = make_services({"Blog": [self.DEPS]})
        result = services.installer.install(self.DEPS, InstallOptions(with_dependencies=True))
        assert result.error_kind == ErrorKind.CAPABILITY_MISSING
        assert "session" in result.message
