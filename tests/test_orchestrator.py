"""
Tests for the dependency orchestrator — selection, ordering, failure
policy and session-level de-duplication.
"""

from pathlib import Path

import pytest

from plugin_manifest.core.engine.installer import InstallOptions
from plugin_manifest.core.models import AssetDescriptor, OperationType
from plugin_manifest.core.use_cases.install import install_module

REQUIRED = {"required": True}


def _deps(module: str, deps: dict) -> AssetDescriptor:
    return AssetDescriptor.model_validate({
        "operation_type": OperationType.DEPENDENCIES,
        "tag": "dependencies",
        "dependencies": deps,
        "module": module,
    })


def _broken(module: str) -> AssetDescriptor:
    return AssetDescriptor(
        tag="config", source="/nonexistent/source.txt", destination=f"out/{module}.txt", module=module
    )


@pytest.fixture
def modules(module_sources):
    """Factory: ``{name: deps or None}`` → catalog mapping with one copy asset each."""

    def make(declared: dict[str, dict | None]) -> dict[str, list[AssetDescriptor]]:
        result = {}
        for name, deps in declared.items():
            assets = [module_sources(name)]
            if deps is not None:
                assets.append(_deps(name, deps))
            result[name] = assets
        return result

    return make


def _run(services, parent: str, session, **flags):
    descriptor = services.catalog.dependencies_of(parent)
    options = InstallOptions(session=session, **{"with_dependencies": True, **flags})
    return services.installer.install(descriptor, options)


class TestPreconditions:
    def test_not_requested(self, make_services, modules, session):
        services = make_services(modules({"A": {"B": REQUIRED}, "B": None}))
        result = _run(services, "A", session, with_dependencies=False)
        assert result.skipped
        assert result.success
        assert "--with-dependencies" in result.message

    def test_no_dependencies_defined(self, make_services, modules, session):
        services = make_services(modules({"A": {}}))
        result = _run(services, "A", session)
        assert result.message == "No dependencies defined"

    def test_nothing_available(self, make_services, modules, session):
        services = make_services(modules({"A": {"Ghost": REQUIRED}}))
        result = _run(services, "A", session)
        assert result.message == "No dependencies selected for installation"
        assert "Not available" in session.output


class TestOrdering:
    def test_chain_installs_deepest_first(self, make_services, modules, session, app_root: Path):
        services = make_services(modules({"A": {"B": REQUIRED}, "B": {"C": REQUIRED}, "C": None}))
        result = _run(services, "A", session)

        assert result.status == "batch-installed"
        assert [r.source for r in result.batch_results] == ["C", "B"]
        assert (app_root / "out" / "b.txt").is_file()
        assert (app_root / "out" / "c.txt").is_file()
        assert "1. C" in session.output
        assert "2. B" in session.output

    def test_module_installs_after_its_dependencies(self, make_services, modules, session):
        services = make_services(modules({"A": {"B": REQUIRED}, "B": {"C": REQUIRED}, "C": None}))
        report = install_module(services, "A", None, InstallOptions(with_dependencies=True, session=session))

        order = []
        for outcome in report.outcomes:
            if outcome.result.is_batch:
                order.extend(r.source for r in outcome.result.batch_results)
            else:
                order.append("A")
        assert order == ["C", "B", "A"]
        assert report.outcomes[0].tag == "dependencies"
        assert report.ok

    def test_dependencies_stay_in_tag_order_when_not_requested(self, make_services, modules, session):
        services = make_services(modules({"A": {"B": REQUIRED}, "B": None}))
        report = install_module(services, "A", None, InstallOptions(session=session))
        assert [o.tag for o in report.outcomes] == ["config", "dependencies"]
        assert report.outcomes[1].result.skipped

    def test_diamond_installs_shared_dependency_once(self, make_services, modules, session):
        services = make_services(modules({
            "A": {"B": REQUIRED, "C": REQUIRED},
            "B": {"D": REQUIRED},
            "C": {"D": REQUIRED},
            "D": None,
        }))
        result = _run(services, "A", session)

        sources = [r.source for r in result.batch_results]
        assert sources.count("D") == 1
        assert sources.index("D") < sources.index("B")
        assert sources.index("D") < sources.index("C")

    def test_session_dedup_across_parents(self, make_services, modules, session):
        services = make_services(modules({
            "A": {"Shared": REQUIRED},
            "B": {"Shared": REQUIRED},
            "Shared": None,
        }))
        _run(services, "A", session)
        second = _run(services, "B", session)

        assert second.batch_results == []
        assert "skipped (duplicates)" in second.message
        assert "[SKIP] Shared (already installed in this session)" in session.output
        assert services.dependency_installer.installed_this_session == {"Shared"}
        assert services.registry.get_dependents("Shared") == ["A", "B"]

    def test_cycle_reported(self, make_services, modules, session):
        services = make_services(modules({"A": {"B": REQUIRED}, "B": {"A": REQUIRED}}))
        result = _run(services, "A", session)
        assert result.failed
        assert "Circular dependencies detected" in result.message
        assert session.errors


class TestFailurePolicy:
    def test_required_failure_stops(self, make_services, modules, session, app_root: Path):
        catalog = modules({"A": {"Bad": REQUIRED, "C": REQUIRED}, "C": None})
        catalog["Bad"] = [_broken("Bad")]
        services = make_services(catalog)

        result = _run(services, "A", session)
        assert result.status == "partial"
        assert [r.source for r in result.batch_results] == ["Bad"]
        assert not (app_root / "out" / "c.txt").exists()
        assert any("Stopping" in e for e in session.errors)

    def test_optional_failure_continues(self, make_services, modules, session, app_root: Path):
        catalog = modules({"A": {"Bad": {}, "C": REQUIRED}, "C": None})
        catalog["Bad"] = [_broken("Bad")]
        services = make_services(catalog)

        result = _run(services, "A", session, all_deps=True)
        assert result.status == "partial"
        assert [r.source for r in result.batch_results] == ["Bad", "C"]
        assert (app_root / "out" / "c.txt").is_file()
        assert result.message == "Dependencies: 1 installed, 1 failed"


class TestSelection:
    def test_optional_prompted(self, make_services, modules, scripted_session):
        session = scripted_session(answers=[True])
        services = make_services(modules({"A": {"Opt": {"prompt": "Add comments?"}}, "Opt": None}))
        result = _run(services, "A", session)

        assert result.success
        assert session.questions[0].strip() == "Add comments?"
        assert session.questions[1] == "Proceed with dependency installation?"

    def test_optional_declined(self, make_services, modules, scripted_session):
        session = scripted_session(answers=[False])
        services = make_services(modules({"A": {"Opt": {}}, "Opt": None}))
        result = _run(services, "A", session)
        assert result.message == "No dependencies selected for installation"

    def test_all_deps_skips_prompt(self, make_services, modules, scripted_session):
        session = scripted_session()
        services = make_services(modules({"A": {"Opt": {}}, "Opt": None}))
        result = _run(services, "A", session, all_deps=True)
        assert result.success
        assert session.questions == ["Proceed with dependency installation?"]

    def test_unmet_condition_skips_optional(self, make_services, modules, session):
        services = make_services(modules({
            "A": {"Redis": {"condition": {"kind": "file_exists", "path": "redis.conf"}}},
            "Redis": None,
        }))
        result = _run(services, "A", session)
        assert result.message == "No dependencies selected for installation"
        assert "Condition not met" in session.output

    def test_dependency_tags_narrow_assets(self, make_services, module_sources, session, app_root: Path):
        comments = [
            module_sources("Comments"),
            module_sources("Comments", tag="webroot", destination="webroot/comments.txt"),
        ]
        services = make_services({
            "A": [module_sources("A"), _deps("A", {"Comments": {"required": True, "tags": ["config"]}})],
            "Comments": comments,
        })
        _run(services, "A", session)
        assert (app_root / "out" / "comments.txt").is_file()
        assert not (app_root / "webroot").exists()

    def test_cancel(self, make_services, modules, scripted_session, app_root: Path):
        session = scripted_session(confirm=False)
        services = make_services(modules({"A": {"B": REQUIRED}, "B": None}))
        result = _run(services, "A", session)
        assert result.status == "cancelled"
        assert not (app_root / "out").exists()


class TestRecording:
    def test_edges_recorded(self, make_services, modules, session):
        services = make_services(modules({"A": {"B": {"required": True, "reason": "posts"}}, "B": None}))
        _run(services, "A", session)

        edges = services.registry.get_dependencies("A")
        assert edges["B"].required is True
        assert edges["B"].reason == "posts"
        assert services.registry.get_dependents("B") == ["A"]

    def test_dry_run_no_prompts_no_side_effects(self, make_services, modules, scripted_session, app_root: Path):
        session = scripted_session(confirm=False)
        services = make_services(modules({"A": {"B": REQUIRED, "Opt": {}}, "B": None, "Opt": None}))
        result = _run(services, "A", session, dry_run=True)

        assert result.success
        assert session.questions == []
        assert [r.source for r in result.batch_results] == ["B"]
        assert not (app_root / "out").exists()
        assert not services.registry.path.exists()
