"""
Tests for the dependency resolver — filtering, cycles and install order.
"""

from pathlib import Path

import pytest

from plugin_manifest.core.engine.conditions import ConditionEvaluator
from plugin_manifest.core.engine.resolver import DependencyResolver, ResolveOptions
from plugin_manifest.core.errors import CircularDependencyError
from plugin_manifest.core.models import (
    AssetDescriptor,
    ConfigKeyExists,
    DependencyConfig,
    FileExists,
    OperationType,
)


def _module(name: str, deps: dict | None = None) -> list[AssetDescriptor]:
    """A module with one copy asset and (optionally) a dependencies descriptor."""
    assets = [AssetDescriptor(source=f"{name}.txt", destination=f"out/{name}.txt", module=name)]
    if deps is not None:
        assets.append(
            AssetDescriptor.model_validate({
                "operation_type": OperationType.DEPENDENCIES,
                "dependencies": deps,
                "module": name,
            })
        )
    return assets


REQUIRED = {"required": True}


class TestOrdering:
    def test_chain(self):
        available = {
            "A": _module("A", {"B": REQUIRED}),
            "B": _module("B", {"C": REQUIRED}),
            "C": _module("C"),
        }
        tree = DependencyResolver().build_dependency_tree(available, ["A"])
        assert list(tree) == ["C", "B", "A"]

    def test_diamond(self):
        available = {
            "A": _module("A", {"B": REQUIRED, "C": REQUIRED}),
            "B": _module("B", {"D": REQUIRED}),
            "C": _module("C", {"D": REQUIRED}),
            "D": _module("D"),
        }
        order = list(DependencyResolver().build_dependency_tree(available, ["A"]))
        assert order.count("D") == 1
        assert order.index("D") < order.index("B")
        assert order.index("D") < order.index("C")
        assert order.index("B") < order.index("A")
        assert order.index("C") < order.index("A")

    def test_every_dependency_before_its_dependents(self):
        graph = {
            "app": ["auth", "blog"],
            "blog": ["comments", "media"],
            "comments": ["auth", "queue"],
            "media": ["queue"],
            "auth": [],
            "queue": [],
        }
        order = DependencyResolver().resolve_dependency_order(graph)
        assert sorted(order) == sorted(graph)
        for module, deps in graph.items():
            for dep in deps:
                assert order.index(dep) < order.index(module)

    def test_zero_dependency_roots_kept(self):
        available = {"A": _module("A"), "B": _module("B")}
        tree = DependencyResolver().build_dependency_tree(available, ["A", "B"])
        assert tree == {"A": {}, "B": {}}

    def test_configs_are_filtered_per_module(self):
        available = {
            "A": _module("A", {"B": {"required": True, "tags": ["config"]}, "X": {}}),
            "B": _module("B"),
            "X": _module("X"),
        }
        tree = DependencyResolver().build_dependency_tree(available, ["A"])
        assert list(tree["A"]) == ["B"]
        assert tree["A"]["B"].tags == ["config"]


class TestCycles:
    def test_cycle_raises(self):
        available = {
            "A": _module("A", {"B": REQUIRED}),
            "B": _module("B", {"C": REQUIRED}),
            "C": _module("C", {"A": REQUIRED}),
        }
        with pytest.raises(CircularDependencyError) as exc:
            DependencyResolver().build_dependency_tree(available, ["A"])
        assert exc.value.cycle == ["A", "B", "C"]
        assert "A → B → C → A" in str(exc.value)

    def test_self_dependency(self):
        available = {"A": _module("A", {"A": REQUIRED})}
        with pytest.raises(CircularDependencyError):
            DependencyResolver().build_dependency_tree(available, ["A"])

    def test_check_returns_path_from_back_edge_target(self):
        graph = {"root": ["A"], "A": ["B"], "B": ["A"]}
        assert DependencyResolver().check_circular_dependencies(graph) == ["A", "B"]

    def test_acyclic_returns_empty(self):
        assert DependencyResolver().check_circular_dependencies({"A": ["B"], "B": []}) == []

    def test_order_refused_for_cycle(self):
        with pytest.raises(CircularDependencyError):
            DependencyResolver().resolve_dependency_order({"A": ["B"], "B": ["A"]})


class TestAvailability:
    def test_absent_dependency_silently_omitted(self):
        available = {"A": _module("A", {"Ghost": REQUIRED, "B": REQUIRED}), "B": _module("B")}
        tree = DependencyResolver().build_dependency_tree(available, ["A"])
        assert list(tree) == ["B", "A"]
        assert "Ghost" not in tree

    def test_absent_root_gives_empty_tree(self):
        assert DependencyResolver().build_dependency_tree({}, ["Nope"]) == {}


class TestFiltering:
    def _declared(self) -> dict[str, DependencyConfig]:
        return {
            "Req": DependencyConfig(required=True),
            "Opt": DependencyConfig(),
            "OptNo": DependencyConfig(condition=lambda: False),
            "OptYes": DependencyConfig(condition=lambda: True),
        }

    def test_optional_excluded_by_default(self):
        kept = DependencyResolver().filter_dependencies(self._declared())
        assert list(kept) == ["Req"]

    def test_install_optional_respects_conditions(self):
        kept = DependencyResolver().filter_dependencies(
            self._declared(), ResolveOptions(install_optional=True)
        )
        assert list(kept) == ["Req", "Opt", "OptYes"]

    def test_force_all_bypasses_conditions(self):
        kept = DependencyResolver().filter_dependencies(
            self._declared(), ResolveOptions(force_all=True)
        )
        assert list(kept) == ["Req", "Opt", "OptNo", "OptYes"]

    def test_required_with_unmet_condition_dropped_without_force(self):
        declared = {"Req": DependencyConfig(required=True, condition=lambda: False)}
        assert DependencyResolver().filter_dependencies(declared) == {}

    def test_optional_nested_not_expanded_by_default(self):
        available = {
            "A": _module("A", {"B": REQUIRED, "Opt": {}}),
            "B": _module("B"),
            "Opt": _module("Opt"),
        }
        resolver = DependencyResolver()
        assert "Opt" not in resolver.build_dependency_tree(available, ["A"])
        forced = resolver.build_dependency_tree(available, ["A"], ResolveOptions(force_all=True))
        assert "Opt" in forced


class TestConditions:
    def test_file_exists_relative_to_root(self, tmp_path: Path):
        (tmp_path / "marker.txt").write_text("x")
        evaluator = ConditionEvaluator(app_root=tmp_path)
        assert evaluator.evaluate(FileExists(path="marker.txt"))
        assert not evaluator.evaluate(FileExists(path="missing.txt"))

    def test_config_key_exists(self, tmp_path: Path):
        config = tmp_path / "app_local.py"
        config.write_text('CONFIG = {\n    "Cache": {\n        "default": {},\n    },\n}\n')
        evaluator = ConditionEvaluator(tmp_path, config)
        assert evaluator.evaluate(ConfigKeyExists(key="Cache.default"))
        assert not evaluator.evaluate(ConfigKeyExists(key="Cache.redis"))
        assert not evaluator.evaluate(ConfigKeyExists(key="Cache.default.x.y"))

    def test_config_key_without_config_file(self):
        assert not ConditionEvaluator().evaluate(ConfigKeyExists(key="A"))

    def test_none_is_met(self):
        assert ConditionEvaluator().evaluate(None)

    def test_dependency_info(self, tmp_path: Path):
        resolver = DependencyResolver(ConditionEvaluator(app_root=tmp_path))
        info = resolver.dependency_info({
            "Queue": DependencyConfig(required=True, reason="jobs"),
            "Redis": DependencyConfig(condition=FileExists(path="redis.conf")),
        })
        assert info["Queue"].required
        assert info["Queue"].prompt == "Install Queue module assets?"
        assert info["Queue"].condition is None
        assert info["Redis"].condition_met is False
        assert info["Redis"].to_dict()["has_condition"] is True
