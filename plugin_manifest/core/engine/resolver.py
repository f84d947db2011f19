"""
Dependency resolver — pure graph logic over module manifests.

Given the available modules and a set of roots, walks declared
dependencies depth-first, filters them by required/optional/condition,
rejects cycles and returns an install order in which every dependency
comes before its dependents (Kahn's algorithm).

No I/O beyond what condition evaluation does.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from plugin_manifest.core.engine.conditions import ConditionEvaluator
from plugin_manifest.core.errors import CircularDependencyError
from plugin_manifest.core.models.asset import AssetDescriptor, Condition, DependencyConfig

logger = logging.getLogger(__name__)


@dataclass
class ResolveOptions:
    """Which declared dependencies survive filtering."""

    install_optional: bool = False
    force_all: bool = False    # keep everything, ignore conditions


@dataclass
class DependencyInfo:
    """Display view of one declared dependency."""

    name: str
    required: bool
    tags: list[str] | None
    reason: str
    prompt: str
    condition: Condition | None = None
    condition_met: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "required": self.required,
            "tags": self.tags,
            "reason": self.reason,
            "prompt": self.prompt,
            "has_condition": self.condition is not None,
            "condition_met": self.condition_met,
        }


@dataclass
class _Node:
    dependencies: list[str] = field(default_factory=list)
    config: dict[str, DependencyConfig] = field(default_factory=dict)


class DependencyResolver:
    """Builds dependency trees and install orders."""

    def __init__(self, evaluator: ConditionEvaluator | None = None):
        self._evaluator = evaluator or ConditionEvaluator()

    # ── Filtering ───────────────────────────────────────────────

    def filter_dependencies(
        self,
        dependencies: Mapping[str, DependencyConfig],
        options: ResolveOptions | None = None,
    ) -> dict[str, DependencyConfig]:
        """Keep the dependencies the options select, in declaration order."""
        options = options or ResolveOptions()
        kept: dict[str, DependencyConfig] = {}
        for name, config in dependencies.items():
            if not (options.force_all or config.required or options.install_optional):
                continue
            if config.has_condition and not options.force_all:
                if not self._evaluator.evaluate(config.condition):
                    logger.debug("Dependency %s dropped: condition not met", name)
                    continue
            kept[name] = config
        return kept

    def dependency_info(
        self,
        dependencies: Mapping[str, DependencyConfig],
    ) -> dict[str, DependencyInfo]:
        """Describe each declared dependency, evaluating its condition."""
        return {
            name: DependencyInfo(
                name=name,
                required=config.required,
                tags=config.tags,
                reason=config.reason,
                prompt=config.prompt_for(name),
                condition=config.condition if config.has_condition else None,
                condition_met=self._evaluator.evaluate(config.condition),
            )
            for name, config in dependencies.items()
        }

    # ── Graph ───────────────────────────────────────────────────

    def check_circular_dependencies(self, graph: Mapping[str, Iterable[str]]) -> list[str]:
        """Find one cycle in ``module → dependencies`` form.

        Returns:
            The cycle as a path (first node not repeated), or ``[]``.
        """
        visited: set[str] = set()
        on_stack: set[str] = set()

        def visit(node: str, path: list[str]) -> list[str]:
            visited.add(node)
            on_stack.add(node)
            path.append(node)

            for dep in graph.get(node, ()):
                if dep not in visited:
                    cycle = visit(dep, path)
                    if cycle:
                        return cycle
                elif dep in on_stack:
                    return path[path.index(dep):]

            on_stack.discard(node)
            path.pop()
            return []

        for node in graph:
            if node not in visited:
                cycle = visit(node, [])
                if cycle:
                    return cycle
        return []

    def resolve_dependency_order(self, graph: Mapping[str, Iterable[str]]) -> list[str]:
        """Topologically order ``module → dependencies`` so dependencies come first.

        Dependencies not present as keys are ignored.

        Raises:
            CircularDependencyError: If the graph has a cycle.
        """
        graph = {node: list(deps) for node, deps in graph.items()}
        cycle = self.check_circular_dependencies(graph)
        if cycle:
            raise CircularDependencyError(cycle)

        in_degree: dict[str, int] = {node: 0 for node in graph}
        dependents: dict[str, list[str]] = {node: [] for node in graph}
        for node, deps in graph.items():
            for dep in deps:
                if dep in graph:
                    dependents[dep].append(node)
                    in_degree[node] += 1

        queue = deque(node for node, degree in in_degree.items() if degree == 0)
        order: list[str] = []
        while queue:
            node = queue.popleft()
            order.append(node)
            for dependent in dependents[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        return order

    # ── Tree ────────────────────────────────────────────────────

    def build_dependency_tree(
        self,
        available: Mapping[str, Sequence[AssetDescriptor]],
        roots: Iterable[str],
        options: ResolveOptions | None = None,
    ) -> dict[str, dict[str, DependencyConfig]]:
        """Expand ``roots`` through their (filtered) dependencies.

        Returns:
            Every reached module present in ``available``, in install
            order, mapped to its own filtered dependency configs.

        Raises:
            CircularDependencyError: If the reached graph has a cycle.
        """
        options = options or ResolveOptions()
        nodes: dict[str, _Node] = {}
        visited: set[str] = set()

        def walk(module: str) -> None:
            if module in visited:
                return
            visited.add(module)

            assets = available.get(module)
            if assets is None:
                logger.debug("Dependency %s is not available; skipped", module)
                return

            declared = next((a.dependencies for a in assets if a.is_dependencies), {})
            kept = self.filter_dependencies(declared, options)
            nodes[module] = _Node(dependencies=list(kept), config=kept)
            for dep in kept:
                walk(dep)

        for root in roots:
            walk(root)

        if not nodes:
            return {}

        graph = {
            module: [dep for dep in node.dependencies if dep in nodes]
            for module, node in nodes.items()
        }
        order = self.resolve_dependency_order(graph)
        return {module: nodes[module].config for module in order}
