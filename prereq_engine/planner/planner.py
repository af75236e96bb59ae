"""Execution planning: dependency-respecting test order and suite plans."""

from __future__ import annotations

import heapq
import logging

from prereq_engine.cache.cache import PrerequisiteCache
from prereq_engine.errors import CycleDetectedError
from prereq_engine.graph.graph import DependencyGraph
from prereq_engine.models.config import EngineConfig
from prereq_engine.models.plan import CacheHint, PlanStep, SuiteExecutionPlan
from prereq_engine.models.suite import TestSuite

logger = logging.getLogger(__name__)


def topological_order(graph: DependencyGraph) -> list[str]:
    """Order the suite members so every prerequisite runs before its dependents.

    Kahn's algorithm over the member subgraph. Dependencies on tests outside
    the suite are treated as satisfied externally. When several tests are
    ready at once, the one earlier in the suite runs first, so unrelated
    tests keep their relative order.

    Raises CycleDetectedError instead of returning a partial order.
    """
    members = graph.member_ids
    position = {test_id: i for i, test_id in enumerate(members)}

    cycles = graph.find_cycles(within=set(members))
    if cycles:
        raise CycleDetectedError(cycles[0])

    in_degree = {
        test_id: sum(1 for p in graph.prerequisites_of(test_id) if p in position)
        for test_id in members
    }
    ready = [(position[t], t) for t in members if in_degree[t] == 0]
    heapq.heapify(ready)

    order: list[str] = []
    while ready:
        _, current = heapq.heappop(ready)
        order.append(current)
        for dependent in graph.dependents_of(current):
            if dependent not in position:
                continue
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, (position[dependent], dependent))

    if len(order) != len(members):
        done = set(order)
        remaining = {t for t in members if t not in done}
        cycle = (graph.find_cycles(within=remaining) or [sorted(remaining)])[0]
        raise CycleDetectedError(cycle)

    return order


class ExecutionPlanner:
    """Produces execution orders and suite plans with cache hints."""

    def __init__(self, config: EngineConfig, cache: PrerequisiteCache | None = None):
        self.config = config
        self.cache = cache

    def generate_execution_order(self, graph: DependencyGraph) -> list[str]:
        order = topological_order(graph)
        logger.debug("Execution order for suite %s: %s", graph.suite_id, order)
        return order

    def generate_suite_execution_plan(
        self,
        suite: TestSuite,
        graph: DependencyGraph,
    ) -> SuiteExecutionPlan:
        """Build the full plan for a suite run from the records already on ``graph``."""
        order = self.generate_execution_order(graph)
        members = set(order)

        steps: list[PlanStep] = []
        total_prerequisites = 0
        for position, test_id in enumerate(order):
            tc = graph.node(test_id).test_case
            if tc is None:
                steps.append(PlanStep(position=position, test_case_id=test_id))
                continue

            total_prerequisites += len(tc.prerequisites)
            hints = []
            for dep in tc.test_dependencies():
                cached = False
                if dep.use_cache and self.cache is not None:
                    cached = self.cache.peek(dep.test_case_id) is not None
                hints.append(CacheHint(
                    prerequisite_id=dep.id,
                    test_case_id=dep.test_case_id,
                    use_cache=dep.use_cache,
                    cache_expiry=dep.cache_expiry,
                    cached=cached,
                    in_suite=dep.test_case_id in members,
                ))

            steps.append(PlanStep(
                position=position,
                test_case_id=test_id,
                name=tc.name,
                depends_on=graph.prerequisites_of(test_id),
                prerequisite_count=len(tc.prerequisites),
                enabled_prerequisite_count=sum(1 for p in tc.prerequisites if p.enabled),
                cache_hints=hints,
            ))

        plan = SuiteExecutionPlan(
            suite_id=suite.id,
            test_cases=order,
            steps=steps,
            total_prerequisites=total_prerequisites,
            estimated_duration_ms=len(order) * self.config.estimated_test_duration_ms,
            dependency_graph=graph.to_summary(),
        )
        logger.info("Planned suite %s: %d tests, %d prerequisites",
                    suite.id, len(order), total_prerequisites)
        return plan
