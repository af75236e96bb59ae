"""Builds the dependency graph for a suite."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

from prereq_engine.models.suite import TestCase, TestSuite

from .graph import DependencyGraph

logger = logging.getLogger(__name__)

TestCaseResolver = Callable[[str], Optional[TestCase]]


def build_dependency_graph(suite: TestSuite, resolve: TestCaseResolver) -> DependencyGraph:
    """Build the graph for ``suite``, following dependencies across suites.

    Traversal is breadth-first from the suite members. Every id is resolved at
    most once per call. Ids that do not resolve become phantom nodes; building
    never fails. Only enabled ``test_dependency`` prerequisites produce edges,
    and self-references are left for the validator to report.
    """
    graph = DependencyGraph(suite.id)
    resolved: dict[str, Optional[TestCase]] = {}

    def lookup(test_case_id: str) -> Optional[TestCase]:
        if test_case_id not in resolved:
            resolved[test_case_id] = resolve(test_case_id)
        return resolved[test_case_id]

    def add(test_case_id: str, in_suite: bool) -> None:
        tc = lookup(test_case_id)
        graph.add_node(
            test_case_id,
            name=tc.name if tc else "",
            suite_id=tc.suite_id if tc else None,
            in_suite=in_suite,
            phantom=tc is None,
            enabled=tc.enabled if tc else False,
            test_case=tc,
        )

    queue: deque[str] = deque()
    for test_case_id in suite.test_case_ids:
        if test_case_id in graph:
            continue
        add(test_case_id, in_suite=True)
        queue.append(test_case_id)

    while queue:
        current = queue.popleft()
        tc = resolved.get(current)
        if tc is None:
            continue
        for dep in tc.test_dependencies():
            if dep.test_case_id == current:
                continue
            if dep.test_case_id not in graph:
                add(dep.test_case_id, in_suite=False)
                queue.append(dep.test_case_id)
            graph.add_edge(current, dep.test_case_id, dep.id)

    logger.debug(
        "Built dependency graph for suite %s: %d nodes (%d external, %d phantom), %d edges",
        suite.id, len(graph), len(graph.external_ids), len(graph.phantom_ids), len(graph.edges),
    )
    return graph
