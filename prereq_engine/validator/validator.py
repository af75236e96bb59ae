"""Dependency validation for test cases and suites."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Optional

from prereq_engine.graph.builder import TestCaseResolver, build_dependency_graph
from prereq_engine.graph.graph import DependencyGraph
from prereq_engine.models.config import EngineConfig
from prereq_engine.models.prerequisite import (
    CleanupPrerequisite,
    PrerequisiteAction,
    SetupProfilePrerequisite,
    StateSetupPrerequisite,
    TestDependencyPrerequisite,
)
from prereq_engine.models.suite import SetupProfile, TestCase, TestSuite
from prereq_engine.models.validation import SuggestedFix, ValidationIssue, ValidationResult
from prereq_engine.planner.planner import topological_order

logger = logging.getLogger(__name__)

SetupProfileLookup = Callable[[str], Optional[SetupProfile]]


class DependencyValidator:
    """Finds dependency problems before any device time is spent."""

    def __init__(
        self,
        resolve: TestCaseResolver,
        get_setup_profile: SetupProfileLookup,
        config: EngineConfig | None = None,
    ):
        self.resolve = resolve
        self.get_setup_profile = get_setup_profile
        self.config = config or EngineConfig()

    def validate_test_case(self, test_case: TestCase) -> ValidationResult:
        """Checks local to one test. Cycle detection needs the whole suite and is not run."""
        issues = self._check_test_case(test_case)
        return ValidationResult(valid=not any(i.is_error for i in issues), issues=issues)

    def validate_suite(self, suite: TestSuite, graph: DependencyGraph | None = None) -> ValidationResult:
        if graph is None:
            graph = build_dependency_graph(suite, self.resolve)

        issues: list[ValidationIssue] = self._find_duplicate_members(suite)
        for node in graph.nodes:
            if not node.in_suite:
                continue
            if node.phantom:
                issues.append(ValidationIssue(
                    type="missing_dependency",
                    severity="error",
                    message=f'Suite "{suite.name}" lists unknown test case "{node.test_case_id}"',
                    affected_test_case_ids=[node.test_case_id],
                ))
                continue
            tc = node.test_case
            if tc is not None:
                issues.extend(self._check_test_case(tc, graph))

        cycle_issues = self._find_cycles(graph)
        issues.extend(cycle_issues)
        issues.extend(self._find_missing(suite, graph))
        if self.config.warn_on_order_drift and not cycle_issues:
            issues.extend(self._check_order(suite, graph))

        has_errors = any(i.is_error for i in issues)
        execution_order = None if has_errors else topological_order(graph)

        logger.info("Validated suite %s: %d errors, %d warnings",
                    suite.id, sum(1 for i in issues if i.is_error),
                    sum(1 for i in issues if not i.is_error))
        return ValidationResult(valid=not has_errors, issues=issues, execution_order=execution_order)

    # ------------------------------------------------------------------
    # Local checks
    # ------------------------------------------------------------------

    def _check_test_case(
        self, tc: TestCase, graph: DependencyGraph | None = None,
    ) -> list[ValidationIssue]:
        """Checks local to one test.

        With ``graph``, dependency targets are read from its nodes and missing
        targets are left to the suite-wide pass.
        """
        issues: list[ValidationIssue] = []

        counts = Counter(p.id for p in tc.prerequisites)
        for prereq_id, count in counts.items():
            if count > 1:
                issues.append(ValidationIssue(
                    type="duplicate_prerequisite",
                    severity="error",
                    message=f'Test case "{tc.name}" has {count} prerequisites with id "{prereq_id}"',
                    affected_test_case_ids=[tc.id],
                ))

        for prereq in tc.prerequisites:
            if isinstance(prereq, SetupProfilePrerequisite):
                issues.extend(self._check_setup_profile(tc, prereq))
            elif isinstance(prereq, TestDependencyPrerequisite):
                issues.extend(self._check_test_dependency(tc, prereq, graph))
            elif isinstance(prereq, (StateSetupPrerequisite, CleanupPrerequisite)):
                issues.extend(self._check_actions(tc, prereq.name, prereq.actions))
            else:
                raise TypeError(f"Unknown prerequisite type: {type(prereq).__name__}")

        disabled = [p for p in tc.prerequisites if not p.enabled]
        if disabled and tc.enabled and self.config.report_disabled_prerequisites:
            issues.append(ValidationIssue(
                type="disabled_prerequisite",
                severity="warning",
                message=f'Test case "{tc.name}" has {len(disabled)} disabled prerequisite(s)',
                affected_test_case_ids=[tc.id],
            ))

        return issues

    def _check_setup_profile(
        self, tc: TestCase, prereq: SetupProfilePrerequisite,
    ) -> list[ValidationIssue]:
        profile = self.get_setup_profile(prereq.setup_profile_id)
        if profile is None:
            return [ValidationIssue(
                type="missing_setup_profile",
                severity="error",
                message=(
                    f'Test case "{tc.name}" references unknown setup profile '
                    f'"{prereq.setup_profile_id}"'
                ),
                affected_test_case_ids=[tc.id],
                suggested_fix=SuggestedFix(
                    type="remove_dependency",
                    description="Remove the setup profile prerequisite or create the profile",
                    auto_applicable=False,
                    data={"test_case_id": tc.id, "prerequisite_id": prereq.id},
                ),
            )]
        if tc.enabled and prereq.enabled and not profile.enabled:
            return [ValidationIssue(
                type="disabled_prerequisite",
                severity="warning",
                message=f'Test case "{tc.name}" requires disabled setup profile "{profile.name}"',
                affected_test_case_ids=[tc.id],
            )]
        return []

    def _check_test_dependency(
        self, tc: TestCase, prereq: TestDependencyPrerequisite, graph: DependencyGraph | None,
    ) -> list[ValidationIssue]:
        if prereq.test_case_id == tc.id:
            return [ValidationIssue(
                type="self_dependency",
                severity="error",
                message=f'Test case "{tc.name}" depends on itself',
                affected_test_case_ids=[tc.id],
                suggested_fix=SuggestedFix(
                    type="remove_dependency",
                    description="Remove the self-referencing dependency",
                    auto_applicable=False,
                    data={"test_case_id": tc.id, "prerequisite_id": prereq.id},
                ),
            )]
        if not prereq.enabled:
            return []

        if graph is not None and prereq.test_case_id in graph:
            target = graph.node(prereq.test_case_id).test_case
        else:
            target = self.resolve(prereq.test_case_id)
        if target is None:
            if graph is not None:
                return []
            return [_missing_anywhere(tc.id, tc.name, prereq.test_case_id, suite_id=tc.suite_id)]

        if tc.enabled and not target.enabled:
            return [ValidationIssue(
                type="disabled_prerequisite",
                severity="warning",
                message=f'Test case "{tc.name}" depends on disabled test "{target.name}"',
                affected_test_case_ids=[tc.id, target.id],
            )]
        return []

    def _check_actions(
        self, tc: TestCase, prereq_name: str, actions: list[PrerequisiteAction],
    ) -> list[ValidationIssue]:
        if not actions:
            return [ValidationIssue(
                type="empty_actions",
                severity="error",
                message=f'Prerequisite "{prereq_name}" of test case "{tc.name}" has no actions',
                affected_test_case_ids=[tc.id],
            )]

        issues = []
        for i, action in enumerate(actions):
            problem = _action_problem(action)
            if problem:
                issues.append(ValidationIssue(
                    type="invalid_action",
                    severity="error",
                    message=f'Prerequisite "{prereq_name}" of "{tc.name}" action {i}: {problem}',
                    affected_test_case_ids=[tc.id],
                ))
        return issues

    # ------------------------------------------------------------------
    # Suite-wide checks
    # ------------------------------------------------------------------

    def _find_duplicate_members(self, suite: TestSuite) -> list[ValidationIssue]:
        """A test listed twice would be collapsed by ordering, so no order is offered."""
        counts = Counter(suite.test_case_ids)
        return [
            ValidationIssue(
                type="duplicate_suite_member",
                severity="error",
                message=f'Suite "{suite.name}" lists test case "{test_id}" {count} times',
                affected_test_case_ids=[test_id],
            )
            for test_id, count in counts.items()
            if count > 1
        ]

    def _find_cycles(self, graph: DependencyGraph) -> list[ValidationIssue]:
        issues = []
        for cycle in graph.find_cycles():
            names = " -> ".join(graph.node(i).name or i for i in cycle)
            issues.append(ValidationIssue(
                type="cyclic_dependency",
                severity="error",
                message=f"Circular dependency detected: {names}",
                affected_test_case_ids=cycle,
                suggested_fix=SuggestedFix(
                    type="remove_dependency",
                    description="Break the circular dependency by removing one link",
                    auto_applicable=False,
                    data={"cycle": cycle},
                ),
            ))
        return issues

    def _find_missing(self, suite: TestSuite, graph: DependencyGraph) -> list[ValidationIssue]:
        """Report every referenced test that is not a suite member."""
        issues = []
        for node in graph.nodes:
            if node.in_suite:
                continue
            dependents = list(dict.fromkeys(e.from_id for e in graph.edges_into(node.test_case_id)))
            if node.phantom:
                first = graph.node(dependents[0]) if dependents else None
                issues.append(_missing_anywhere(
                    dependents[0] if dependents else "",
                    first.name if first else "",
                    node.test_case_id,
                    suite_id=suite.id,
                    dependents=dependents,
                ))
                continue

            issues.append(ValidationIssue(
                type="missing_dependency",
                severity="error",
                message=(
                    f'Suite "{suite.name}" is missing prerequisite test "{node.name}" '
                    f'({node.test_case_id}) from suite "{node.suite_id}"'
                ),
                affected_test_case_ids=dependents + [node.test_case_id],
                suggested_fix=SuggestedFix(
                    type="add_to_suite",
                    description="Add missing prerequisite tests to the suite",
                    auto_applicable=True,
                    data={
                        "suite_id": suite.id,
                        "test_case_ids": [node.test_case_id],
                        "source_suite_id": node.suite_id,
                    },
                ),
            ))
        return issues

    def _check_order(self, suite: TestSuite, graph: DependencyGraph) -> list[ValidationIssue]:
        """Warn when the stored suite order runs a test before one it depends on."""
        position = {test_id: i for i, test_id in enumerate(graph.member_ids)}
        issues = []
        seen: set[tuple[str, str]] = set()
        for edge in graph.edges:
            pair = (edge.from_id, edge.to_id)
            if pair in seen or edge.from_id not in position or edge.to_id not in position:
                continue
            seen.add(pair)
            if position[edge.to_id] > position[edge.from_id]:
                issues.append(ValidationIssue(
                    type="wrong_execution_order",
                    severity="warning",
                    message=(
                        f'Test "{graph.node(edge.from_id).name}" depends on '
                        f'"{graph.node(edge.to_id).name}" but is scheduled to run before it'
                    ),
                    affected_test_case_ids=[edge.from_id, edge.to_id],
                    suggested_fix=SuggestedFix(
                        type="reorder_suite",
                        description="Reorder tests to respect dependencies",
                        auto_applicable=True,
                        data={"suite_id": suite.id},
                    ),
                ))
        return issues


def _missing_anywhere(
    dependent_id: str,
    dependent_name: str,
    missing_id: str,
    suite_id: str,
    dependents: list[str] | None = None,
) -> ValidationIssue:
    affected = list(dependents) if dependents else [dependent_id]
    return ValidationIssue(
        type="missing_dependency",
        severity="error",
        message=f'Test case "{dependent_name or dependent_id}" depends on non-existent test "{missing_id}"',
        affected_test_case_ids=affected + [missing_id],
        suggested_fix=SuggestedFix(
            type="add_to_suite",
            description="The referenced test does not exist in any suite",
            auto_applicable=False,
            data={"suite_id": suite_id, "test_case_ids": [missing_id]},
        ),
    )


def _action_problem(action: PrerequisiteAction) -> str | None:
    payload = action.payload()
    if payload is None:
        return f"{action.type} requires a {action.type} payload"
    if action.type == "device_action" and not action.device_action.action:
        return "device_action requires an action name"
    if action.type == "custom_action" and not action.custom_action.action_name:
        return "custom_action requires an action_name"
    if action.type == "shell_command" and not action.shell_command.command.strip():
        return "shell_command requires a command"
    return None
