"""Engine facade: the command surface hosts call into."""

from __future__ import annotations

from prereq_engine.autofix.autofix import AutoFixEngine
from prereq_engine.cache.cache import PrerequisiteCache
from prereq_engine.errors import SuiteNotFoundError, TestCaseNotFoundError
from prereq_engine.executor.prereq_runner import PrerequisiteRunner, RunTest
from prereq_engine.graph.builder import build_dependency_graph
from prereq_engine.graph.graph import DependencyGraph
from prereq_engine.models.config import EngineConfig
from prereq_engine.models.plan import AutoFixResult, CacheStats, SuiteExecutionPlan
from prereq_engine.models.suite import TestSuite
from prereq_engine.models.validation import ValidationResult
from prereq_engine.planner.planner import ExecutionPlanner
from prereq_engine.storage.repository import InMemoryRepository, JsonRepository
from prereq_engine.validator.validator import DependencyValidator


class PrerequisiteEngine:
    """Coordinates graph building, validation, planning, auto-fix and caching."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        repository: InMemoryRepository | None = None,
        cache: PrerequisiteCache | None = None,
    ):
        self.config = config or EngineConfig()
        self.repository = repository if repository is not None else JsonRepository(self.config.data_path)
        self.cache = cache or PrerequisiteCache()
        self.validator = DependencyValidator(
            resolve=self.repository.get_test_case,
            get_setup_profile=self.repository.get_setup_profile,
            config=self.config,
        )
        self.planner = ExecutionPlanner(self.config, self.cache)
        self.auto_fixer = AutoFixEngine(self.repository, self.validator)

    def validate_test_case(self, test_case_id: str) -> ValidationResult:
        test_case = self.repository.get_test_case(test_case_id)
        if test_case is None:
            raise TestCaseNotFoundError(test_case_id)
        return self.validator.validate_test_case(test_case)

    def validate_suite(self, suite_id: str) -> ValidationResult:
        return self.validator.validate_suite(self._suite(suite_id))

    def build_dependency_graph(self, suite_id: str) -> DependencyGraph:
        return build_dependency_graph(self._suite(suite_id), self.repository.get_test_case)

    def generate_execution_order(self, suite_id: str) -> list[str]:
        """Raises CycleDetectedError when the suite's dependencies form a cycle."""
        return self.planner.generate_execution_order(self.build_dependency_graph(suite_id))

    def generate_suite_execution_plan(self, suite_id: str) -> SuiteExecutionPlan:
        suite = self._suite(suite_id)
        graph = build_dependency_graph(suite, self.repository.get_test_case)
        return self.planner.generate_suite_execution_plan(suite, graph)

    def auto_fix_dependencies(self, suite_id: str, fix_type: str) -> AutoFixResult:
        return self.auto_fixer.apply(suite_id, fix_type)

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def create_runner(self, device, run_test: RunTest) -> PrerequisiteRunner:
        """Runner sharing this engine's cache, for the test-runner collaborator."""
        return PrerequisiteRunner(device, run_test, self.cache, self.config)

    def _suite(self, suite_id: str) -> TestSuite:
        suite = self.repository.get_suite(suite_id)
        if suite is None:
            raise SuiteNotFoundError(suite_id)
        return suite
