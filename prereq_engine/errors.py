"""Exception types raised by the prerequisite engine."""

from __future__ import annotations


class PrereqEngineError(Exception):
    """Base class for all engine errors."""


class StructuralError(PrereqEngineError):
    """The dependency graph itself is unusable."""


class CycleDetectedError(StructuralError):
    def __init__(self, cycle: list[str], message: str | None = None):
        self.cycle = list(cycle)
        super().__init__(
            message or f"Cannot generate execution order: circular dependency {' -> '.join(cycle)}"
        )


class UnresolvedReferenceError(PrereqEngineError):
    """A requested record does not exist."""


class SuiteNotFoundError(UnresolvedReferenceError):
    def __init__(self, suite_id: str):
        self.suite_id = suite_id
        super().__init__(f"Suite not found: {suite_id}")


class TestCaseNotFoundError(UnresolvedReferenceError):
    def __init__(self, test_case_id: str):
        self.test_case_id = test_case_id
        super().__init__(f"Test case not found: {test_case_id}")


class MutationError(PrereqEngineError):
    """An auto-fix or suite write could not be applied. Nothing was written."""

    def __init__(self, message: str, suite_id: str = "", fix_type: str = ""):
        self.suite_id = suite_id
        self.fix_type = fix_type
        super().__init__(message)


class InvalidFixTypeError(MutationError):
    pass


class NoApplicableFixError(MutationError):
    pass


class ConcurrentModificationError(MutationError):
    def __init__(self, suite_id: str, expected_version: int, actual_version: int, fix_type: str = ""):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Suite {suite_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            suite_id=suite_id,
            fix_type=fix_type,
        )


class ResolutionCancelledError(PrereqEngineError):
    """The task running a shared dependency execution was cancelled before it finished."""

    def __init__(self, test_case_id: str):
        self.test_case_id = test_case_id
        super().__init__(f"In-flight execution of {test_case_id} was cancelled")


class PrerequisiteFailedError(PrereqEngineError):
    """An enabled prerequisite failed while preparing a test."""

    def __init__(self, test_case_id: str, prerequisite_name: str, error: str, results=None):
        self.test_case_id = test_case_id
        self.prerequisite_name = prerequisite_name
        self.results = list(results or [])
        super().__init__(f'Prerequisite "{prerequisite_name}" failed: {error}')
