"""Builders for test records shared across test modules."""

from prereq_engine.models.prerequisite import (
    CleanupPrerequisite,
    DeviceActionPayload,
    PrerequisiteAction,
    SetupProfilePrerequisite,
    ShellCommandPayload,
    StateSetupPrerequisite,
    TestDependencyPrerequisite as DependencyModel,
)
from prereq_engine.models.suite import TestCase as TestCaseModel
from prereq_engine.storage.repository import InMemoryRepository


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


def dependency(
    test_case_id: str,
    prereq_id: str | None = None,
    use_cache: bool = False,
    cache_expiry: int | None = None,
    enabled: bool = True,
) -> DependencyModel:
    return DependencyModel(
        id=prereq_id or f"dep_{test_case_id}",
        name=f"Requires {test_case_id}",
        test_case_id=test_case_id,
        use_cache=use_cache,
        cache_expiry=cache_expiry,
        enabled=enabled,
    )


def setup_profile(profile_id: str, enabled: bool = True) -> SetupProfilePrerequisite:
    return SetupProfilePrerequisite(
        id=f"profile_{profile_id}", name=f"Profile {profile_id}",
        setup_profile_id=profile_id, enabled=enabled,
    )


def device_action(action_id: str = "a1", action: str = "press_home") -> PrerequisiteAction:
    return PrerequisiteAction(
        id=action_id, type="device_action",
        device_action=DeviceActionPayload(action=action),
    )


def shell_action(action_id: str = "s1", command: str = "pm clear com.example.game") -> PrerequisiteAction:
    return PrerequisiteAction(
        id=action_id, type="shell_command",
        shell_command=ShellCommandPayload(command=command),
    )


def state_setup(prereq_id: str = "setup", actions=None) -> StateSetupPrerequisite:
    return StateSetupPrerequisite(
        id=prereq_id, name="Prepare state",
        actions=[device_action()] if actions is None else actions,
    )


def cleanup(prereq_id: str = "cleanup", always_run: bool = True, actions=None) -> CleanupPrerequisite:
    return CleanupPrerequisite(
        id=prereq_id, name="Reset device", always_run=always_run,
        actions=[shell_action()] if actions is None else actions,
    )


def make_test(test_id: str, suite_id: str = "S", prerequisites=None, enabled: bool = True) -> TestCaseModel:
    return TestCaseModel(
        id=test_id,
        suite_id=suite_id,
        name=f"Test {test_id}",
        enabled=enabled,
        prerequisites=list(prerequisites or []),
    )


def add_suite(repo: InMemoryRepository, suite_id: str, tests: list[TestCaseModel], order=None):
    """Create a suite whose membership is ``order`` (defaults to the tests' ids)."""
    for tc in tests:
        repo.save_test_case(tc)
    ids = order if order is not None else [tc.id for tc in tests]
    return repo.create_suite(name=f"Suite {suite_id}", suite_id=suite_id, test_case_ids=ids)
