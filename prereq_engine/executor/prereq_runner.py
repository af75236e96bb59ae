"""Runs a test case's prerequisites before and after the test body."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from prereq_engine.cache.cache import PrerequisiteCache
from prereq_engine.errors import PrerequisiteFailedError
from prereq_engine.models.config import EngineConfig
from prereq_engine.models.plan import CacheResult, PrerequisiteExecutionResult, Resolution
from prereq_engine.models.prerequisite import (
    PREREQUISITE_RUN_ORDER,
    CleanupPrerequisite,
    PrerequisiteAction,
    SetupProfilePrerequisite,
    StateSetupPrerequisite,
    TestDependencyPrerequisite,
)
from prereq_engine.models.suite import TestCase

logger = logging.getLogger(__name__)

RunTest = Callable[[str], Awaitable[CacheResult]]


class PrerequisiteRunner:
    """Prepares a device for a test and cleans up afterwards.

    ``device`` is the device collaborator. It must provide two coroutines:
    ``apply_setup_profile(profile_id) -> bool`` and
    ``execute_action(action) -> str | None``; both raise on failure.
    ``run_test(test_case_id)`` runs a dependency test and returns "pass" or
    "fail".
    """

    def __init__(
        self,
        device: Any,
        run_test: RunTest,
        cache: PrerequisiteCache,
        config: EngineConfig | None = None,
    ):
        self.device = device
        self.run_test = run_test
        self.cache = cache
        self.config = config or EngineConfig()

    async def run_prerequisites(self, test_case: TestCase) -> list[PrerequisiteExecutionResult]:
        """Run enabled prerequisites in kind order, stopping at the first failure."""
        results: list[PrerequisiteExecutionResult] = []
        pending = sorted(
            (p for p in test_case.prerequisites
             if p.enabled and not isinstance(p, CleanupPrerequisite)),
            key=lambda p: PREREQUISITE_RUN_ORDER[p.type],
        )

        for prereq in pending:
            logger.debug("Running prerequisite %s (%s) for %s", prereq.name, prereq.type, test_case.id)
            result = await self._run_one(prereq)
            results.append(result)
            if not result.success:
                logger.error("Prerequisite %s for %s failed: %s",
                             prereq.name, test_case.id, result.error)
                raise PrerequisiteFailedError(
                    test_case.id, prereq.name, result.error or "Unknown error", results,
                )
        return results

    async def run_cleanup(
        self, test_case: TestCase, test_failed: bool,
    ) -> list[PrerequisiteExecutionResult]:
        """Run cleanup prerequisites. Best-effort: failures are logged, not raised."""
        results: list[PrerequisiteExecutionResult] = []
        for prereq in test_case.prerequisites:
            if not isinstance(prereq, CleanupPrerequisite) or not prereq.enabled:
                continue
            if not prereq.always_run and not test_failed:
                results.append(PrerequisiteExecutionResult(
                    prerequisite_id=prereq.id, prerequisite_type=prereq.type,
                    success=True, skipped=True, timestamp=self.cache.now(),
                    details="Skipped: test passed",
                ))
                continue

            start = time.time()
            try:
                details = await self._with_timeout(prereq.timeout, self._run_actions(prereq.actions))
                results.append(self._result(prereq, True, start, details=details))
            except Exception as e:
                logger.error("Cleanup %s for %s failed: %s", prereq.name, test_case.id, e)
                results.append(self._result(prereq, False, start, error=str(e)))
        return results

    def record_test_result(
        self, test_case_id: str, result: CacheResult, expiry: int | None = None,
    ) -> None:
        """Make a finished test run available to later dependents."""
        if result != "pass":
            self.cache.invalidate(test_case_id)
            return
        if expiry is None:
            expiry = self.config.default_cache_expiry_ms
        self.cache.put(test_case_id, result, expiry)

    async def _run_one(self, prereq) -> PrerequisiteExecutionResult:
        start = time.time()
        try:
            if isinstance(prereq, SetupProfilePrerequisite):
                ok = await self._with_timeout(
                    prereq.timeout, self.device.apply_setup_profile(prereq.setup_profile_id),
                )
                if not ok:
                    return self._result(prereq, False, start,
                                        error=f"Setup profile {prereq.setup_profile_id} was not applied")
                return self._result(prereq, True, start,
                                    details=f"Applied setup profile {prereq.setup_profile_id}")

            if isinstance(prereq, StateSetupPrerequisite):
                details = await self._with_timeout(prereq.timeout, self._run_actions(prereq.actions))
                return self._result(prereq, True, start, details=details)

            if isinstance(prereq, TestDependencyPrerequisite):
                resolution = await self._with_timeout(prereq.timeout, self._resolve_dependency(prereq))
                if resolution.result != "pass":
                    return self._result(prereq, False, start, from_cache=resolution.from_cache,
                                        error=f"Dependency test {prereq.test_case_id} failed")
                source = "from cache" if resolution.from_cache else "executed"
                return self._result(prereq, True, start, from_cache=resolution.from_cache,
                                    details=f"Dependency test {prereq.test_case_id} passed ({source})")

            raise TypeError(f"Unknown prerequisite type: {prereq.type}")
        except Exception as e:
            return self._result(prereq, False, start, error=str(e) or type(e).__name__)

    async def _resolve_dependency(self, prereq: TestDependencyPrerequisite) -> Resolution:
        if prereq.use_cache:
            expiry = prereq.cache_expiry
            if expiry is None:
                expiry = self.config.default_cache_expiry_ms
            return await self.cache.resolve(
                prereq.test_case_id, lambda: self.run_test(prereq.test_case_id), expiry,
            )
        result = await self.run_test(prereq.test_case_id)
        return Resolution(test_case_id=prereq.test_case_id, result=result, timestamp=self.cache.now())

    async def _run_actions(self, actions: list[PrerequisiteAction]) -> str:
        done = []
        for action in actions:
            detail = await self.device.execute_action(action)
            done.append(detail if isinstance(detail, str) else f"{action.type}: {action.id}")
        return "; ".join(done)

    async def _with_timeout(self, timeout_ms: int | None, coro):
        if timeout_ms is None:
            return await coro
        return await asyncio.wait_for(coro, timeout_ms / 1000)

    def _result(
        self, prereq, success: bool, start: float,
        from_cache: bool = False, details: str = "", error: str | None = None,
    ) -> PrerequisiteExecutionResult:
        return PrerequisiteExecutionResult(
            prerequisite_id=prereq.id,
            prerequisite_type=prereq.type,
            success=success,
            duration_ms=round((time.time() - start) * 1000, 2),
            timestamp=self.cache.now(),
            from_cache=from_cache,
            details=details,
            error=error,
        )
