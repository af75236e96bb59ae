"""Suite, test case and setup profile storage.

``InMemoryRepository`` keeps everything in dictionaries; ``JsonRepository``
adds a JSON file layout on disk::

    <root>/suites/<suite_id>.json
    <root>/test-cases/<suite_id>/<test_id>.json
    <root>/setup-profiles.json

Suite writes are serialized per suite and carry an optimistic version check,
so an auto-fix computed against a stale snapshot cannot overwrite a newer
manual edit.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Optional

from prereq_engine.errors import (
    ConcurrentModificationError,
    SuiteNotFoundError,
    TestCaseNotFoundError,
)
from prereq_engine.models.suite import SetupProfile, TestCase, TestSuite

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class InMemoryRepository:
    """Storage collaborator backed by dictionaries."""

    def __init__(self):
        self._suites: dict[str, TestSuite] = {}
        self._test_cases: dict[str, TestCase] = {}
        self._profiles: dict[str, SetupProfile] = {}
        self._suite_locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    # ------------------------------------------------------------------
    # Suites
    # ------------------------------------------------------------------

    def get_suite(self, suite_id: str) -> Optional[TestSuite]:
        """Return a snapshot copy of the stored suite."""
        suite = self._suites.get(suite_id)
        return suite.model_copy(deep=True) if suite else None

    def list_suites(self) -> list[TestSuite]:
        return [s.model_copy(deep=True) for s in self._suites.values()]

    def find_suite_by_name(self, name: str) -> Optional[TestSuite]:
        for suite in self._suites.values():
            if suite.name == name:
                return suite.model_copy(deep=True)
        return None

    def create_suite(
        self,
        name: str,
        description: str = "",
        test_case_ids: list[str] | None = None,
        suite_id: str | None = None,
    ) -> TestSuite:
        now = _timestamp()
        suite = TestSuite(
            id=suite_id or f"suite_{uuid.uuid4().hex[:8]}",
            name=name,
            description=description,
            test_case_ids=list(test_case_ids or []),
            created_at=now,
            updated_at=now,
        )
        saved = self.save_suite(suite)
        logger.info("Created suite %s (%s)", saved.id, saved.name)
        return saved

    def save_suite(self, suite: TestSuite, expected_version: int | None = None) -> TestSuite:
        """Persist ``suite`` and return the stored copy with its new version.

        If ``expected_version`` is given and the stored version differs, raises
        ConcurrentModificationError and writes nothing.
        """
        with self._suite_lock(suite.id):
            current = self._suites.get(suite.id)
            actual = current.version if current else 0
            if expected_version is not None and actual != expected_version:
                raise ConcurrentModificationError(suite.id, expected_version, actual)
            now = _timestamp()
            stored = suite.model_copy(deep=True, update={
                "version": actual + 1,
                "updated_at": now,
                "created_at": (current.created_at if current else suite.created_at) or now,
            })
            self._write_suite(stored)
            self._suites[stored.id] = stored
        logger.debug("Saved suite %s at version %d", stored.id, stored.version)
        return stored.model_copy(deep=True)

    def add_test_to_suite(self, suite_id: str, test_case_id: str, index: int | None = None) -> TestSuite:
        suite = self.get_suite(suite_id)
        if suite is None:
            raise SuiteNotFoundError(suite_id)
        if test_case_id in suite.test_case_ids:
            return suite
        if index is not None and 0 <= index <= len(suite.test_case_ids):
            suite.test_case_ids.insert(index, test_case_id)
        else:
            suite.test_case_ids.append(test_case_id)
        return self.save_suite(suite, expected_version=suite.version)

    def reorder_tests(self, suite_id: str, new_order: list[str]) -> TestSuite:
        suite = self.get_suite(suite_id)
        if suite is None:
            raise SuiteNotFoundError(suite_id)
        if set(new_order) != set(suite.test_case_ids) or len(new_order) != len(suite.test_case_ids):
            raise ValueError("New order must contain exactly the same test IDs")
        suite.test_case_ids = list(new_order)
        saved = self.save_suite(suite, expected_version=suite.version)
        logger.info("Reordered tests in suite %s", suite_id)
        return saved

    def _suite_lock(self, suite_id: str) -> threading.Lock:
        with self._guard:
            return self._suite_locks.setdefault(suite_id, threading.Lock())

    # ------------------------------------------------------------------
    # Test cases
    # ------------------------------------------------------------------

    def get_test_case(self, test_case_id: str) -> Optional[TestCase]:
        """Look up a test case in any suite."""
        return self._test_cases.get(test_case_id)

    def list_test_cases(self, suite_id: str | None = None) -> list[TestCase]:
        return [
            tc for tc in self._test_cases.values()
            if suite_id is None or tc.suite_id == suite_id
        ]

    def save_test_case(self, test_case: TestCase) -> TestCase:
        now = _timestamp()
        existing = self._test_cases.get(test_case.id)
        stored = test_case.model_copy(update={
            "updated_at": now,
            "created_at": (existing.created_at if existing else test_case.created_at) or now,
        })
        self._write_test_case(stored)
        self._test_cases[stored.id] = stored
        return stored

    def create_test_case(self, test_case: TestCase) -> TestCase:
        """Save a new test case and append it to its home suite."""
        if test_case.suite_id not in self._suites:
            raise SuiteNotFoundError(test_case.suite_id)
        stored = self.save_test_case(test_case)
        self.add_test_to_suite(stored.suite_id, stored.id)
        logger.info("Created test case %s in suite %s", stored.id, stored.suite_id)
        return stored

    def require_test_case(self, test_case_id: str) -> TestCase:
        tc = self.get_test_case(test_case_id)
        if tc is None:
            raise TestCaseNotFoundError(test_case_id)
        return tc

    # ------------------------------------------------------------------
    # Setup profiles
    # ------------------------------------------------------------------

    def get_setup_profile(self, profile_id: str) -> Optional[SetupProfile]:
        return self._profiles.get(profile_id)

    def list_setup_profiles(self) -> list[SetupProfile]:
        return list(self._profiles.values())

    def save_setup_profile(self, profile: SetupProfile) -> SetupProfile:
        self._profiles[profile.id] = profile
        self._write_profiles()
        return profile

    # Persistence hooks, no-ops in memory

    def _write_suite(self, suite: TestSuite) -> None:
        pass

    def _write_test_case(self, test_case: TestCase) -> None:
        pass

    def _write_profiles(self) -> None:
        pass


class JsonRepository(InMemoryRepository):
    """Repository persisted as JSON files under ``root``."""

    def __init__(self, root: Path):
        super().__init__()
        self.root = Path(root)
        self.suites_dir = self.root / "suites"
        self.test_cases_dir = self.root / "test-cases"
        self.profiles_path = self.root / "setup-profiles.json"
        self.load()

    def load(self) -> None:
        """Load all records from disk. Corrupt files are skipped with a warning."""
        self._suites.clear()
        self._test_cases.clear()
        self._profiles.clear()

        if self.suites_dir.exists():
            for path in sorted(self.suites_dir.glob("*.json")):
                suite = self._read(path, TestSuite)
                if suite is not None:
                    self._suites[suite.id] = suite

        if self.test_cases_dir.exists():
            for path in sorted(self.test_cases_dir.glob("*/*.json")):
                tc = self._read(path, TestCase)
                if tc is not None:
                    self._test_cases[tc.id] = tc

        if self.profiles_path.exists():
            try:
                with open(self.profiles_path) as f:
                    data = json.load(f)
                for item in data.get("profiles", []):
                    profile = SetupProfile(**item)
                    self._profiles[profile.id] = profile
            except Exception as e:
                logger.warning("Failed to load setup profiles from %s: %s", self.profiles_path, e)

        logger.debug("Loaded %d suites, %d test cases, %d setup profiles from %s",
                     len(self._suites), len(self._test_cases), len(self._profiles), self.root)

    def _read(self, path: Path, model):
        try:
            with open(path) as f:
                return model(**json.load(f))
        except Exception as e:
            logger.warning("Failed to load %s: %s. Skipping.", path, e)
            return None

    def _write_suite(self, suite: TestSuite) -> None:
        self._dump(self.suites_dir / f"{suite.id}.json", suite.model_dump())

    def _write_test_case(self, test_case: TestCase) -> None:
        self._dump(
            self.test_cases_dir / test_case.suite_id / f"{test_case.id}.json",
            test_case.model_dump(),
        )

    def _write_profiles(self) -> None:
        self._dump(
            self.profiles_path,
            {"profiles": [p.model_dump() for p in self._profiles.values()]},
        )

    def _dump(self, path: Path, data: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        tmp.replace(path)
        logger.debug("Wrote %s", path)
