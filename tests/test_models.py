"""Tests for prerequisite, suite and config models."""

import json

import pytest
from pydantic import ValidationError

from prereq_engine.models.config import EngineConfig
from prereq_engine.models.plan import CacheEntry
from prereq_engine.models.prerequisite import (
    CleanupPrerequisite,
    SetupProfilePrerequisite,
    StateSetupPrerequisite,
    TestDependencyPrerequisite as DependencyModel,
)
from prereq_engine.models.suite import TestCase as TestCaseModel, TestSuite as TestSuiteModel


class TestPrerequisiteUnion:
    """The prerequisite list parses into the right variant by its type tag."""

    def test_parses_each_variant(self):
        tc = TestCaseModel(
            id="t1",
            suite_id="S",
            name="Login",
            prerequisites=[
                {"id": "p1", "name": "Profile", "type": "setup_profile", "setup_profile_id": "fresh"},
                {"id": "p2", "name": "Dep", "type": "test_dependency", "test_case_id": "t0",
                 "use_cache": True, "cache_expiry": 60000},
                {"id": "p3", "name": "State", "type": "state_setup", "actions": [
                    {"id": "a1", "type": "device_action", "device_action": {"action": "rotate_landscape"}},
                ]},
                {"id": "p4", "name": "Cleanup", "type": "cleanup", "always_run": False, "actions": [
                    {"id": "a2", "type": "shell_command", "shell_command": {"command": "input keyevent 3"}},
                ]},
            ],
        )
        kinds = [type(p) for p in tc.prerequisites]
        assert kinds == [
            SetupProfilePrerequisite, DependencyModel, StateSetupPrerequisite, CleanupPrerequisite,
        ]
        dep = tc.prerequisites[1]
        assert dep.use_cache is True
        assert dep.cache_expiry == 60000
        assert tc.prerequisites[3].always_run is False

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            TestCaseModel(
                id="t1", suite_id="S", name="x",
                prerequisites=[{"id": "p", "name": "n", "type": "reboot"}],
            )

    def test_defaults(self):
        dep = DependencyModel(id="d", name="d", test_case_id="t0")
        assert dep.enabled is True
        assert dep.use_cache is False
        assert dep.cache_expiry is None
        assert dep.timeout is None

    def test_test_dependencies_filters_disabled(self):
        tc = TestCaseModel(id="t1", suite_id="S", name="x", prerequisites=[
            DependencyModel(id="d1", name="d1", test_case_id="a"),
            DependencyModel(id="d2", name="d2", test_case_id="b", enabled=False),
            SetupProfilePrerequisite(id="p", name="p", setup_profile_id="fresh"),
        ])
        assert [d.id for d in tc.test_dependencies()] == ["d1"]
        assert [d.id for d in tc.test_dependencies(enabled_only=False)] == ["d1", "d2"]

    def test_roundtrip_through_json(self):
        tc = TestCaseModel(id="t1", suite_id="S", name="x", prerequisites=[
            DependencyModel(id="d1", name="d1", test_case_id="a", use_cache=True),
        ])
        restored = TestCaseModel.model_validate_json(tc.model_dump_json())
        assert restored == tc


class TestSuitePosition:
    def test_position_of(self):
        suite = TestSuiteModel(id="S", name="Smoke", test_case_ids=["a", "b", "c"])
        assert suite.position_of("b") == 1
        assert suite.position_of("zzz") is None


class TestCacheEntry:
    def test_expiry_boundary(self):
        entry = CacheEntry(test_case_id="t", result="pass", timestamp=1000, expiry=5000)
        assert not entry.is_expired(6000)
        assert entry.is_expired(6001)

    def test_session_entry_never_expires(self):
        entry = CacheEntry(test_case_id="t", result="pass", timestamp=0)
        assert not entry.is_expired(10**12)


class TestEngineConfig:
    def test_defaults(self):
        cfg = EngineConfig()
        assert cfg.data_dir == "./test-data"
        assert cfg.default_cache_expiry_ms is None
        assert cfg.estimated_test_duration_ms == 5000
        assert cfg.warn_on_order_drift is True

    def test_rejects_negative_durations(self):
        with pytest.raises(ValidationError):
            EngineConfig(estimated_test_duration_ms=-1)

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "nested" / "prereq-config.json"
        EngineConfig(data_dir="/data", default_cache_expiry_ms=30000).save(path)
        assert json.loads(path.read_text())["data_dir"] == "/data"
        loaded = EngineConfig.load(path)
        assert loaded.default_cache_expiry_ms == 30000

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            EngineConfig.load(tmp_path / "nope.json")
