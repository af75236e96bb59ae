"""Execution plan, auto-fix and cache result data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from prereq_engine.models.validation import ValidationResult

CacheResult = Literal["pass", "fail"]


class GraphNodeSummary(BaseModel):
    test_case_id: str
    name: str = ""
    in_suite: bool = False
    phantom: bool = False
    enabled: bool = True
    suite_id: Optional[str] = None
    prerequisites: list[str] = Field(default_factory=list)  # ids this test depends on
    dependents: list[str] = Field(default_factory=list)  # ids depending on this test
    depth: int = 0


class GraphEdgeSummary(BaseModel):
    from_id: str  # dependent
    to_id: str  # prerequisite
    prerequisite_id: str


class GraphSummary(BaseModel):
    suite_id: str
    nodes: dict[str, GraphNodeSummary] = Field(default_factory=dict)
    edges: list[GraphEdgeSummary] = Field(default_factory=list)
    has_cycles: bool = False
    cycles: list[list[str]] = Field(default_factory=list)


class CacheHint(BaseModel):
    prerequisite_id: str
    test_case_id: str
    use_cache: bool
    cache_expiry: Optional[int] = None
    cached: bool = False  # a valid cache entry exists right now
    in_suite: bool = True


class PlanStep(BaseModel):
    position: int
    test_case_id: str
    name: str = ""
    depends_on: list[str] = Field(default_factory=list)
    prerequisite_count: int = 0
    enabled_prerequisite_count: int = 0
    cache_hints: list[CacheHint] = Field(default_factory=list)


class SuiteExecutionPlan(BaseModel):
    suite_id: str
    test_cases: list[str] = Field(default_factory=list)  # ordered ids
    steps: list[PlanStep] = Field(default_factory=list)
    total_prerequisites: int = 0
    estimated_duration_ms: int = 0
    dependency_graph: Optional[GraphSummary] = None


class CacheEntry(BaseModel):
    test_case_id: str
    result: CacheResult
    timestamp: float  # epoch milliseconds
    expiry: Optional[int] = None  # milliseconds, None = until cleared

    def is_expired(self, now_ms: float) -> bool:
        if self.expiry is None:
            return False
        return now_ms > self.timestamp + self.expiry


class CacheStats(BaseModel):
    entry_count: int = 0
    hit_count: int = 0
    miss_count: int = 0


class Resolution(BaseModel):
    """Outcome of resolving a cacheable dependency through the cache."""
    test_case_id: str
    result: CacheResult
    from_cache: bool = False
    timestamp: float = 0.0


class AutoFixResult(BaseModel):
    suite_id: str
    fix_type: Literal["add_missing", "reorder"]
    changed: bool = False
    added_test_case_ids: list[str] = Field(default_factory=list)
    previous_order: list[str] = Field(default_factory=list)
    new_order: list[str] = Field(default_factory=list)
    suite_version: int = 0
    validation: Optional[ValidationResult] = None


class PrerequisiteExecutionResult(BaseModel):
    prerequisite_id: str
    prerequisite_type: str
    success: bool
    duration_ms: float = 0.0
    timestamp: float = 0.0
    from_cache: bool = False
    skipped: bool = False
    error: Optional[str] = None
    details: str = ""
