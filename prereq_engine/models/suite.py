"""Suite, test case and setup profile records read from storage."""

from __future__ import annotations

from pydantic import BaseModel, Field

from prereq_engine.models.prerequisite import (
    Prerequisite,
    TestDependencyPrerequisite,
)


class TestCase(BaseModel):
    id: str
    suite_id: str  # home suite
    name: str
    description: str = ""
    enabled: bool = True
    tags: list[str] = Field(default_factory=list)
    prerequisites: list[Prerequisite] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def test_dependencies(self, enabled_only: bool = True) -> list[TestDependencyPrerequisite]:
        return [
            p for p in self.prerequisites
            if isinstance(p, TestDependencyPrerequisite) and (p.enabled or not enabled_only)
        ]


class TestSuite(BaseModel):
    id: str
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    test_case_ids: list[str] = Field(default_factory=list)  # ordered membership
    created_at: str = ""
    updated_at: str = ""
    version: int = 0  # bumped on every persisted write

    def position_of(self, test_case_id: str) -> int | None:
        try:
            return self.test_case_ids.index(test_case_id)
        except ValueError:
            return None


class SetupProfile(BaseModel):
    id: str
    name: str
    description: str = ""
    enabled: bool = True
