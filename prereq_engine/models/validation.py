"""Validation issue and result data structures produced by the validator."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

IssueType = Literal[
    "cyclic_dependency",
    "missing_dependency",
    "disabled_prerequisite",
    "self_dependency",
    "missing_setup_profile",
    "empty_actions",
    "invalid_action",
    "duplicate_prerequisite",
    "wrong_execution_order",
    "duplicate_suite_member",
]
FixType = Literal["add_to_suite", "reorder_suite", "remove_dependency"]
Severity = Literal["error", "warning"]


class SuggestedFix(BaseModel):
    type: FixType
    description: str
    auto_applicable: bool = False
    data: Optional[dict[str, Any]] = None


class ValidationIssue(BaseModel):
    type: IssueType
    severity: Severity
    message: str
    affected_test_case_ids: list[str] = Field(default_factory=list)
    suggested_fix: Optional[SuggestedFix] = None

    @property
    def is_error(self) -> bool:
        return self.severity == "error"


class ValidationResult(BaseModel):
    valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    execution_order: Optional[list[str]] = None

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    def issues_of_type(self, issue_type: str) -> list[ValidationIssue]:
        return [i for i in self.issues if i.type == issue_type]
