"""Automatic fixes for suite dependency issues."""

from __future__ import annotations

import logging

from prereq_engine.errors import (
    ConcurrentModificationError,
    InvalidFixTypeError,
    NoApplicableFixError,
    SuiteNotFoundError,
)
from prereq_engine.models.plan import AutoFixResult
from prereq_engine.models.suite import TestSuite
from prereq_engine.models.validation import ValidationResult
from prereq_engine.storage.repository import InMemoryRepository
from prereq_engine.validator.validator import DependencyValidator

logger = logging.getLogger(__name__)

FIX_TYPES = ("add_missing", "reorder")


class AutoFixEngine:
    """Applies ``add_missing`` or ``reorder`` to a stored suite.

    A fix is computed against one snapshot of the suite and written with a
    single versioned save, so it either lands completely or not at all.
    """

    def __init__(self, repository: InMemoryRepository, validator: DependencyValidator):
        self.repository = repository
        self.validator = validator

    def apply(self, suite_id: str, fix_type: str) -> AutoFixResult:
        if fix_type not in FIX_TYPES:
            raise InvalidFixTypeError(
                f"Unknown fix type '{fix_type}', expected one of {', '.join(FIX_TYPES)}",
                suite_id=suite_id, fix_type=fix_type,
            )

        snapshot = self.repository.get_suite(suite_id)
        if snapshot is None:
            raise SuiteNotFoundError(suite_id)

        validation = self.validator.validate_suite(snapshot)
        added: list[str] = []
        if fix_type == "add_missing":
            added = self._missing_ids(snapshot, validation)
            new_order = snapshot.test_case_ids + added
        else:
            new_order = self._planned_order(snapshot, validation)

        changed = new_order != snapshot.test_case_ids
        saved = snapshot
        if changed:
            updated = snapshot.model_copy(update={"test_case_ids": new_order})
            try:
                saved = self.repository.save_suite(updated, expected_version=snapshot.version)
            except ConcurrentModificationError as e:
                e.fix_type = fix_type
                logger.warning("Auto-fix %s on suite %s aborted: %s", fix_type, suite_id, e)
                raise
            logger.info("Applied %s to suite %s (version %d)", fix_type, suite_id, saved.version)
        else:
            logger.info("Auto-fix %s on suite %s: nothing to change", fix_type, suite_id)

        return AutoFixResult(
            suite_id=suite_id,
            fix_type=fix_type,
            changed=changed,
            added_test_case_ids=added,
            previous_order=list(snapshot.test_case_ids),
            new_order=list(saved.test_case_ids),
            suite_version=saved.version,
            validation=self.validator.validate_suite(saved),
        )

    def _missing_ids(self, suite: TestSuite, validation: ValidationResult) -> list[str]:
        present = set(suite.test_case_ids)
        to_add: list[str] = []
        for issue in validation.issues_of_type("missing_dependency"):
            fix = issue.suggested_fix
            if fix is None or fix.type != "add_to_suite" or not fix.auto_applicable:
                continue
            for test_case_id in (fix.data or {}).get("test_case_ids", []):
                if test_case_id not in present:
                    present.add(test_case_id)
                    to_add.append(test_case_id)
        if not to_add:
            raise NoApplicableFixError(
                f"Suite {suite.id} has no missing dependencies that can be added automatically",
                suite_id=suite.id, fix_type="add_missing",
            )
        return to_add

    def _planned_order(self, suite: TestSuite, validation: ValidationResult) -> list[str]:
        if validation.execution_order is None:
            blocking = "; ".join(i.message for i in validation.errors) or "no execution order"
            raise NoApplicableFixError(
                f"Cannot reorder suite {suite.id}: {blocking}",
                suite_id=suite.id, fix_type="reorder",
            )
        return list(validation.execution_order)
