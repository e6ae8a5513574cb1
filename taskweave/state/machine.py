"""Collection validity state machine."""

import logging
from enum import Enum
from typing import Optional

from ..graph.errors import UnresolvableCycleError
from ..graph.manager import (
    FixResult,
    ValidationReport,
    add_dependency,
    fix_dependencies,
    remove_dependency,
    validate_dependencies,
)
from ..tasks.model import TaskCollection

logger = logging.getLogger(__name__)


class CollectionState(str, Enum):
    """Validity of a task collection."""

    VALID = "VALID"
    INVALID = "INVALID"
    UNKNOWN = "UNKNOWN"


class StateTransitionError(Exception):
    """Invalid state transition."""

    pass


class CollectionMachine:
    """Tracks whether a collection satisfies the dependency invariants.

    Edits are only applied to a VALID collection. An UNKNOWN collection is
    validated first; an INVALID one has to be fixed before it can be edited.
    """

    # Valid state transitions
    TRANSITIONS = {
        CollectionState.UNKNOWN: [
            CollectionState.VALID,
            CollectionState.INVALID,
            CollectionState.UNKNOWN,
        ],
        CollectionState.VALID: [
            CollectionState.VALID,
            CollectionState.UNKNOWN,
        ],
        CollectionState.INVALID: [
            CollectionState.VALID,  # Fixed
            CollectionState.INVALID,
            CollectionState.UNKNOWN,
        ],
    }

    def __init__(self, collection: TaskCollection, max_passes: Optional[int] = None):
        """Initialize state machine.

        Args:
            collection: Collection loaded by the caller
            max_passes: Optional lower bound on repair passes
        """
        self.collection = collection
        self.max_passes = max_passes
        self.state = CollectionState.UNKNOWN
        self.report: Optional[ValidationReport] = None

    @property
    def current_state(self) -> CollectionState:
        """Get current state."""
        return self.state

    def can_transition_to(self, new_state: CollectionState) -> bool:
        """Check if transition is valid.

        Args:
            new_state: Target state

        Returns:
            True if transition is valid
        """
        return new_state in self.TRANSITIONS.get(self.state, [])

    def _transition(self, new_state: CollectionState) -> None:
        if not self.can_transition_to(new_state):
            raise StateTransitionError(f"Invalid transition from {self.state} to {new_state}")

        if new_state != self.state:
            logger.info(f"State transition: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _require_valid(self) -> None:
        if self.state == CollectionState.UNKNOWN:
            self.validate()
        if self.state == CollectionState.INVALID:
            raise StateTransitionError(
                "Collection has invalid dependencies; fix them before editing"
            )

    def validate(self) -> ValidationReport:
        """Classify the collection as VALID or INVALID.

        Returns:
            Validation report
        """
        report = validate_dependencies(self.collection)
        self.report = report
        self._transition(CollectionState.VALID if report.is_valid else CollectionState.INVALID)
        return report

    def add_dependency(self, task_id: str, dependency_id: str) -> TaskCollection:
        """Add an edge to a valid collection.

        Raises:
            StateTransitionError: If the collection is invalid
            DependencyError: If the edge is rejected
        """
        self._require_valid()
        self.collection = add_dependency(self.collection, task_id, dependency_id)
        self.report = validate_dependencies(self.collection)
        self._transition(CollectionState.VALID)
        logger.info(f"Added dependency {task_id} -> {dependency_id}")
        return self.collection

    def remove_dependency(self, task_id: str, dependency_id: str) -> TaskCollection:
        """Remove an edge from a valid collection.

        Raises:
            StateTransitionError: If the collection is invalid
            DependencyError: If the edge or a task is missing
        """
        self._require_valid()
        self.collection = remove_dependency(self.collection, task_id, dependency_id)
        self.report = validate_dependencies(self.collection)
        self._transition(CollectionState.VALID)
        logger.info(f"Removed dependency {task_id} -> {dependency_id}")
        return self.collection

    def fix(self) -> FixResult:
        """Repair the collection.

        Returns:
            FixResult; empty change log if nothing needed repair

        Raises:
            UnresolvableCycleError: If repair did not converge (state stays INVALID)
        """
        if self.state == CollectionState.UNKNOWN or self.report is None:
            self.validate()

        if not self.report.has_findings:
            logger.info("No dependency issues to fix")
            return FixResult(collection=self.collection)

        try:
            result = fix_dependencies(self.collection, max_passes=self.max_passes)
        except UnresolvableCycleError as e:
            logger.error(f"Dependency repair failed: {e}")
            raise

        for change in result.changes:
            logger.info(f"Removed dependency {change}")

        self.collection = result.collection
        self.report = validate_dependencies(self.collection)
        self._transition(CollectionState.VALID)
        return result

    def mark_modified(self, collection: Optional[TaskCollection] = None) -> None:
        """Record an external mutation; validity becomes UNKNOWN.

        Args:
            collection: Replacement collection, if the caller reloaded it
        """
        if collection is not None:
            self.collection = collection
        self.report = None
        self._transition(CollectionState.UNKNOWN)
