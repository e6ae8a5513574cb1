"""Unit tests for collection state machine."""

import pytest

from taskweave.graph import manager
from taskweave.graph.errors import DuplicateEdgeError, UnresolvableCycleError
from taskweave.state.machine import CollectionMachine, CollectionState, StateTransitionError
from taskweave.tasks.model import TaskCollection, TaskNode


def make_collection(graph: dict) -> TaskCollection:
    return TaskCollection.from_nodes(
        [TaskNode(id=str(k), dependencies=[str(d) for d in deps]) for k, deps in graph.items()]
    )


def test_machine_starts_unknown():
    """Test a fresh machine has not classified the collection."""
    machine = CollectionMachine(make_collection({1: []}))

    assert machine.current_state == CollectionState.UNKNOWN
    assert machine.report is None


def test_validate_valid():
    """Test UNKNOWN -> VALID."""
    machine = CollectionMachine(make_collection({1: [], 2: [1]}))

    report = machine.validate()

    assert report.is_valid
    assert machine.current_state == CollectionState.VALID


def test_validate_invalid():
    """Test UNKNOWN -> INVALID."""
    machine = CollectionMachine(make_collection({1: [2], 2: [1]}))

    machine.validate()

    assert machine.current_state == CollectionState.INVALID


def test_add_dependency_validates_first():
    """Test editing an UNKNOWN collection validates it implicitly."""
    machine = CollectionMachine(make_collection({1: [], 2: []}))

    collection = machine.add_dependency("2", "1")

    assert collection.nodes["2"].dependencies == ["1"]
    assert machine.collection is collection
    assert machine.current_state == CollectionState.VALID


def test_edit_refused_on_invalid_collection():
    """Test INVALID collections must be fixed before editing."""
    machine = CollectionMachine(make_collection({1: [9], 2: []}))

    with pytest.raises(StateTransitionError):
        machine.add_dependency("2", "1")

    assert machine.current_state == CollectionState.INVALID
    assert machine.collection.nodes["2"].dependencies == []


def test_input_error_keeps_state():
    """Test a rejected edit leaves state and collection alone."""
    original = make_collection({1: [], 2: [1]})
    machine = CollectionMachine(original)

    with pytest.raises(DuplicateEdgeError):
        machine.add_dependency("2", "1")

    assert machine.current_state == CollectionState.VALID
    assert machine.collection is original


def test_remove_dependency():
    """Test removal through the machine."""
    machine = CollectionMachine(make_collection({1: [], 2: [1]}))

    collection = machine.remove_dependency("2", "1")

    assert collection.nodes["2"].dependencies == []
    assert machine.current_state == CollectionState.VALID


def test_report_follows_edits():
    """Test the stored report describes the collection after each edit."""
    machine = CollectionMachine(make_collection({1: [], 2: [1, 1], 3: []}))

    assert machine.validate().duplicates == [("2", "1")]

    machine.remove_dependency("2", "1")
    assert machine.report.duplicates == []
    assert not machine.report.has_findings

    machine.add_dependency("3", "2")
    assert machine.report is not None
    assert machine.report.is_valid


def test_fix_transitions_invalid_to_valid():
    """Test INVALID -> VALID through repair."""
    machine = CollectionMachine(make_collection({1: [2], 2: [1]}))
    machine.validate()

    result = machine.fix()

    assert result.changed
    assert machine.current_state == CollectionState.VALID
    assert machine.report.is_valid
    assert machine.collection.nodes["2"].dependencies == []


def test_fix_valid_collection_is_noop():
    """Test repair on a valid collection changes nothing."""
    original = make_collection({1: [], 2: [1]})
    machine = CollectionMachine(original)

    result = machine.fix()

    assert not result.changed
    assert result.collection is original
    assert machine.current_state == CollectionState.VALID


def test_fix_failure_stays_invalid(monkeypatch):
    """Test a failed repair leaves the collection INVALID."""
    monkeypatch.setattr(manager, "_cycle_intact", lambda collection, cycle: False)
    machine = CollectionMachine(make_collection({1: [2], 2: [1]}))

    with pytest.raises(UnresolvableCycleError):
        machine.fix()

    assert machine.current_state == CollectionState.INVALID


def test_mark_modified_resets_to_unknown():
    """Test external mutation makes validity UNKNOWN again."""
    machine = CollectionMachine(make_collection({1: []}))
    machine.validate()

    replacement = make_collection({1: [1]})
    machine.mark_modified(replacement)

    assert machine.current_state == CollectionState.UNKNOWN
    assert machine.collection is replacement
    assert machine.report is None


def test_can_transition_to():
    """Test transition table lookups."""
    machine = CollectionMachine(make_collection({1: []}))
    machine.validate()

    assert machine.can_transition_to(CollectionState.UNKNOWN)
    assert not machine.can_transition_to(CollectionState.INVALID)
