"""Unit tests for ready-set computation."""

from taskweave.graph.ready import next_task, ready_tasks
from taskweave.tasks.model import TaskCollection, TaskNode


def make_collection() -> TaskCollection:
    return TaskCollection.from_nodes(
        [
            TaskNode(id="1", status="done"),
            TaskNode(id="2", dependencies=["1"], priority="low"),
            TaskNode(id="3", dependencies=["2"], priority="high"),
            TaskNode(id="4", dependencies=["1"], priority="high"),
            TaskNode(id="5", dependencies=["9"]),
        ]
    )


def test_ready_tasks():
    """Test tasks with all dependencies done are ready."""
    assert ready_tasks(make_collection()) == ["2", "4"]


def test_dangling_dependency_never_ready():
    """Test a missing dependency blocks the task."""
    assert "5" not in ready_tasks(make_collection())


def test_next_task_prefers_priority():
    """Test high priority wins among ready tasks."""
    assert next_task(make_collection()) == "4"


def test_next_task_custom_done_statuses():
    """Test done statuses are configurable."""
    collection = TaskCollection.from_nodes(
        [
            TaskNode(id="1", status="shipped"),
            TaskNode(id="2", dependencies=["1"]),
        ]
    )

    assert next_task(collection) == "1"
    assert next_task(collection, done_statuses=["shipped"]) == "2"


def test_next_task_none_when_all_done():
    """Test nothing is returned when everything is done."""
    collection = TaskCollection.from_nodes([TaskNode(id="1", status="done")])

    assert next_task(collection) is None
