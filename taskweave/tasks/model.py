"""Task graph data model."""

import copy
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

_TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)*$")


def utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_task_id(value: object) -> str:
    """Normalize an external identifier into a qualified task id.

    Accepts integers and strings such as ``"3"`` or ``" 3.2 "``.

    Args:
        value: Raw identifier from the caller

    Returns:
        Qualified task id string

    Raises:
        ValueError: If the identifier is empty or malformed
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Invalid task id: {value!r}")

    task_id = str(value).strip()
    if not task_id:
        raise ValueError("Task id must not be empty")
    if not _TASK_ID_PATTERN.match(task_id):
        raise ValueError(f"Invalid task id: {task_id!r}")
    return task_id


def id_sort_key(task_id: str) -> tuple:
    """Sort key giving a total order over task ids.

    Dotted segments compare one by one. Numeric segments compare
    numerically and sort before non-numeric ones.
    """
    key = []
    for segment in str(task_id).split("."):
        if segment.isdigit():
            key.append((0, int(segment), ""))
        else:
            key.append((1, 0, segment))
    return tuple(key)


@dataclass
class TaskNode:
    """Task or subtask as a graph node."""

    id: str
    dependencies: list[str] = field(default_factory=list)
    parent_id: Optional[str] = None
    title: str = ""
    status: str = "pending"
    priority: Optional[str] = None
    extra: dict = field(default_factory=dict)
    updated_at: Optional[str] = field(default=None, compare=False)

    @property
    def is_subtask(self) -> bool:
        """True for nodes nested under a parent task."""
        return self.parent_id is not None

    @property
    def local_id(self) -> str:
        """Identifier relative to the parent task."""
        if self.parent_id is None:
            return self.id
        return self.id[len(self.parent_id) + 1 :]

    def touch(self) -> None:
        """Refresh the last-modified timestamp."""
        self.updated_at = utc_now()


@dataclass
class TaskCollection:
    """Full dependency graph: tasks and flattened subtasks keyed by id."""

    nodes: dict[str, TaskNode] = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_nodes(cls, nodes: list[TaskNode], metadata: Optional[dict] = None) -> "TaskCollection":
        """Build a collection from a node list.

        Raises:
            ValueError: If two nodes share an id
        """
        collection = cls(metadata=dict(metadata or {}))
        for node in nodes:
            if node.id in collection.nodes:
                raise ValueError(f"Duplicate task id: {node.id}")
            collection.nodes[node.id] = node
        return collection

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[TaskNode]:
        return iter(self.nodes.values())

    def get(self, task_id: str) -> Optional[TaskNode]:
        """Get node by id.

        Returns:
            TaskNode or None
        """
        return self.nodes.get(task_id)

    def ids(self) -> list[str]:
        """Node ids in collection order."""
        return list(self.nodes)

    def edges(self) -> list[tuple[str, str]]:
        """All (dependent, dependency) edges, duplicates included."""
        return [(node.id, dep) for node in self.nodes.values() for dep in node.dependencies]

    def subtasks_of(self, task_id: str) -> list[TaskNode]:
        """Subtask nodes owned by a top-level task."""
        return [node for node in self.nodes.values() if node.parent_id == task_id]

    def top_level(self) -> list[TaskNode]:
        """Top-level task nodes."""
        return [node for node in self.nodes.values() if node.parent_id is None]

    def copy(self) -> "TaskCollection":
        """Deep copy, so the original is never mutated."""
        return copy.deepcopy(self)
