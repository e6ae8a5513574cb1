"""Ready-set computation for picking the next task."""

from collections.abc import Iterable
from typing import Optional

from ..tasks.model import TaskCollection, id_sort_key

DEFAULT_DONE_STATUSES = ("done", "completed")

PRIORITY_RANK = {
    "high": 0,
    "medium": 1,
    "low": 2,
}


def ready_tasks(
    collection: TaskCollection,
    done_statuses: Iterable[str] = DEFAULT_DONE_STATUSES,
) -> list[str]:
    """Compute tasks ready to work on.

    A task is ready if it is not done and all its dependencies are done.
    Dangling dependencies never count as done.

    Args:
        collection: Task collection
        done_statuses: Statuses treated as completed

    Returns:
        Task ids in collection order
    """
    done_set = set(done_statuses)
    completed = {node.id for node in collection if node.status in done_set}

    ready = []
    for node in collection:
        if node.id in completed:
            continue
        if all(dep in completed for dep in node.dependencies):
            ready.append(node.id)

    return ready


def next_task(
    collection: TaskCollection,
    done_statuses: Iterable[str] = DEFAULT_DONE_STATUSES,
) -> Optional[str]:
    """Pick the ready task to work on next.

    Ordered by priority (high first), then fewest dependencies, then id.

    Returns:
        Task id or None when nothing is ready
    """
    candidates = ready_tasks(collection, done_statuses)
    if not candidates:
        return None

    def rank(task_id: str) -> tuple:
        node = collection.nodes[task_id]
        priority = PRIORITY_RANK.get((node.priority or "medium").lower(), 1)
        return (priority, len(node.dependencies), id_sort_key(task_id))

    return min(candidates, key=rank)
