"""Tasks file persistence with atomic writes."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..tasks.model import TaskCollection, TaskNode, parse_task_id

logger = logging.getLogger(__name__)

RawId = Union[int, str]


class TaskFileError(Exception):
    """Tasks file missing or malformed."""

    pass


def _coerce_dependencies(value: object) -> object:
    """Accept null, a single id or a comma-separated string.

    Numeric parts of a string are read as integers, like bare numbers.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",") if part.strip()]
        return [int(part) if part.isdecimal() and str(int(part)) == part else part for part in parts]
    if isinstance(value, int) and not isinstance(value, bool):
        return [value]
    return value


class SubtaskRecord(BaseModel):
    """Stored subtask."""

    model_config = ConfigDict(extra="allow")

    id: RawId
    title: str = Field(default="", description="Subtask title")
    status: str = Field(default="pending", description="Subtask status")
    priority: Optional[str] = Field(default=None)
    dependencies: list[RawId] = Field(
        default_factory=list,
        description="Sibling subtask numbers or qualified task ids",
    )

    @field_validator("dependencies", mode="before")
    @classmethod
    def _split_dependencies(cls, value: object) -> object:
        return _coerce_dependencies(value)


class TaskRecord(BaseModel):
    """Stored top-level task."""

    model_config = ConfigDict(extra="allow")

    id: RawId
    title: str = Field(default="", description="Task title")
    status: str = Field(default="pending", description="Task status")
    priority: Optional[str] = Field(default=None)
    dependencies: list[RawId] = Field(default_factory=list)
    subtasks: list[SubtaskRecord] = Field(default_factory=list)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _split_dependencies(cls, value: object) -> object:
        return _coerce_dependencies(value)

    @field_validator("subtasks", mode="before")
    @classmethod
    def _default_subtasks(cls, value: object) -> object:
        return [] if value is None else value


class TasksFile(BaseModel):
    """Stored tasks file. Unknown top-level keys are kept as metadata."""

    model_config = ConfigDict(extra="allow")

    tasks: list[TaskRecord] = Field(default_factory=list)


def _resolve_subtask_dependency(parent_id: str, dep: RawId, sibling_ids: set[str]) -> str:
    """Qualify a subtask dependency.

    A bare integer names a sibling subtask when one exists, otherwise a
    top-level task. Strings are already qualified ids.
    """
    if isinstance(dep, int):
        local_id = str(dep)
        if local_id in sibling_ids:
            return f"{parent_id}.{local_id}"
        return parse_task_id(local_id)
    return parse_task_id(dep)


def collection_from_records(tasks_file: TasksFile) -> TaskCollection:
    """Flatten stored records into a task collection.

    Raises:
        ValueError: If an id is malformed or duplicated
    """
    nodes: list[TaskNode] = []

    for task in tasks_file.tasks:
        task_id = parse_task_id(task.id)
        nodes.append(
            TaskNode(
                id=task_id,
                dependencies=[parse_task_id(dep) for dep in task.dependencies],
                title=task.title,
                status=task.status,
                priority=task.priority,
                extra=dict(task.model_extra or {}),
            )
        )

        sibling_ids = {parse_task_id(sub.id) for sub in task.subtasks}
        for sub in task.subtasks:
            local_id = parse_task_id(sub.id)
            nodes.append(
                TaskNode(
                    id=f"{task_id}.{local_id}",
                    dependencies=[
                        _resolve_subtask_dependency(task_id, dep, sibling_ids)
                        for dep in sub.dependencies
                    ],
                    parent_id=task_id,
                    title=sub.title,
                    status=sub.status,
                    priority=sub.priority,
                    extra=dict(sub.model_extra or {}),
                )
            )

    return TaskCollection.from_nodes(nodes, metadata=dict(tasks_file.model_extra or {}))


def _raw_id(task_id: str) -> RawId:
    return int(task_id) if task_id.isdigit() else task_id


def _node_to_dict(node: TaskNode, dependencies: list[RawId]) -> dict:
    data: dict = {
        "id": _raw_id(node.local_id),
        "title": node.title,
        "status": node.status,
    }
    if node.priority is not None:
        data["priority"] = node.priority
    data["dependencies"] = dependencies
    data.update(node.extra)
    return data


def _subtask_dependency(node: TaskNode, dep: str, collection: TaskCollection) -> RawId:
    """Inverse of _resolve_subtask_dependency."""
    sibling = collection.get(dep)
    if sibling is not None and sibling.parent_id == node.parent_id and sibling.local_id.isdigit():
        return int(sibling.local_id)
    return dep


def collection_to_data(collection: TaskCollection) -> dict:
    """Rebuild the nested stored structure from a collection.

    Raises:
        TaskFileError: If a subtask has no parent task in the collection
    """
    for node in collection:
        if node.parent_id is not None and node.parent_id not in collection:
            raise TaskFileError(f"Subtask {node.id} has no parent task {node.parent_id}")

    tasks = []
    for task in collection.top_level():
        entry = _node_to_dict(task, [_raw_id(dep) for dep in task.dependencies])
        subtasks = [
            _node_to_dict(
                sub,
                [_subtask_dependency(sub, dep, collection) for dep in sub.dependencies],
            )
            for sub in collection.subtasks_of(task.id)
        ]
        if subtasks:
            entry["subtasks"] = subtasks
        tasks.append(entry)

    data = dict(collection.metadata)
    data["tasks"] = tasks
    return data


def load_collection(tasks_path: Path) -> TaskCollection:
    """Load task collection from file.

    Args:
        tasks_path: Path to tasks JSON file

    Returns:
        TaskCollection with subtasks flattened

    Raises:
        TaskFileError: If file is missing or invalid
    """
    if not tasks_path.exists():
        raise TaskFileError(f"Tasks file not found: {tasks_path}")

    try:
        with open(tasks_path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise TaskFileError(f"Invalid JSON in {tasks_path}: {e}")

    if not isinstance(data, dict):
        raise TaskFileError(f"Tasks file must contain an object: {tasks_path}")

    try:
        tasks_file = TasksFile.model_validate(data)
    except ValidationError as e:
        raise TaskFileError(f"Tasks file validation failed: {e}")

    try:
        collection = collection_from_records(tasks_file)
    except ValueError as e:
        raise TaskFileError(f"Invalid tasks file {tasks_path}: {e}")

    logger.info(f"Loaded {len(collection)} tasks from {tasks_path}")
    return collection


def save_collection(collection: TaskCollection, tasks_path: Path) -> None:
    """Save task collection with atomic write.

    Args:
        collection: Collection to save
        tasks_path: Destination path
    """
    data = collection_to_data(collection)
    tasks_path.parent.mkdir(parents=True, exist_ok=True)

    # Atomic write: temp file -> fsync -> rename
    temp_path = tasks_path.with_suffix(".tmp")
    with open(temp_path, "w") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    temp_path.replace(tasks_path)

    logger.debug(f"Saved {len(collection)} tasks to {tasks_path}")
