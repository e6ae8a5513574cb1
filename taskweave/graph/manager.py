"""Dependency graph manager.

Stateless operations over a caller-owned ``TaskCollection``. Mutating
operations work on a deep copy and return it; the collection passed in is
never modified, so a failed call leaves the caller's graph exactly as it was.

Graph invariants:
    I1  every dependency id resolves to a node in the collection
    I2  no node is reachable from itself
    I3  no node lists its own id as a dependency
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..tasks.model import TaskCollection, TaskNode, id_sort_key
from .errors import (
    CycleError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    NotFoundError,
    SelfDependencyError,
    UnresolvableCycleError,
)

_ON_STACK = 1
_DONE = 2


class RemovalReason(str, Enum):
    """Why repair removed an edge."""

    DANGLING = "dangling"
    SELF_LOOP = "self-loop"
    DUPLICATE = "duplicate"
    CYCLE_BREAK = "cycle-break"


@dataclass(frozen=True)
class RemovedEdge:
    """Edge dropped by repair."""

    task_id: str
    dependency_id: str
    reason: RemovalReason

    def __str__(self) -> str:
        return f"{self.task_id} -> {self.dependency_id} ({self.reason.value})"


@dataclass
class ValidationReport:
    """Findings of a dependency scan.

    An empty report means the graph is fully valid.
    """

    dangling: list[tuple[str, str]] = field(default_factory=list)
    self_loops: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)
    duplicates: list[tuple[str, str]] = field(default_factory=list)
    # Every node on some cycle, including ones the cycle list does not name
    cycle_nodes: set[str] = field(default_factory=set)

    @property
    def is_valid(self) -> bool:
        """True when no invariant is violated."""
        return not (self.dangling or self.self_loops or self.cycles)

    @property
    def has_findings(self) -> bool:
        """True when anything was reported, redundant duplicates included."""
        return not self.is_valid or bool(self.duplicates)


@dataclass
class FixResult:
    """Repaired collection plus the change log."""

    collection: TaskCollection
    changes: list[RemovedEdge] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def _require(collection: TaskCollection, task_id: str) -> TaskNode:
    node = collection.get(task_id)
    if node is None:
        raise NotFoundError(task_id)
    return node


def _successors(collection: TaskCollection, task_id: str) -> list[str]:
    """Distinct existing dependencies of a node, self-loops excluded."""
    seen: set[str] = set()
    result = []
    for dep in collection.nodes[task_id].dependencies:
        if dep == task_id or dep in seen or dep not in collection:
            continue
        seen.add(dep)
        result.append(dep)
    return result


def _find_path(collection: TaskCollection, start: str, target: str) -> Optional[list[str]]:
    """Depth-first search for a dependency path from start to target.

    Returns:
        Path [start, ..., target] or None if target is unreachable
    """
    parents: dict[str, Optional[str]] = {start: None}
    stack = [start]

    while stack:
        current = stack.pop()
        if current == target:
            path = []
            step: Optional[str] = current
            while step is not None:
                path.append(step)
                step = parents[step]
            path.reverse()
            return path

        # Reversed so the first listed dependency is explored first
        for dep in reversed(_successors(collection, current)):
            if dep not in parents:
                parents[dep] = current
                stack.append(dep)

    return None


def _detect_cycles(collection: TaskCollection) -> list[list[str]]:
    """Enumerate cycles with one iterative DFS over the whole graph.

    Each node is visited once. When an edge reaches a node still on the
    stack, the stack slice from that node to the top is reported as a cycle.
    """
    marks: dict[str, int] = {}
    cycles: list[list[str]] = []

    for root in collection.ids():
        if root in marks:
            continue

        path = [root]
        position = {root: 0}
        marks[root] = _ON_STACK
        pending = [iter(_successors(collection, root))]

        while pending:
            dep = next(pending[-1], None)
            if dep is None:
                finished = path.pop()
                del position[finished]
                marks[finished] = _DONE
                pending.pop()
                continue

            mark = marks.get(dep)
            if mark == _ON_STACK:
                cycles.append(path[position[dep] :])
            elif mark is None:
                marks[dep] = _ON_STACK
                position[dep] = len(path)
                path.append(dep)
                pending.append(iter(_successors(collection, dep)))

    return cycles


def _cycle_members(collection: TaskCollection) -> set[str]:
    """Nodes in a strongly connected component with more than one node.

    Iterative Tarjan. Self-loops are reported separately and do not count.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    members: set[str] = set()
    counter = 0

    for root in collection.ids():
        if root in index:
            continue

        work = [(root, iter(_successors(collection, root)))]
        index[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)

        while work:
            current, successors = work[-1]
            dep = next(successors, None)
            if dep is not None:
                if dep not in index:
                    index[dep] = lowlink[dep] = counter
                    counter += 1
                    stack.append(dep)
                    on_stack.add(dep)
                    work.append((dep, iter(_successors(collection, dep))))
                elif dep in on_stack:
                    lowlink[current] = min(lowlink[current], index[dep])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[current])

            if lowlink[current] == index[current]:
                component = []
                while True:
                    task_id = stack.pop()
                    on_stack.discard(task_id)
                    component.append(task_id)
                    if task_id == current:
                        break
                if len(component) > 1:
                    members.update(component)

    return members


def add_dependency(collection: TaskCollection, task_id: str, dependency_id: str) -> TaskCollection:
    """Add the edge task_id -> dependency_id.

    Args:
        collection: Current task collection
        task_id: Dependent task
        dependency_id: Task it should depend on

    Returns:
        Updated copy of the collection

    Raises:
        NotFoundError: If either task is missing
        SelfDependencyError: If both ids are the same
        DuplicateEdgeError: If the edge already exists
        CycleError: If dependency_id already depends on task_id
    """
    task = _require(collection, task_id)
    _require(collection, dependency_id)

    if task_id == dependency_id:
        raise SelfDependencyError(task_id)
    if dependency_id in task.dependencies:
        raise DuplicateEdgeError(task_id, dependency_id)

    path = _find_path(collection, dependency_id, task_id)
    if path is not None:
        raise CycleError(task_id, dependency_id, [task_id] + path)

    updated = collection.copy()
    node = updated.nodes[task_id]
    node.dependencies.append(dependency_id)
    node.touch()
    return updated


def remove_dependency(collection: TaskCollection, task_id: str, dependency_id: str) -> TaskCollection:
    """Remove one occurrence of the edge task_id -> dependency_id.

    Raises:
        NotFoundError: If either task is missing
        EdgeNotFoundError: If the edge does not exist
    """
    task = _require(collection, task_id)
    _require(collection, dependency_id)

    if dependency_id not in task.dependencies:
        raise EdgeNotFoundError(task_id, dependency_id)

    updated = collection.copy()
    node = updated.nodes[task_id]
    node.dependencies.remove(dependency_id)
    node.touch()
    return updated


def validate_dependencies(collection: TaskCollection) -> ValidationReport:
    """Scan the collection for dangling references, self-loops and cycles.

    Read-only; the collection is not modified.
    """
    report = ValidationReport()

    for node in collection:
        seen: set[str] = set()
        for dep in node.dependencies:
            if dep in seen:
                if (node.id, dep) not in report.duplicates:
                    report.duplicates.append((node.id, dep))
                continue
            seen.add(dep)

            if dep == node.id:
                report.self_loops.append(node.id)
            elif dep not in collection:
                report.dangling.append((node.id, dep))

    report.cycles = _detect_cycles(collection)
    if report.cycles:
        report.cycle_nodes = _cycle_members(collection)
    return report


def _breaking_edge(cycle: list[str]) -> tuple[str, str]:
    """Edge leaving the greatest id in the cycle."""
    index = max(range(len(cycle)), key=lambda i: id_sort_key(cycle[i]))
    return cycle[index], cycle[(index + 1) % len(cycle)]


def _cycle_intact(collection: TaskCollection, cycle: list[str]) -> bool:
    for i, task_id in enumerate(cycle):
        successor = cycle[(i + 1) % len(cycle)]
        if successor not in collection.nodes[task_id].dependencies:
            return False
    return True


def fix_dependencies(collection: TaskCollection, max_passes: Optional[int] = None) -> FixResult:
    """Repair the collection deterministically.

    Policy, in order: drop dangling references, drop self-loops, collapse
    duplicates, then break each cycle by removing the edge that leaves its
    greatest id (by ``id_sort_key``). Cycle detection is re-run after each
    pass. Running repair on an already repaired collection changes nothing.

    Args:
        collection: Collection to repair
        max_passes: Optional lower bound on cycle-breaking passes; the
            effective limit is never below the node count

    Returns:
        FixResult with the repaired copy and removed edges

    Raises:
        UnresolvableCycleError: If cycles remain after the pass limit
    """
    fixed = collection.copy()
    report = validate_dependencies(fixed)
    changes: list[RemovedEdge] = []

    for task_id, dep in report.dangling:
        node = fixed.nodes[task_id]
        node.dependencies = [d for d in node.dependencies if d != dep]
        changes.append(RemovedEdge(task_id, dep, RemovalReason.DANGLING))

    for task_id in report.self_loops:
        node = fixed.nodes[task_id]
        node.dependencies = [d for d in node.dependencies if d != task_id]
        changes.append(RemovedEdge(task_id, task_id, RemovalReason.SELF_LOOP))

    for task_id, dep in report.duplicates:
        node = fixed.nodes[task_id]
        if node.dependencies.count(dep) < 2:
            continue
        first = node.dependencies.index(dep)
        node.dependencies = [
            d for i, d in enumerate(node.dependencies) if d != dep or i == first
        ]
        changes.append(RemovedEdge(task_id, dep, RemovalReason.DUPLICATE))

    limit = max(max_passes or 0, len(fixed), 1)
    cycles = report.cycles
    passes = 0
    while cycles:
        if passes >= limit:
            raise UnresolvableCycleError(cycles, passes)
        passes += 1

        for cycle in cycles:
            # An earlier break in this pass may already have opened it
            if not _cycle_intact(fixed, cycle):
                continue
            source, target = _breaking_edge(cycle)
            fixed.nodes[source].dependencies.remove(target)
            changes.append(RemovedEdge(source, target, RemovalReason.CYCLE_BREAK))

        cycles = _detect_cycles(fixed)

    for task_id in {change.task_id for change in changes}:
        fixed.nodes[task_id].touch()

    return FixResult(collection=fixed, changes=changes)
