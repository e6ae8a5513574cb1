"""Dependency graph errors."""


class DependencyError(Exception):
    """Base class for dependency graph errors."""

    pass


class NotFoundError(DependencyError):
    """Referenced task or subtask does not exist."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class SelfDependencyError(DependencyError):
    """Task would depend on itself."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} cannot depend on itself")


class DuplicateEdgeError(DependencyError):
    """Dependency edge already present."""

    def __init__(self, task_id: str, dependency_id: str):
        self.task_id = task_id
        self.dependency_id = dependency_id
        super().__init__(f"Task {task_id} already depends on {dependency_id}")


class EdgeNotFoundError(DependencyError):
    """Dependency edge to remove does not exist."""

    def __init__(self, task_id: str, dependency_id: str):
        self.task_id = task_id
        self.dependency_id = dependency_id
        super().__init__(f"Task {task_id} does not depend on {dependency_id}")


class CycleError(DependencyError):
    """Proposed edge would create a cycle."""

    def __init__(self, task_id: str, dependency_id: str, path: list[str]):
        self.task_id = task_id
        self.dependency_id = dependency_id
        self.path = list(path)
        super().__init__(
            f"Adding {task_id} -> {dependency_id} would create a cycle: "
            + " -> ".join(self.path)
        )


class UnresolvableCycleError(DependencyError):
    """Repair did not converge within the pass limit."""

    def __init__(self, cycles: list[list[str]], passes: int):
        self.cycles = [list(c) for c in cycles]
        self.passes = passes
        super().__init__(
            f"{len(self.cycles)} cycle(s) remain after {passes} repair passes"
        )
