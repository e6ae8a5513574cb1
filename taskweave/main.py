"""taskweave CLI entrypoint."""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from .config.loader import ConfigError, create_default_config, load_config
from .config.models import TaskWeaveConfig
from .graph.errors import DependencyError, UnresolvableCycleError
from .graph.manager import ValidationReport
from .graph.ready import next_task
from .state.machine import CollectionMachine, StateTransitionError
from .state.persistence import TaskFileError, collection_to_data, load_collection, save_collection
from .tasks.model import TaskCollection, TaskNode, parse_task_id
from .utils.logging import setup_logging

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
}

STATUS_SYMBOLS = {
    "done": "✓",
    "completed": "✓",
    "in-progress": "►",
    "pending": "○",
    "deferred": "…",
    "cancelled": "✗",
}


def _task_id(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[str]:
    """Click callback normalizing a task id argument."""
    if value is None:
        return None
    try:
        return parse_task_id(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _fail(message: str) -> None:
    click.echo(f"✗ {message}", err=True)
    sys.exit(1)


def _settings(ctx: click.Context) -> TaskWeaveConfig:
    """Load config (defaults when the file does not exist) and set up logging."""
    if "settings" in ctx.obj:
        return ctx.obj["settings"]

    config_path: Path = ctx.obj["config_path"]
    verbose: bool = ctx.obj["verbose"]

    config = TaskWeaveConfig()
    if config_path.exists():
        try:
            config = load_config(config_path)
        except ConfigError as e:
            _fail(f"Configuration error: {e}")

    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_dir=config.logging.log_dir,
        rotation_mb=config.logging.rotation_mb,
        retention_days=config.logging.retention_days,
        use_colors=verbose,
        console=verbose,
    )

    ctx.obj["settings"] = config
    return config


def _tasks_path(ctx: click.Context) -> Path:
    override: Optional[Path] = ctx.obj["tasks_file"]
    return override if override is not None else _settings(ctx).tasks.file


def _load(ctx: click.Context) -> TaskCollection:
    try:
        return load_collection(_tasks_path(ctx))
    except TaskFileError as e:
        _fail(str(e))


def _save(ctx: click.Context, collection: TaskCollection) -> None:
    try:
        save_collection(collection, _tasks_path(ctx))
    except (TaskFileError, OSError) as e:
        _fail(f"Failed to save tasks: {e}")


def _machine(ctx: click.Context) -> CollectionMachine:
    config = _settings(ctx)
    return CollectionMachine(_load(ctx), max_passes=config.repair.max_passes)


def _format_node(node: TaskNode) -> str:
    symbol = STATUS_SYMBOLS.get(node.status, "?")
    deps = ", ".join(node.dependencies) if node.dependencies else "none"
    return f"{symbol} {node.id:<8} {node.title}  [{node.status}]  deps: {deps}"


def _echo_json(data: object) -> None:
    click.echo(json.dumps(data, indent=2))


def _stored_entry(collection: TaskCollection, node: TaskNode) -> dict:
    """The stored JSON entry for one task or subtask."""
    tasks = collection_to_data(collection)["tasks"]
    top_ids = [task.id for task in collection.top_level()]
    entry = tasks[top_ids.index(node.parent_id or node.id)]
    if node.parent_id:
        sub_ids = [sub.id for sub in collection.subtasks_of(node.parent_id)]
        entry = entry["subtasks"][sub_ids.index(node.id)]
    return entry


def _echo_report(report: ValidationReport) -> None:
    for task_id, dep in report.dangling:
        click.echo(f"  Task {task_id} depends on missing task {dep}")
    for task_id in report.self_loops:
        click.echo(f"  Task {task_id} depends on itself")
    for cycle in report.cycles:
        click.echo(f"  Cycle: {' -> '.join(cycle + cycle[:1])}")
    for task_id, dep in report.duplicates:
        click.echo(f"  Task {task_id} lists {dep} more than once")


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--config",
    "-c",
    default=".taskweave/config.yml",
    help="Path to configuration file",
    type=click.Path(exists=False, path_type=Path),
)
@click.option(
    "--file",
    "-f",
    "tasks_file",
    default=None,
    help="Path to tasks file (overrides configuration)",
    type=click.Path(exists=False, path_type=Path),
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def cli(ctx: click.Context, config: Path, tasks_file: Optional[Path], verbose: bool) -> None:
    """taskweave - Task dependency manager."""
    setup_logging(level="DEBUG" if verbose else "INFO", console=verbose)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["tasks_file"] = tasks_file
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration",
)
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Initialize configuration and an empty tasks file."""
    config_path: Path = ctx.obj["config_path"]

    if config_path.exists() and not force:
        click.echo(f"Configuration already exists: {config_path}")
        click.echo("Use --force to overwrite")
        sys.exit(1)

    try:
        create_default_config(config_path)
    except OSError as e:
        _fail(f"Failed to create configuration: {e}")
    click.echo(f"✓ Created configuration: {config_path}")

    tasks_path = _tasks_path(ctx)
    if not tasks_path.exists():
        _save(ctx, TaskCollection())
        click.echo(f"✓ Created tasks file: {tasks_path}")


@cli.command(name="list")
@click.option("--status", "-s", help="Filter tasks by status")
@click.option("--with-subtasks", is_flag=True, help="Include subtasks")
@click.option("--json", "as_json", is_flag=True, help="Print tasks as JSON")
@click.pass_context
def list_tasks(ctx: click.Context, status: Optional[str], with_subtasks: bool, as_json: bool) -> None:
    """List tasks."""
    collection = _load(ctx)

    tasks = [t for t in collection.top_level() if status is None or t.status == status]

    if as_json:
        stored = collection_to_data(collection)["tasks"]
        entries = [
            entry for task, entry in zip(collection.top_level(), stored) if status is None or task.status == status
        ]
        if not with_subtasks:
            for entry in entries:
                entry.pop("subtasks", None)
        _echo_json({"tasks": entries})
        return

    if not tasks:
        click.echo("No tasks found")
        return

    for task in tasks:
        click.echo(_format_node(task))
        if with_subtasks:
            for sub in collection.subtasks_of(task.id):
                click.echo(f"    {_format_node(sub)}")


@cli.command()
@click.argument("task_id", callback=_task_id)
@click.option("--json", "as_json", is_flag=True, help="Print the task as JSON")
@click.pass_context
def show(ctx: click.Context, task_id: str, as_json: bool) -> None:
    """Show a task with its dependencies and dependents."""
    collection = _load(ctx)
    node = collection.get(task_id)
    if node is None:
        _fail(f"Task {task_id} not found")

    dependents = [n.id for n in collection if task_id in n.dependencies]

    if as_json:
        entry = _stored_entry(collection, node)
        entry["dependents"] = dependents
        _echo_json(entry)
        return

    click.echo(f"Task {node.id}: {node.title}")
    click.echo(f"Status: {node.status}")
    if node.priority:
        click.echo(f"Priority: {node.priority}")
    if node.parent_id:
        click.echo(f"Parent: {node.parent_id}")

    click.echo("\nDependencies:")
    if not node.dependencies:
        click.echo("  none")
    for dep in node.dependencies:
        dep_node = collection.get(dep)
        if dep_node is None:
            click.echo(f"  ! {dep} (missing)")
        else:
            click.echo(f"  {STATUS_SYMBOLS.get(dep_node.status, '?')} {dep} {dep_node.title}")

    click.echo(f"\nDependents: {', '.join(dependents) if dependents else 'none'}")

    subtasks = collection.subtasks_of(node.id)
    if subtasks:
        click.echo("\nSubtasks:")
        for sub in subtasks:
            click.echo(f"  {_format_node(sub)}")


@cli.command(name="add-dependency")
@click.option("--id", "task_id", required=True, callback=_task_id, help="Dependent task id")
@click.option("--depends-on", "dependency_id", required=True, callback=_task_id, help="Dependency task id")
@click.pass_context
def add_dependency_cmd(ctx: click.Context, task_id: str, dependency_id: str) -> None:
    """Make a task depend on another task."""
    machine = _machine(ctx)

    try:
        collection = machine.add_dependency(task_id, dependency_id)
    except StateTransitionError as e:
        _fail(f"{e}\nRun: taskweave validate-dependencies")
    except DependencyError as e:
        _fail(str(e))

    _save(ctx, collection)
    click.echo(f"✓ Task {task_id} now depends on {dependency_id}")


@cli.command(name="remove-dependency")
@click.option("--id", "task_id", required=True, callback=_task_id, help="Dependent task id")
@click.option("--depends-on", "dependency_id", required=True, callback=_task_id, help="Dependency task id")
@click.pass_context
def remove_dependency_cmd(ctx: click.Context, task_id: str, dependency_id: str) -> None:
    """Remove a dependency from a task."""
    machine = _machine(ctx)

    try:
        collection = machine.remove_dependency(task_id, dependency_id)
    except StateTransitionError as e:
        _fail(f"{e}\nRun: taskweave validate-dependencies")
    except DependencyError as e:
        _fail(str(e))

    _save(ctx, collection)
    click.echo(f"✓ Task {task_id} no longer depends on {dependency_id}")


@cli.command(name="validate-dependencies")
@click.pass_context
def validate_dependencies_cmd(ctx: click.Context) -> None:
    """Report missing, self and circular dependencies."""
    machine = _machine(ctx)
    report = machine.validate()

    if not report.has_findings:
        click.echo(f"✓ All dependencies valid ({len(machine.collection)} tasks)")
        return

    click.echo("Dependency issues:")
    _echo_report(report)

    if not report.is_valid:
        click.echo("\nRun: taskweave fix-dependencies")
        sys.exit(1)


@cli.command(name="fix-dependencies")
@click.option(
    "--dry-run",
    is_flag=True,
    help="List edges that would be removed without saving",
)
@click.pass_context
def fix_dependencies_cmd(ctx: click.Context, dry_run: bool) -> None:
    """Remove invalid dependencies and break cycles."""
    machine = _machine(ctx)

    try:
        result = machine.fix()
    except UnresolvableCycleError as e:
        _fail(str(e))

    if not result.changed:
        click.echo("✓ No dependency issues to fix")
        return

    click.echo("Would remove:" if dry_run else "Removed:")
    for change in result.changes:
        click.echo(f"  {change}")

    if not dry_run:
        _save(ctx, result.collection)
        click.echo(f"✓ Fixed {len(result.changes)} dependency issue(s)")


@cli.command(name="next")
@click.pass_context
def next_cmd(ctx: click.Context) -> None:
    """Show the next task ready to work on."""
    config = _settings(ctx)
    collection = _load(ctx)

    task_id = next_task(collection, done_statuses=config.tasks.done_statuses)
    if task_id is None:
        click.echo("No ready tasks")
        return

    click.echo(_format_node(collection.nodes[task_id]))


if __name__ == "__main__":
    cli()
