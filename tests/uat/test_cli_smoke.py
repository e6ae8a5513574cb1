from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from taskweave.main import cli


def write_tasks(path: Path, tasks: list[dict]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"tasks": tasks}))


def read_deps(path: Path) -> dict:
    data = json.loads(path.read_text())
    return {str(t["id"]): t["dependencies"] for t in data["tasks"]}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def chain_tasks() -> list[dict]:
    return [
        {"id": 1, "title": "One", "status": "done", "dependencies": []},
        {"id": 2, "title": "Two", "status": "pending", "dependencies": [1]},
        {"id": 3, "title": "Three", "status": "pending", "dependencies": [2]},
    ]


def test_cli_init_creates_config_and_tasks(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        config_path = Path(".taskweave") / "config.yml"
        result = runner.invoke(cli, ["--config", str(config_path), "init"])

        assert result.exit_code == 0, result.output
        assert config_path.exists()
        assert json.loads(Path("tasks/tasks.json").read_text()) == {"tasks": []}

        again = runner.invoke(cli, ["--config", str(config_path), "init"])
        assert again.exit_code == 1
        assert "already exists" in again.output


def test_cli_add_dependency(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, chain_tasks())

        result = runner.invoke(cli, ["--file", str(tasks_path), "add-dependency", "--id", "3", "--depends-on", "1"])

        assert result.exit_code == 0, result.output
        assert read_deps(tasks_path)["3"] == [2, 1]


def test_cli_add_dependency_cycle(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, chain_tasks())

        result = runner.invoke(cli, ["--file", str(tasks_path), "add-dependency", "--id", "1", "--depends-on", "3"])

        assert result.exit_code == 1
        assert "1 -> 3 -> 2 -> 1" in result.output
        assert read_deps(tasks_path)["1"] == []


def test_cli_add_dependency_bad_id(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, chain_tasks())

        result = runner.invoke(cli, ["--file", str(tasks_path), "add-dependency", "--id", "a b", "--depends-on", "1"])

        assert result.exit_code == 2
        assert "Invalid task id" in result.output


def test_cli_remove_dependency(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, chain_tasks())

        result = runner.invoke(cli, ["--file", str(tasks_path), "remove-dependency", "--id", "3", "--depends-on", "2"])
        assert result.exit_code == 0, result.output
        assert read_deps(tasks_path)["3"] == []

        again = runner.invoke(cli, ["--file", str(tasks_path), "remove-dependency", "--id", "3", "--depends-on", "2"])
        assert again.exit_code == 1
        assert "does not depend on" in again.output


def test_cli_edit_refused_on_invalid_graph(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, [{"id": 1, "dependencies": [9]}, {"id": 2, "dependencies": []}])

        result = runner.invoke(cli, ["--file", str(tasks_path), "add-dependency", "--id", "2", "--depends-on", "1"])

        assert result.exit_code == 1
        assert read_deps(tasks_path)["2"] == []


def test_cli_validate_and_fix(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, [{"id": 1, "dependencies": [2]}, {"id": 2, "dependencies": [1]}])

        report = runner.invoke(cli, ["--file", str(tasks_path), "validate-dependencies"])
        assert report.exit_code == 1
        assert "Cycle: 1 -> 2 -> 1" in report.output

        dry_run = runner.invoke(cli, ["--file", str(tasks_path), "fix-dependencies", "--dry-run"])
        assert dry_run.exit_code == 0, dry_run.output
        assert "2 -> 1 (cycle-break)" in dry_run.output
        assert read_deps(tasks_path) == {"1": [2], "2": [1]}

        fixed = runner.invoke(cli, ["--file", str(tasks_path), "fix-dependencies"])
        assert fixed.exit_code == 0, fixed.output
        assert read_deps(tasks_path) == {"1": [2], "2": []}

        clean = runner.invoke(cli, ["--file", str(tasks_path), "validate-dependencies"])
        assert clean.exit_code == 0
        assert "All dependencies valid" in clean.output


def test_cli_fix_dangling(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, [{"id": 1, "dependencies": [9]}])

        result = runner.invoke(cli, ["--file", str(tasks_path), "fix-dependencies"])

        assert result.exit_code == 0, result.output
        assert read_deps(tasks_path) == {"1": []}


def test_cli_list_show_next(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        write_tasks(tasks_path, chain_tasks())

        listed = runner.invoke(cli, ["--file", str(tasks_path), "list", "--status", "pending"])
        assert listed.exit_code == 0, listed.output
        assert "Two" in listed.output
        assert "One" not in listed.output

        shown = runner.invoke(cli, ["--file", str(tasks_path), "show", "2"])
        assert shown.exit_code == 0, shown.output
        assert "Dependents: 3" in shown.output

        nxt = runner.invoke(cli, ["--file", str(tasks_path), "next"])
        assert nxt.exit_code == 0, nxt.output
        assert "Two" in nxt.output


def test_cli_missing_tasks_file(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        result = runner.invoke(cli, ["--file", "missing.json", "list"])

        assert result.exit_code == 1
        assert "Tasks file not found" in result.output


def test_cli_list_and_show_json(runner: CliRunner) -> None:
    with runner.isolated_filesystem():
        tasks_path = Path("tasks.json")
        tasks = chain_tasks()
        tasks[1]["subtasks"] = [
            {"id": 1, "title": "Sub one", "status": "pending", "dependencies": []},
            {"id": 2, "title": "Sub two", "status": "pending", "dependencies": [1]},
        ]
        write_tasks(tasks_path, tasks)

        listed = runner.invoke(cli, ["--file", str(tasks_path), "list", "--status", "pending", "--json"])
        assert listed.exit_code == 0, listed.output
        data = json.loads(listed.output)
        assert [t["id"] for t in data["tasks"]] == [2, 3]
        assert "subtasks" not in data["tasks"][0]

        nested = runner.invoke(cli, ["--file", str(tasks_path), "list", "--with-subtasks", "--json"])
        assert json.loads(nested.output)["tasks"][1]["subtasks"][1]["dependencies"] == [1]

        shown = runner.invoke(cli, ["--file", str(tasks_path), "show", "2", "--json"])
        assert shown.exit_code == 0, shown.output
        entry = json.loads(shown.output)
        assert entry["title"] == "Two"
        assert entry["dependencies"] == [1]
        assert entry["dependents"] == ["3"]

        sub = runner.invoke(cli, ["--file", str(tasks_path), "show", "2.2", "--json"])
        assert sub.exit_code == 0, sub.output
        assert json.loads(sub.output)["title"] == "Sub two"
