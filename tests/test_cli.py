"""Tests for taskcrew CLI commands."""

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from taskcrew.cli.main import cli


def _write_plan(path: Path, tasks, goal="Build a landing page") -> Path:
    path.write_text(yaml.dump({"goal": goal, "tasks": tasks}))
    return path


def _plan_tasks():
    return [
        {
            "id": "1",
            "description": "Write the requirements",
            "targetResource": "docs/requirements.md",
            "agent": "Requirements Analyst",
            "dependencies": [],
        },
        {
            "id": "2",
            "description": "Build the landing page",
            "targetResource": "src/App.tsx",
            "agent": "Frontend Coder",
            "dependencies": ["1"],
        },
    ]


class TestCLI:
    """Test CLI commands."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.chdir(tmp_path)
        self.tmp_path = tmp_path
        self.runner = CliRunner()

    def test_cli_help(self):
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "taskcrew: Task orchestration" in result.output
        for command in ("agents", "validate", "run"):
            assert command in result.output

    def test_agents_command(self):
        result = self.runner.invoke(cli, ["agents"])

        assert result.exit_code == 0
        assert "Requirements Analyst" in result.output
        assert "DevOps & Deployment Agent" in result.output

    def test_agents_from_config_file(self):
        config_file = self.tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"orchestrator": {"agents": ["Planner", "Coder"]}}))

        result = self.runner.invoke(cli, ["--config", str(config_file), "agents"])

        assert result.exit_code == 0
        assert "Planner" in result.output
        assert "Requirements Analyst" not in result.output

    def test_invalid_config_file(self):
        config_file = self.tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"orchestrator": {"agents": []}}))

        result = self.runner.invoke(cli, ["--config", str(config_file), "agents"])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output

    def test_validate_valid_plan(self):
        plan_file = _write_plan(self.tmp_path / "plan.yaml", _plan_tasks())

        result = self.runner.invoke(cli, ["validate", str(plan_file)])

        assert result.exit_code == 0
        assert "Plan is valid (2 tasks)" in result.output

    def test_validate_dangling_dependency(self):
        tasks = _plan_tasks()
        tasks[1]["dependencies"] = ["9"]
        plan_file = _write_plan(self.tmp_path / "plan.yaml", tasks)

        result = self.runner.invoke(cli, ["validate", str(plan_file)])

        assert result.exit_code == 1
        assert "Invalid plan" in result.output
        assert "not in the plan" in result.output

    def test_validate_unknown_agent(self):
        tasks = _plan_tasks()
        tasks[0]["agent"] = "Intern"
        plan_file = self.tmp_path / "plan.json"
        plan_file.write_text(json.dumps(tasks))

        result = self.runner.invoke(cli, ["validate", str(plan_file)])

        assert result.exit_code == 1
        assert "unknown agent 'Intern'" in result.output

    def test_run_plan_writes_resources(self):
        plan_file = _write_plan(self.tmp_path / "plan.yaml", _plan_tasks())
        app_dir = self.tmp_path / "app"

        result = self.runner.invoke(cli, ["run", str(plan_file), "--resources", str(app_dir)])

        assert result.exit_code == 0, result.output
        assert "Plan accepted: 2 task(s)" in result.output
        assert "All 2 task(s) completed" in result.output
        content = (app_dir / "src" / "App.tsx").read_text()
        assert "Task 2 (Frontend Coder): Build the landing page" in content
        assert list((self.tmp_path / ".taskcrew" / "logs" / "sessions").iterdir())

    def test_run_rejected_plan(self):
        tasks = _plan_tasks()
        tasks.append(dict(tasks[0]))
        plan_file = _write_plan(self.tmp_path / "plan.yaml", tasks)

        result = self.runner.invoke(cli, ["run", str(plan_file)])

        assert result.exit_code == 1
        assert "Duplicate task id '1'" in result.output

    def test_run_failing_plan_exits_nonzero(self):
        plan_file = _write_plan(self.tmp_path / "plan.yaml", _plan_tasks())
        config_file = self.tmp_path / "config.yaml"
        config_file.write_text(
            yaml.dump(
                {"executor": {"kind": "command", "command": "definitely-not-a-real-generator"}}
            )
        )

        result = self.runner.invoke(
            cli, ["--config", str(config_file), "run", str(plan_file), "--max-retries", "0"]
        )

        assert result.exit_code == 1
        assert "0 completed, 1 failed, 1 blocked" in result.output

    def test_run_verbose_prints_transitions(self):
        plan_file = _write_plan(self.tmp_path / "plan.yaml", _plan_tasks())

        result = self.runner.invoke(cli, ["--verbose", "run", str(plan_file)])

        assert result.exit_code == 0
        assert "1: queued -> executing" in result.output
        assert "2: executing -> completed" in result.output
        assert "Agent Team" in result.output

    def test_run_prints_bracketed_text_literally(self):
        tasks = _plan_tasks()
        tasks[1]["description"] = "Route [/api] handler"
        tasks[1]["targetResource"] = "src/[id].tsx"
        plan_file = _write_plan(self.tmp_path / "plan.yaml", tasks)

        result = self.runner.invoke(cli, ["--verbose", "run", str(plan_file)])

        assert result.exit_code == 0, result.output
        assert "[/api]" in result.output
        assert "All 2 task(s) completed" in result.output

    def test_run_interactive_retry_resumes_plan(self):
        marker = self.tmp_path / "first-attempt-done"
        script = self.tmp_path / "flaky.sh"
        script.write_text(
            f'if [ -f "{marker}" ]; then echo "generated"; exit 0; fi\n'
            f'touch "{marker}"\n'
            "echo 'upstream busy' >&2\n"
            "exit 1\n"
        )
        config_file = self.tmp_path / "config.yaml"
        config_file.write_text(
            yaml.dump({"executor": {"kind": "command", "command": f"sh {script}"}})
        )
        plan_file = _write_plan(self.tmp_path / "plan.yaml", _plan_tasks())

        result = self.runner.invoke(
            cli,
            [
                "--config",
                str(config_file),
                "run",
                str(plan_file),
                "--max-retries",
                "0",
                "--interactive",
            ],
            input="y\n",
        )

        assert result.exit_code == 0, result.output
        assert "Retry failed task 1?" in result.output
        assert "Resuming with 1 retried task(s)" in result.output
        assert "All 2 task(s) completed" in result.output
