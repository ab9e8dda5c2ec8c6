"""Tests for executors, the agent dispatch table and resource stores."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from taskcrew.core.exceptions import PlanningFailure
from taskcrew.core.task_graph import TaskRecord
from taskcrew.orchestrator.agents import DEFAULT_AGENTS, build_dispatch_table
from taskcrew.orchestrator.executor import (
    CallableExecutor,
    CommandExecutor,
    EchoExecutor,
    TaskResult,
)
from taskcrew.orchestrator.resources import DirectoryResourceStore, InMemoryResourceStore
from tests.mocks import make_plan


@pytest.fixture
def task() -> TaskRecord:
    return TaskRecord(
        id="1.2",
        description="Add a login form",
        target_resource="src/Login.tsx",
        agent="Frontend Coder",
    )


class TestCallableExecutor:
    def test_string_result_is_content(self, task):
        result = CallableExecutor(lambda t, content: f"// {t.id}").execute(task, None)

        assert result == TaskResult.ok("// 1.2")

    def test_task_result_passed_through(self, task):
        failed = TaskResult.failed("nope")

        assert CallableExecutor(lambda t, c: failed).execute(task, None) is failed

    def test_unexpected_return_type(self, task):
        with pytest.raises(TypeError):
            CallableExecutor(lambda t, c: 42).execute(task, None)


class TestEchoExecutor:
    def test_describes_task(self, task):
        result = EchoExecutor().execute(task, None)

        assert result.success
        assert "# src/Login.tsx" in result.content
        assert "Task 1.2 (Frontend Coder): Add a login form" in result.content

    def test_keeps_existing_content(self, task):
        result = EchoExecutor().execute(task, "export {};\n")

        assert result.content.endswith("export {};\n")


class TestCommandExecutor:
    def _completed(self, returncode=0, stdout="", stderr=""):
        return Mock(returncode=returncode, stdout=stdout, stderr=stderr)

    def test_stdout_becomes_content(self, task, tmp_path):
        executor = CommandExecutor("claude --print", working_dir=tmp_path, timeout=60)

        with patch("subprocess.run", return_value=self._completed(stdout="new code")) as run:
            result = executor.execute(task, "old code")

        assert result.success
        assert result.content == "new code"
        cmd = run.call_args.args[0]
        assert cmd[:3] == ["claude", "--print", "-p"]
        assert "Complete task 1.2: Add a login form" in cmd[3]
        assert "Current content:\nold code" in cmd[3]
        assert run.call_args.kwargs["cwd"] == str(tmp_path)
        assert run.call_args.kwargs["timeout"] == 60

    def test_nonzero_exit_is_failure(self, task):
        with patch(
            "subprocess.run",
            return_value=self._completed(returncode=2, stderr="rate limited"),
        ):
            result = CommandExecutor("gen").execute(task, None)

        assert not result.success
        assert result.error_message == "Command exited with code 2: rate limited"

    def test_empty_output_is_failure(self, task):
        with patch("subprocess.run", return_value=self._completed(stdout="  \n")):
            result = CommandExecutor("gen").execute(task, None)

        assert result.error_message == "Command produced no output"

    def test_timeout_is_failure(self, task):
        with patch(
            "subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="gen", timeout=5),
        ):
            result = CommandExecutor("gen", timeout=5).execute(task, None)

        assert result.error_message == "Command timed out after 5s"

    def test_missing_command_is_failure(self, task):
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            result = CommandExecutor("does-not-exist").execute(task, None)

        assert result.error_message == "Command not found: does-not-exist"


class TestDispatchTable:
    def test_shared_executor(self):
        executor = EchoExecutor()
        table = build_dispatch_table(make_plan(("1", "X"), ("2", "Y"), ("3", "X")), executor)

        assert sorted(table) == ["X", "Y"]
        assert all(handle.executor is executor for handle in table.values())
        assert table["X"].describe() == "X -> EchoExecutor"

    def test_mapping_must_cover_plan_agents(self):
        with pytest.raises(PlanningFailure, match="Y"):
            build_dispatch_table(make_plan(("1", "X"), ("2", "Y")), {"X": EchoExecutor()})

    def test_default_roster(self):
        assert len(DEFAULT_AGENTS) == 6
        assert "Frontend Coder" in DEFAULT_AGENTS


class TestResourceStores:
    def test_in_memory(self):
        resources = InMemoryResourceStore({"a.txt": "1"})
        resources.write("b/c.txt", "2")

        assert resources.read("a.txt") == "1"
        assert resources.read("missing") is None
        assert resources.paths() == ["a.txt", "b/c.txt"]

    def test_directory_store_round_trip(self, tmp_path):
        resources = DirectoryResourceStore(tmp_path)

        assert resources.read("src/App.tsx") is None
        resources.write("src/App.tsx", "export default App;\n")

        assert (tmp_path / "src" / "App.tsx").read_text() == "export default App;\n"
        assert resources.read("/src/App.tsx") == "export default App;\n"

    def test_directory_store_rejects_escape(self, tmp_path):
        resources = DirectoryResourceStore(tmp_path / "root")

        with pytest.raises(ValueError, match="escapes"):
            resources.write("../outside.txt", "x")
