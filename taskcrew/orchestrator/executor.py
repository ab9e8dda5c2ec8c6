"""Task executor interface and built-in executors.

The loop invokes ``execute`` exactly once per dispatch, on a worker thread.
Executors report failures either by returning a failed ``TaskResult`` or by
raising; the loop treats both the same way.
"""

import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..core.task_graph import TaskRecord


@dataclass
class TaskResult:
    """Outcome of one executor invocation."""

    success: bool
    content: Optional[str] = None
    error_message: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def ok(cls, content: str, duration_seconds: float = 0.0) -> "TaskResult":
        return cls(success=True, content=content, duration_seconds=duration_seconds)

    @classmethod
    def failed(cls, error_message: str, duration_seconds: float = 0.0) -> "TaskResult":
        return cls(
            success=False,
            error_message=error_message,
            duration_seconds=duration_seconds,
        )


class TaskExecutor(ABC):
    """Performs the content-generation work for a single task."""

    @abstractmethod
    def execute(self, task: TaskRecord, current_content: Optional[str]) -> TaskResult:
        """Execute a task.

        Args:
            task: Copy of the task being executed
            current_content: Current content of the task's target resource,
                or None if it does not exist yet

        Returns:
            TaskResult carrying the new content or the failure reason
        """


class CallableExecutor(TaskExecutor):
    """Adapts a plain function to the executor interface.

    The function may return a ``TaskResult`` or the new content as a string.
    """

    def __init__(self, func: Callable[[TaskRecord, Optional[str]], object]):
        self.func = func

    def execute(self, task: TaskRecord, current_content: Optional[str]) -> TaskResult:
        result = self.func(task, current_content)
        if isinstance(result, TaskResult):
            return result
        if isinstance(result, str):
            return TaskResult.ok(result)
        raise TypeError(
            f"Executor function returned {type(result).__name__}, "
            "expected TaskResult or str"
        )


class EchoExecutor(TaskExecutor):
    """Deterministic local executor that writes a stub describing the task."""

    def __init__(self, delay_seconds: float = 0.0):
        self.delay_seconds = delay_seconds

    def execute(self, task: TaskRecord, current_content: Optional[str]) -> TaskResult:
        start_time = time.time()
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

        lines = [
            f"# {task.target_resource}",
            f"# Task {task.id} ({task.agent}): {task.description}",
        ]
        if current_content:
            lines.append("")
            lines.append(current_content.rstrip("\n"))
        return TaskResult.ok("\n".join(lines) + "\n", time.time() - start_time)


class CommandExecutor(TaskExecutor):
    """Runs an external generator command for each task.

    The command receives the task prompt as ``-p <prompt>`` and its stdout
    becomes the new content of the target resource.
    """

    def __init__(
        self,
        command: str,
        working_dir: Optional[Path] = None,
        timeout: int = 1800,
    ):
        """Initialize command executor.

        Args:
            command: Command line to run (e.g. "claude --print")
            working_dir: Working directory for command execution
            timeout: Timeout in seconds for one invocation
        """
        self.command = command
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.timeout = timeout

    def execute(self, task: TaskRecord, current_content: Optional[str]) -> TaskResult:
        cmd = self.command.split() + ["-p", self.build_prompt(task, current_content)]
        start_time = time.time()

        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                cwd=str(self.working_dir),
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return TaskResult.failed(
                f"Command timed out after {self.timeout}s", time.time() - start_time
            )
        except FileNotFoundError:
            return TaskResult.failed(
                f"Command not found: {cmd[0]}", time.time() - start_time
            )

        duration = time.time() - start_time
        if completed.returncode != 0:
            stderr = completed.stderr.strip()
            return TaskResult.failed(
                f"Command exited with code {completed.returncode}"
                + (f": {stderr}" if stderr else ""),
                duration,
            )
        if not completed.stdout.strip():
            return TaskResult.failed("Command produced no output", duration)

        return TaskResult.ok(completed.stdout, duration)

    @staticmethod
    def build_prompt(task: TaskRecord, current_content: Optional[str]) -> str:
        """Build the generation prompt for a task."""
        prompt = (
            f"You are the {task.agent}. Complete task {task.id}: {task.description}\n"
            f"Target file: {task.target_resource}\n"
            "Respond with the complete new content of the target file only."
        )
        if current_content:
            prompt += f"\n\nCurrent content:\n{current_content}"
        return prompt
