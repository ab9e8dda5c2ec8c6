"""Retry policy for handling task execution failures.

This module decides what happens to a task whose executor invocation
failed: bounded automatic retry, then a terminal failure that only a manual
retry can undo.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.task_graph import TaskGraphStore
from ..core.task_state import TaskState

MAX_AUTO_RETRIES = 1


class RetryDecision(Enum):
    """Decision on whether to retry a failed task."""

    RETRY = "retry"  # Requeue the task
    FAIL = "fail"  # Mark task as failed


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_auto_retries: int = MAX_AUTO_RETRIES
    """Maximum number of automatic retry attempts per task"""


@dataclass
class ManualRetryResult:
    """Result of a manual retry request."""

    task_id: str
    applied: bool
    message: str


class RetryPolicy:
    """Determines what happens to tasks whose execution failed."""

    def __init__(self, config: Optional[RetryConfig] = None):
        """Initialize retry policy.

        Args:
            config: Retry configuration (uses defaults if None)
        """
        self.config = config or RetryConfig()
        if self.config.max_auto_retries < 0:
            raise ValueError("max_auto_retries cannot be negative")

    def decide(self, current_retry_count: int) -> RetryDecision:
        """Determine if a failed task should be retried automatically.

        Args:
            current_retry_count: Automatic retries consumed so far

        Returns:
            RetryDecision indicating what action to take
        """
        if current_retry_count < self.config.max_auto_retries:
            return RetryDecision.RETRY
        return RetryDecision.FAIL

    def handle_failure(
        self, store: TaskGraphStore, task_id: str, error: str
    ) -> RetryDecision:
        """Apply the retry decision for an executing task that just failed.

        Args:
            store: Graph store holding the task
            task_id: Failed task
            error: Failure reason

        Returns:
            The decision that was applied
        """
        task = store.get_task(task_id)
        decision = self.decide(task.retry_count)
        message = self.get_retry_message(decision, task.retry_count, error)

        if decision == RetryDecision.RETRY:
            store.requeue_for_retry(task_id, reason=message)
        else:
            store.set_task_state(task_id, TaskState.FAILED, reason=error)

        return decision

    def manual_retry(self, store: TaskGraphStore, task_id: str) -> ManualRetryResult:
        """Requeue a failed task with a fresh retry budget.

        Tasks that are not currently failed are left alone and reported as a
        no-effect result.
        """
        if not store.has_task(task_id):
            return ManualRetryResult(task_id, False, f"Task {task_id} not found")

        task = store.get_task(task_id)
        if task.state != TaskState.FAILED:
            return ManualRetryResult(
                task_id,
                False,
                f"Task {task_id} is {task.state.value}; only failed tasks can be retried",
            )

        store.reset_for_manual_retry(task_id, reason="Manual retry")
        return ManualRetryResult(task_id, True, f"Task {task_id} requeued")

    def get_retry_message(
        self,
        decision: RetryDecision,
        current_retry_count: int,
        reason: Optional[str] = None,
    ) -> str:
        """Get a human-readable message about the retry decision.

        Args:
            decision: Retry decision
            current_retry_count: Retry count before the decision
            reason: Optional reason for the failure

        Returns:
            Message string
        """
        if decision == RetryDecision.RETRY:
            msg = (
                f"Retrying task (attempt {current_retry_count + 2}/"
                f"{self.config.max_auto_retries + 1})"
            )
        else:
            msg = f"Task failed after {current_retry_count} retries"

        if reason:
            msg += f": {reason}"
        return msg
