"""Orchestration loop: drives an accepted plan until it is resolved.

The loop thread is the only writer of task and agent state (manual retries
go through the store's lock and wake the loop). Executor invocations run on a
thread pool, one in-flight task per agent, and report back through an event
queue so a slow task never stalls dispatch of independent work.
"""

import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Union

from ..core.exceptions import (
    ExecutionFailure,
    OrchestrationTimeout,
    PlanningFailure,
    TaskCrewError,
)
from ..core.plan_schema import Plan, PlanTask, validate_plan
from ..core.readiness import find_ready_tasks
from ..core.task_graph import GraphSnapshot, TaskGraphStore, TaskRecord
from ..core.task_state import SETTLED_STATES, TaskState, task_id_key
from ..tracking.activity_logger import ActivityLogger
from .agents import AgentHandle, ExecutorSource, build_dispatch_table
from .executor import TaskResult
from .resources import InMemoryResourceStore, ResourceStore
from .retry_policy import ManualRetryResult, RetryDecision, RetryPolicy


@dataclass
class OrchestrationSummary:
    """Terminal report of one plan run."""

    success: bool
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)
    stalled: List[str] = field(default_factory=list)
    passes: int = 0
    duration_seconds: float = 0.0
    details: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.success:
            return f"All {len(self.completed)} task(s) completed"
        return (
            f"{len(self.completed)} completed, {len(self.failed)} failed, "
            f"{len(self.blocked)} blocked, {len(self.stalled)} stalled"
        )


@dataclass
class _Completion:
    task_id: str
    generation: int
    result: TaskResult


class _Wake:
    """Re-evaluate the graph without any other change."""


class OrchestrationLoop:
    """Dispatches ready tasks to idle agents and reacts to their outcomes."""

    def __init__(
        self,
        store: TaskGraphStore,
        executor: ExecutorSource,
        retry_policy: Optional[RetryPolicy] = None,
        resource_store: Optional[ResourceStore] = None,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        """Initialize the loop.

        Args:
            store: Graph store the loop owns
            executor: One executor for every agent, or agent name -> executor
            retry_policy: Failure policy (creates default if None)
            resource_store: Receives successful content (in-memory if None)
            activity_logger: Optional activity logger
        """
        self.store = store
        self.executor = executor
        self.retry_policy = retry_policy or RetryPolicy()
        self.resource_store = resource_store or InMemoryResourceStore()
        self.activity_logger = activity_logger

        self._dispatch: Dict[str, AgentHandle] = {}
        self._events: "queue.Queue[Union[_Completion, _Wake]]" = queue.Queue()
        self._in_flight: Dict[str, Future] = {}
        self._started_at: Dict[str, float] = {}
        self._pool = ThreadPoolExecutor(
            max_workers=len(store.roster), thread_name_prefix="taskcrew-agent"
        )
        self._run_lock = threading.Lock()
        self._passes = 0

    def __enter__(self) -> "OrchestrationLoop":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Wait for in-flight executor calls and release worker threads."""
        self._pool.shutdown(wait=True)

    def submit_plan(
        self, tasks: Union[Plan, Iterable[PlanTask]], goal: Optional[str] = None
    ) -> GraphSnapshot:
        """
        Accept a plan, replacing the current graph.

        Args:
            tasks: Plan or plan tasks produced by the planner
            goal: Goal text, recorded in the activity log

        Returns:
            Snapshot of the new graph

        Raises:
            PlanningFailure: If the plan is malformed or uses an agent with no
                executor; no graph is created
            TaskCrewError: If tasks of the current plan are still executing
        """
        if isinstance(tasks, Plan):
            goal = goal or tasks.goal
            tasks = tasks.tasks
        tasks = list(tasks)

        if self._in_flight:
            raise TaskCrewError(
                "Cannot replace the plan while tasks are executing: "
                + ", ".join(sorted(self._in_flight, key=task_id_key))
            )

        try:
            validate_plan(tasks, self.store.roster)
            dispatch = build_dispatch_table(tasks, self.executor)
            snapshot = self.store.ingest_plan(tasks)
        except PlanningFailure as e:
            if self.activity_logger:
                self.activity_logger.log_plan_rejected(str(e))
            raise

        self._dispatch = dispatch
        self._passes = 0
        if self.activity_logger:
            self.activity_logger.log_plan_ingested(len(tasks), goal=goal)
        return snapshot

    def run(self, timeout: Optional[float] = None) -> OrchestrationSummary:
        """
        Drive the current plan until it is resolved.

        Can be called again after a manual retry to resume a halted plan.

        Args:
            timeout: Seconds to wait before giving up (None waits forever).
                Executing tasks are not cancelled on timeout.

        Returns:
            OrchestrationSummary once nothing is executing and nothing is ready

        Raises:
            TaskCrewError: If no plan was submitted or the loop is already running
            OrchestrationTimeout: If the timeout elapses first
        """
        if self.store.generation == 0 or not self.store.snapshot().tasks:
            raise TaskCrewError("No plan submitted")
        if not self._run_lock.acquire(blocking=False):
            raise TaskCrewError("Orchestration loop is already running")

        start_time = time.time()
        deadline = None if timeout is None else start_time + timeout

        try:
            while True:
                summary = self._run_pass()
                if summary is not None:
                    summary.duration_seconds = time.time() - start_time
                    if self.activity_logger:
                        self.activity_logger.log_plan_resolved(
                            summary.success,
                            {
                                "completed": len(summary.completed),
                                "failed": len(summary.failed),
                                "blocked": len(summary.blocked),
                                "stalled": len(summary.stalled),
                                "passes": summary.passes,
                            },
                        )
                    return summary

                self._wait_for_event(deadline)
        finally:
            self._run_lock.release()

    def retry(self, task_id: str) -> ManualRetryResult:
        """Manually retry a failed task.

        The loop is woken if it is running; otherwise call ``run`` again.
        """
        result = self.retry_policy.manual_retry(self.store, task_id)
        if self.activity_logger:
            self.activity_logger.log_manual_retry(task_id, result.applied, result.message)
        if result.applied:
            self._events.put(_Wake())
        return result

    def snapshot(self) -> GraphSnapshot:
        return self.store.snapshot()

    @property
    def passes(self) -> int:
        """Passes run for the current plan."""
        return self._passes

    def _wait_for_event(self, deadline: Optional[float]) -> None:
        """Block for the next event, then drain whatever else is queued."""
        remaining = None if deadline is None else max(deadline - time.time(), 0)
        try:
            event = self._events.get(timeout=remaining)
        except queue.Empty:
            raise OrchestrationTimeout(
                "Timed out waiting for tasks to finish: "
                + ", ".join(sorted(self._in_flight, key=task_id_key))
            ) from None

        self._handle_event(event)
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return
            self._handle_event(event)

    def _handle_event(self, event: Union[_Completion, _Wake]) -> None:
        if isinstance(event, _Completion):
            self._in_flight.pop(event.task_id, None)
            started = self._started_at.pop(event.task_id, time.time())
            if event.generation != self.store.generation:
                # Result of a plan that has since been replaced
                return
            self._handle_completion(event.task_id, event.result, started)

    def _run_pass(self) -> Optional[OrchestrationSummary]:
        """Propagate failures, dispatch ready work, then check for termination."""
        self._passes += 1
        self._propagate_failures()
        self._dispatch_ready()
        return self._check_termination()

    def _propagate_failures(self) -> None:
        """Block every waiting task that transitively depends on a failed task.

        Blocked tasks whose failed dependencies have since been retried go
        back to QUEUED.
        """
        snapshot = self.store.snapshot()
        waiting = {
            t.id for t in snapshot.tasks.values()
            if t.state in (TaskState.QUEUED, TaskState.BLOCKED)
        }

        dependents: Dict[str, List[str]] = {}
        for task_id in waiting:
            for dep in snapshot.tasks[task_id].dependencies:
                dependents.setdefault(dep, []).append(task_id)

        failed = [t.id for t in snapshot.tasks.values() if t.state == TaskState.FAILED]
        should_block: Set[str] = set()
        frontier = list(failed)
        while frontier:
            current = frontier.pop()
            for dependent in dependents.get(current, []):
                if dependent not in should_block:
                    should_block.add(dependent)
                    frontier.append(dependent)

        for task_id in sorted(waiting, key=task_id_key):
            task = snapshot.tasks[task_id]
            if task_id in should_block and task.state == TaskState.QUEUED:
                blockers = self._failed_ancestors(task_id, snapshot, should_block)
                self.store.set_task_state(
                    task_id,
                    TaskState.BLOCKED,
                    reason=f"Blocked by failed task(s): {', '.join(blockers)}",
                )
                if self.activity_logger:
                    self.activity_logger.log_task_blocked(task_id, blockers)
            elif task_id not in should_block and task.state == TaskState.BLOCKED:
                self.store.set_task_state(
                    task_id, TaskState.QUEUED, reason="Failed dependencies retried"
                )
                if self.activity_logger:
                    self.activity_logger.log_task_unblocked(task_id)

    def _dispatch_ready(self) -> None:
        generation = self.store.generation
        for task, agent in find_ready_tasks(self.store.snapshot()):
            record = self.store.set_task_state(
                task.id, TaskState.EXECUTING, reason=f"Dispatched to {agent.name}"
            )
            handle = self._dispatch[record.agent]
            self._started_at[record.id] = time.time()

            if self.activity_logger:
                self.activity_logger.log_task_dispatched(
                    record.id, record.agent, record.description
                )

            future = self._pool.submit(self._invoke, handle, record)
            self._in_flight[record.id] = future
            future.add_done_callback(
                lambda f, task_id=record.id: self._events.put(
                    _Completion(task_id, generation, _future_result(f))
                )
            )

    def _invoke(self, handle: AgentHandle, task: TaskRecord) -> TaskResult:
        """Run one executor call on a worker thread."""
        start_time = time.time()
        try:
            current_content = self.resource_store.read(task.target_resource)
            result = handle.executor.execute(task, current_content)
        except Exception as e:
            return TaskResult.failed(_describe_error(e), time.time() - start_time)

        if not isinstance(result, TaskResult):
            return TaskResult.failed(
                f"Executor for {handle.name} returned {type(result).__name__}",
                time.time() - start_time,
            )
        if result.success and result.content is None:
            return TaskResult.failed("Executor reported success without content")
        if result.success and not isinstance(result.content, str):
            return TaskResult.failed(
                f"Executor for {handle.name} returned {type(result.content).__name__} content"
            )
        return result

    def _handle_completion(self, task_id: str, result: TaskResult, started: float) -> None:
        duration_ms = int((time.time() - started) * 1000)
        task = self.store.get_task(task_id)

        if result.success:
            try:
                self.resource_store.write(task.target_resource, result.content)
            except Exception as e:
                result = TaskResult.failed(
                    f"Could not write {task.target_resource}: {_describe_error(e)}"
                )
                if self.activity_logger:
                    self.activity_logger.log_error(result.error_message, task_id=task_id)

        if result.success:
            self.store.set_task_state(task_id, TaskState.COMPLETED, reason="Executor succeeded")
            if self.activity_logger:
                self.activity_logger.log_task_completed(task_id, task.agent, duration_ms)
            return

        error = result.error_message or "Executor failed without a reason"
        decision = self.retry_policy.handle_failure(self.store, task_id, error)
        if self.activity_logger:
            if decision == RetryDecision.RETRY:
                updated = self.store.get_task(task_id)
                self.activity_logger.log_task_retry(
                    task_id,
                    task.agent,
                    self.retry_policy.get_retry_message(decision, task.retry_count, error),
                    updated.retry_count,
                )
            else:
                self.activity_logger.log_task_failed(task_id, task.agent, error, duration_ms)

    def _check_termination(self) -> Optional[OrchestrationSummary]:
        snapshot = self.store.snapshot()
        if snapshot.tasks_in_state(TaskState.EXECUTING):
            return None
        if find_ready_tasks(snapshot):
            # A manual retry raced the dispatch pass; run another pass
            self._events.put(_Wake())
            return None
        return self._build_summary(snapshot)

    def _build_summary(self, snapshot: GraphSnapshot) -> OrchestrationSummary:
        tasks = snapshot.all_tasks()
        completed = [t.id for t in tasks if t.state == TaskState.COMPLETED]
        failed = [t.id for t in tasks if t.state == TaskState.FAILED]
        blocked = [t.id for t in tasks if t.state == TaskState.BLOCKED]
        stalled = [t.id for t in tasks if t.state not in SETTLED_STATES]

        details = []
        for task_id in failed:
            task = snapshot.tasks[task_id]
            details.append(
                f"Task {task_id} ({task.agent}) failed after {task.retry_count} "
                f"automatic retries: {task.error_message}"
            )
        for task_id in blocked:
            blockers = self._failed_ancestors(task_id, snapshot)
            details.append(
                f"Task {task_id} never ran: blocked by failed task(s) {', '.join(blockers)}"
            )
        for task_id in stalled:
            waiting_on = [
                dep
                for dep in snapshot.tasks[task_id].dependencies
                if snapshot.tasks[dep].state != TaskState.COMPLETED
            ]
            details.append(
                f"Task {task_id} never became ready: waiting on {', '.join(waiting_on)}"
            )

        return OrchestrationSummary(
            success=len(completed) == len(tasks),
            completed=completed,
            failed=failed,
            blocked=blocked,
            stalled=stalled,
            passes=self._passes,
            details=details,
        )

    @staticmethod
    def _failed_ancestors(
        task_id: str,
        snapshot: GraphSnapshot,
        blocked_ids: Optional[Set[str]] = None,
    ) -> List[str]:
        """Failed tasks that task_id depends on, directly or transitively.

        ``blocked_ids`` names tasks being blocked in the current pass whose
        snapshot state is still QUEUED.
        """
        blocked_ids = blocked_ids or set()
        found: Set[str] = set()
        seen: Set[str] = set()
        stack = list(snapshot.tasks[task_id].dependencies)
        while stack:
            dep = stack.pop()
            if dep in seen:
                continue
            seen.add(dep)
            dep_task = snapshot.tasks[dep]
            if dep_task.state == TaskState.FAILED:
                found.add(dep)
            elif dep_task.state == TaskState.BLOCKED or dep in blocked_ids:
                stack.extend(dep_task.dependencies)
        return sorted(found, key=task_id_key)


def _future_result(future: Future) -> TaskResult:
    if future.cancelled():
        return TaskResult.failed("Execution was cancelled")
    error = future.exception()
    if error is not None:
        return TaskResult.failed(_describe_error(error))
    return future.result()


def _describe_error(error: BaseException) -> str:
    if isinstance(error, ExecutionFailure):
        return str(error)
    return f"{type(error).__name__}: {error}"
