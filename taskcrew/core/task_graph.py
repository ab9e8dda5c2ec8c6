"""Task graph store: the single source of truth for the active plan."""

import sys
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field

from .exceptions import StateTransitionError
from .plan_schema import PlanTask, validate_plan
from .task_state import (
    AgentStatus,
    StateTransition,
    TaskState,
    get_valid_next_states,
    is_retry_transition,
    is_valid_transition,
    task_id_key,
)


class TaskRecord(BaseModel):
    """A task of the active plan together with its runtime state."""

    id: str
    description: str
    target_resource: str
    agent: str
    dependencies: List[str] = Field(default_factory=list)
    state: TaskState = TaskState.QUEUED
    retry_count: int = 0
    error_message: Optional[str] = None
    history: List[StateTransition] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def add_transition(self, to_state: TaskState, reason: Optional[str] = None) -> None:
        """Add a state transition to history."""
        self.history.append(
            StateTransition(from_state=self.state, to_state=to_state, reason=reason)
        )
        self.state = to_state
        self.updated_at = datetime.now(timezone.utc)


class AgentRecord(BaseModel):
    """A named worker slot of the roster."""

    name: str
    status: AgentStatus = AgentStatus.IDLE
    tasks: List[str] = Field(default_factory=list)
    current_task: Optional[str] = None


class GraphSnapshot(BaseModel):
    """Read-only copy of the graph handed to observers."""

    generation: int = 0
    tasks: Dict[str, TaskRecord] = Field(default_factory=dict)
    agents: Dict[str, AgentRecord] = Field(default_factory=dict)

    def all_tasks(self) -> List[TaskRecord]:
        """All tasks across all agents, sorted by id."""
        return sorted(self.tasks.values(), key=lambda t: task_id_key(t.id))

    def tasks_by_agent(self) -> Dict[str, List[TaskRecord]]:
        """Tasks grouped by owning agent, in roster order, each sorted by id."""
        return {
            name: sorted(
                (self.tasks[task_id] for task_id in agent.tasks),
                key=lambda t: task_id_key(t.id),
            )
            for name, agent in self.agents.items()
        }

    def tasks_in_state(self, state: TaskState) -> List[TaskRecord]:
        return [t for t in self.all_tasks() if t.state == state]

    def count_by_state(self) -> Dict[TaskState, int]:
        counts = {state: 0 for state in TaskState}
        for task in self.tasks.values():
            counts[task.state] += 1
        return counts

    def get_task(self, task_id: str) -> TaskRecord:
        if task_id not in self.tasks:
            raise ValueError(f"Task {task_id} not found")
        return self.tasks[task_id]


class GraphEvent(BaseModel):
    """Notification sent to graph observers."""

    kind: Literal["reset", "transition"]
    generation: int
    task_id: Optional[str] = None
    from_state: Optional[TaskState] = None
    to_state: Optional[TaskState] = None
    reason: Optional[str] = None


GraphListener = Callable[[GraphEvent], None]


class TaskGraphStore:
    """
    Holds the tasks and agents of the currently active plan.

    This class provides:
    - Atomic plan ingestion that replaces the previous graph wholesale
    - One generic mutation primitive with transition validation
    - Dedicated retry transitions for the retry policy
    - Deep-copied snapshots for readers
    - Event hooks for observers
    - Thread-safe operations
    """

    def __init__(self, agents: Iterable[str]):
        """
        Initialize the store.

        Args:
            agents: Names of the roster's agents, fixed for the store's lifetime

        Raises:
            ValueError: If the roster is empty or has duplicate names
        """
        roster = list(agents)
        if not roster:
            raise ValueError("Agent roster cannot be empty")
        if len(set(roster)) != len(roster):
            raise ValueError("Agent names must be unique")

        self._roster = roster
        self._tasks: Dict[str, TaskRecord] = {}
        self._agents: Dict[str, AgentRecord] = self._fresh_agents()
        self._generation = 0
        self._lock = threading.RLock()
        self._listeners: List[GraphListener] = []

    @property
    def roster(self) -> List[str]:
        return list(self._roster)

    @property
    def generation(self) -> int:
        """Number of plans ingested so far."""
        with self._lock:
            return self._generation

    def ingest_plan(self, tasks: Iterable[PlanTask]) -> GraphSnapshot:
        """
        Replace the current graph with a fresh one built from a plan.

        Args:
            tasks: Validated plan tasks

        Returns:
            Snapshot of the new graph

        Raises:
            PlanningFailure: If the plan is inconsistent; the current graph is
                left untouched
        """
        plan_tasks = validate_plan(tasks, self._roster)

        new_tasks: Dict[str, TaskRecord] = {}
        new_agents = self._fresh_agents()
        for task in plan_tasks:
            new_tasks[task.id] = TaskRecord(
                id=task.id,
                description=task.description,
                target_resource=task.target_resource,
                agent=task.agent,
                dependencies=list(task.dependencies),
            )
            new_agents[task.agent].tasks.append(task.id)

        with self._lock:
            self._tasks = new_tasks
            self._agents = new_agents
            self._generation += 1
            event = GraphEvent(kind="reset", generation=self._generation)
            self._notify_listeners(event)
            return self._snapshot()

    def clear(self) -> None:
        """Discard the current graph."""
        with self._lock:
            self._tasks = {}
            self._agents = self._fresh_agents()
            self._generation += 1
            self._notify_listeners(GraphEvent(kind="reset", generation=self._generation))

    def set_task_state(
        self,
        task_id: str,
        new_state: TaskState,
        reason: Optional[str] = None,
    ) -> TaskRecord:
        """
        Transition a task to a new state.

        Entering EXECUTING requires every dependency to be COMPLETED and the
        owning agent to be idle; it marks the agent working. Leaving
        EXECUTING marks the agent idle again.

        Args:
            task_id: Task identifier
            new_state: Target state
            reason: Optional reason recorded in the task history

        Returns:
            Copy of the updated task

        Raises:
            ValueError: If the task doesn't exist
            StateTransitionError: If the transition is invalid
        """
        with self._lock:
            task = self._get(task_id)
            from_state = task.state

            if not is_valid_transition(from_state, new_state):
                valid_states = get_valid_next_states(from_state)
                raise StateTransitionError(
                    f"Invalid transition for task {task_id}: "
                    f"{from_state.value} -> {new_state.value}. "
                    f"Valid next states: {[s.value for s in valid_states]}"
                )

            if new_state == TaskState.EXECUTING:
                self._check_can_execute(task)

            self._apply(task, new_state, reason)

            if new_state == TaskState.FAILED:
                task.error_message = reason
            elif new_state == TaskState.COMPLETED:
                task.error_message = None

            return task.model_copy(deep=True)

    def requeue_for_retry(self, task_id: str, reason: Optional[str] = None) -> TaskRecord:
        """Move an executing task back to QUEUED, consuming one automatic retry."""
        with self._lock:
            task = self._get(task_id)
            self._check_retry_edge(task, TaskState.EXECUTING)
            task.retry_count += 1
            task.error_message = reason
            self._apply(task, TaskState.QUEUED, reason)
            return task.model_copy(deep=True)

    def reset_for_manual_retry(self, task_id: str, reason: Optional[str] = None) -> TaskRecord:
        """Move a failed task back to QUEUED with a fresh retry budget."""
        with self._lock:
            task = self._get(task_id)
            self._check_retry_edge(task, TaskState.FAILED)
            task.retry_count = 0
            task.error_message = None
            self._apply(task, TaskState.QUEUED, reason)
            return task.model_copy(deep=True)

    def get_task(self, task_id: str) -> TaskRecord:
        """Get a copy of a task."""
        with self._lock:
            return self._get(task_id).model_copy(deep=True)

    def has_task(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._tasks

    def snapshot(self) -> GraphSnapshot:
        """Deep copy of all tasks and agents."""
        with self._lock:
            return self._snapshot()

    def add_listener(self, listener: GraphListener) -> None:
        """
        Add a listener for graph events.

        Args:
            listener: Callback function(event)
        """
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: GraphListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _fresh_agents(self) -> Dict[str, AgentRecord]:
        return {name: AgentRecord(name=name) for name in self._roster}

    def _get(self, task_id: str) -> TaskRecord:
        if task_id not in self._tasks:
            raise ValueError(f"Task {task_id} not found")
        return self._tasks[task_id]

    def _snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            generation=self._generation,
            tasks={tid: t.model_copy(deep=True) for tid, t in self._tasks.items()},
            agents={name: a.model_copy(deep=True) for name, a in self._agents.items()},
        )

    def _check_can_execute(self, task: TaskRecord) -> None:
        pending = [
            dep
            for dep in task.dependencies
            if self._tasks[dep].state != TaskState.COMPLETED
        ]
        if pending:
            raise StateTransitionError(
                f"Task {task.id} cannot execute: dependencies not completed: "
                f"{', '.join(pending)}"
            )

        agent = self._agents[task.agent]
        if agent.status == AgentStatus.WORKING:
            raise StateTransitionError(
                f"Task {task.id} cannot execute: agent '{agent.name}' is already "
                f"working on task {agent.current_task}"
            )

    def _check_retry_edge(self, task: TaskRecord, required: TaskState) -> None:
        if task.state != required or not is_retry_transition(task.state, TaskState.QUEUED):
            raise StateTransitionError(
                f"Invalid retry for task {task.id}: task is {task.state.value}, "
                f"expected {required.value}"
            )

    def _apply(self, task: TaskRecord, new_state: TaskState, reason: Optional[str]) -> None:
        from_state = task.state
        agent = self._agents[task.agent]

        task.add_transition(new_state, reason=reason)

        if new_state == TaskState.EXECUTING:
            agent.status = AgentStatus.WORKING
            agent.current_task = task.id
        elif from_state == TaskState.EXECUTING:
            agent.status = AgentStatus.IDLE
            agent.current_task = None

        self._notify_listeners(
            GraphEvent(
                kind="transition",
                generation=self._generation,
                task_id=task.id,
                from_state=from_state,
                to_state=new_state,
                reason=reason,
            )
        )

    def _notify_listeners(self, event: GraphEvent) -> None:
        """Notify all registered listeners of a graph event."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Observers must not break graph mutations
                print(f"Error in graph listener: {e}", file=sys.stderr)
