"""Readiness evaluation: which tasks may start right now."""

from typing import List, Tuple

from .task_graph import AgentRecord, GraphSnapshot, TaskRecord
from .task_state import AgentStatus, TaskState, task_id_key

READY_CANDIDATE_STATES = frozenset({TaskState.QUEUED, TaskState.BLOCKED})


def is_task_ready(task: TaskRecord, snapshot: GraphSnapshot) -> bool:
    """Check whether a task's own state and dependencies allow it to start.

    The owning agent's availability is not considered here.
    """
    if task.state not in READY_CANDIDATE_STATES:
        return False
    return all(
        snapshot.tasks[dep].state == TaskState.COMPLETED for dep in task.dependencies
    )


def find_ready_tasks(snapshot: GraphSnapshot) -> List[Tuple[TaskRecord, AgentRecord]]:
    """Find the (task, agent) pairs that can be dispatched now.

    An idle agent gets at most one task per evaluation: the ready task with
    the lowest id among those it owns. Pairs are returned in ascending task
    id order. No side effects.

    Args:
        snapshot: Current graph snapshot

    Returns:
        List of (task, agent) pairs
    """
    ready: List[Tuple[TaskRecord, AgentRecord]] = []

    for agent in snapshot.agents.values():
        if agent.status != AgentStatus.IDLE:
            continue

        candidates = [
            snapshot.tasks[task_id]
            for task_id in agent.tasks
            if is_task_ready(snapshot.tasks[task_id], snapshot)
        ]
        if candidates:
            first = min(candidates, key=lambda t: task_id_key(t.id))
            ready.append((first, agent))

    ready.sort(key=lambda pair: task_id_key(pair[0].id))
    return ready
