"""Task state definitions and transitions."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class TaskState(str, Enum):
    """Task lifecycle states."""

    QUEUED = "queued"
    BLOCKED = "blocked"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class AgentStatus(str, Enum):
    """Agent slot status."""

    IDLE = "idle"
    WORKING = "working"


class StateTransition(BaseModel):
    """Represents a state transition event."""

    from_state: TaskState
    to_state: TaskState
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None


# Valid state transitions through the generic mutation primitive
VALID_TRANSITIONS: Dict[TaskState, List[TaskState]] = {
    TaskState.QUEUED: [TaskState.EXECUTING, TaskState.BLOCKED],
    TaskState.BLOCKED: [
        TaskState.EXECUTING,
        TaskState.QUEUED,  # Failed dependency was retried
    ],
    TaskState.EXECUTING: [TaskState.COMPLETED, TaskState.FAILED],
    TaskState.COMPLETED: [],  # Terminal state
    TaskState.FAILED: [],  # Terminal until manually retried
}

# Transitions reserved for the retry paths
RETRY_TRANSITIONS: Dict[TaskState, TaskState] = {
    TaskState.EXECUTING: TaskState.QUEUED,  # Automatic retry
    TaskState.FAILED: TaskState.QUEUED,  # Manual retry
}

# States in which a task has stopped moving for the current run
SETTLED_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.BLOCKED})


def is_valid_transition(from_state: TaskState, to_state: TaskState) -> bool:
    """Check if a state transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, [])


def is_retry_transition(from_state: TaskState, to_state: TaskState) -> bool:
    """Check if a transition is one of the retry-only edges."""
    return RETRY_TRANSITIONS.get(from_state) == to_state


def get_valid_next_states(current_state: TaskState) -> List[TaskState]:
    """Get list of valid next states for a given state."""
    return VALID_TRANSITIONS.get(current_state, [])


def is_terminal_state(state: TaskState) -> bool:
    """Check if a state is terminal (no further transitions allowed)."""
    return len(VALID_TRANSITIONS.get(state, [])) == 0


_NUMERIC_SEGMENT = re.compile(r"^\d+$")


def task_id_key(task_id: str) -> Tuple[Tuple[int, int, str], ...]:
    """Sort key for hierarchical dot-separated task ids.

    Numeric segments compare numerically and sort before non-numeric
    segments, so "1" < "1.1" < "1.2" < "2" < "10" < "setup".
    """
    key = []
    for segment in task_id.split("."):
        if _NUMERIC_SEGMENT.match(segment):
            key.append((0, int(segment), ""))
        else:
            key.append((1, 0, segment))
    return tuple(key)
