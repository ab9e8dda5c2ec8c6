"""Core taskcrew functionality."""

from .exceptions import (
    ConfigurationError,
    ExecutionFailure,
    OrchestrationTimeout,
    PlanningFailure,
    StateTransitionError,
    TaskCrewError,
)
from .plan_schema import Plan, PlanTask, load_plan, parse_plan, save_plan, validate_plan
from .readiness import find_ready_tasks, is_task_ready
from .task_graph import (
    AgentRecord,
    GraphEvent,
    GraphSnapshot,
    TaskGraphStore,
    TaskRecord,
)
from .task_state import (
    AgentStatus,
    StateTransition,
    TaskState,
    get_valid_next_states,
    is_retry_transition,
    is_terminal_state,
    is_valid_transition,
    task_id_key,
)

__all__ = [
    # Exceptions
    "TaskCrewError",
    "PlanningFailure",
    "ConfigurationError",
    "ExecutionFailure",
    "StateTransitionError",
    "OrchestrationTimeout",
    # Plan schema
    "Plan",
    "PlanTask",
    "load_plan",
    "parse_plan",
    "save_plan",
    "validate_plan",
    # State management
    "TaskState",
    "AgentStatus",
    "StateTransition",
    "is_valid_transition",
    "is_retry_transition",
    "get_valid_next_states",
    "is_terminal_state",
    "task_id_key",
    # Task graph
    "TaskGraphStore",
    "TaskRecord",
    "AgentRecord",
    "GraphSnapshot",
    "GraphEvent",
    "find_ready_tasks",
    "is_task_ready",
]
