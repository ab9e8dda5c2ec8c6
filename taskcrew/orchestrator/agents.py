"""Agent runtime: the roster and the agent-to-executor dispatch table."""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Union

from ..core.exceptions import PlanningFailure
from ..core.plan_schema import PlanTask
from .executor import TaskExecutor

DEFAULT_AGENTS: List[str] = [
    "Requirements Analyst",
    "UI/UX Architect",
    "Frontend Coder",
    "Backend Coder",
    "QA & Security Agent",
    "DevOps & Deployment Agent",
]

ExecutorSource = Union[TaskExecutor, Mapping[str, TaskExecutor]]


@dataclass(frozen=True)
class AgentHandle:
    """Binds an agent name to the executor that performs its work."""

    name: str
    executor: TaskExecutor

    def describe(self) -> str:
        return f"{self.name} -> {type(self.executor).__name__}"


def build_dispatch_table(
    tasks: Iterable[PlanTask],
    executors: ExecutorSource,
) -> Dict[str, AgentHandle]:
    """Build the agent name -> handle table for a plan.

    Args:
        tasks: Plan tasks about to be ingested
        executors: One executor shared by every agent, or a mapping from
            agent name to executor

    Returns:
        Dispatch table covering every agent the plan uses

    Raises:
        PlanningFailure: If an agent used by the plan has no executor
    """
    agents_used = sorted({task.agent for task in tasks})

    if isinstance(executors, TaskExecutor):
        return {name: AgentHandle(name, executors) for name in agents_used}

    missing = [name for name in agents_used if name not in executors]
    if missing:
        raise PlanningFailure(
            f"No executor registered for agent(s): {', '.join(missing)}"
        )
    return {name: AgentHandle(name, executors[name]) for name in agents_used}
