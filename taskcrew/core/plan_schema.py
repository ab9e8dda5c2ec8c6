"""Plan schema and validation.

Plans come from the external planner as a list of task objects. They are
validated structurally here, before anything touches the task graph.
"""

import re
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import PlanningFailure

_TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9_-]+)*$")


class PlanTask(BaseModel):
    """A single task as emitted by the planner."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Hierarchical task identifier, e.g. '1.2'")
    description: str = Field(..., description="Human-readable unit of work")
    target_resource: str = Field(
        ...,
        alias="targetResource",
        description="Path of the resource the task creates or modifies",
    )
    agent: str = Field(..., description="Name of the owning agent")
    dependencies: List[str] = Field(
        default_factory=list, description="Ids of tasks that must complete first"
    )

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str:
        """Validate task ID format."""
        # Planners frequently emit numeric ids
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str):
            raise ValueError("Task ID must be a string")
        v = v.strip()
        if not _TASK_ID_PATTERN.match(v):
            raise ValueError(
                "Task ID must be dot-separated segments of letters, digits, "
                "hyphens or underscores (e.g. '1', '1.2')"
            )
        return v

    @field_validator("description", "target_resource", "agent")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip()

    @field_validator("dependencies", mode="before")
    @classmethod
    def validate_dependencies(cls, v: Any) -> List[str]:
        """Normalize dependency ids and drop duplicates."""
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            raise ValueError("dependencies must be a list of task ids")

        deps: List[str] = []
        for dep in v:
            dep = str(dep).strip()
            if not dep:
                raise ValueError("Dependency ids cannot be empty")
            if dep not in deps:
                deps.append(dep)
        return deps


class Plan(BaseModel):
    """A plan document: an optional goal plus its tasks."""

    goal: Optional[str] = Field(None, description="Goal the plan was produced for")
    tasks: List[PlanTask] = Field(..., description="Tasks of the plan")


def validate_plan(tasks: Iterable[PlanTask], agents: Iterable[str]) -> List[PlanTask]:
    """Check plan-level consistency against an agent roster.

    Args:
        tasks: Parsed plan tasks
        agents: Names of the agents in the roster

    Returns:
        The tasks as a list

    Raises:
        PlanningFailure: On id collision, unknown agent, dangling or
            self-referencing dependency, or an empty plan
    """
    tasks = list(tasks)
    roster = set(agents)

    if not tasks:
        raise PlanningFailure("Plan contains no tasks")

    seen = set()
    for task in tasks:
        if task.id in seen:
            raise PlanningFailure(f"Duplicate task id '{task.id}'")
        seen.add(task.id)

    for task in tasks:
        if task.agent not in roster:
            raise PlanningFailure(
                f"Task '{task.id}' is assigned to unknown agent '{task.agent}'. "
                f"Known agents: {', '.join(sorted(roster))}"
            )
        for dep in task.dependencies:
            if dep == task.id:
                raise PlanningFailure(f"Task '{task.id}' depends on itself")
            if dep not in seen:
                raise PlanningFailure(
                    f"Task '{task.id}' depends on '{dep}', which is not in the plan"
                )

    return tasks


def parse_plan(data: Any) -> Plan:
    """Validate raw planner output into a Plan.

    Accepts either a list of task objects or a mapping with a ``tasks`` key.

    Raises:
        PlanningFailure: If the data does not match the plan schema
    """
    if isinstance(data, list):
        data = {"tasks": data}
    if not isinstance(data, dict):
        raise PlanningFailure(
            f"Plan must be a list of tasks or a mapping, got {type(data).__name__}"
        )

    try:
        return Plan(**data)
    except ValidationError as e:
        raise PlanningFailure(f"Invalid plan: {e}") from e


def load_plan(file_path: Union[str, Path]) -> Plan:
    """Load a plan from a YAML or JSON file."""
    file_path = Path(file_path)

    if not file_path.exists():
        raise PlanningFailure(f"Plan file not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PlanningFailure(f"Invalid YAML in {file_path}: {e}") from e

    if data is None:
        raise PlanningFailure(f"Plan file is empty: {file_path}")

    return parse_plan(data)


def save_plan(plan: Plan, file_path: Union[str, Path]) -> None:
    """Save a plan to a YAML file using the planner's wire field names."""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    plan_dict = plan.model_dump(exclude_none=True, by_alias=True, mode="json")

    with open(file_path, "w", encoding="utf-8") as f:
        yaml.dump(plan_dict, f, default_flow_style=False, sort_keys=False, indent=2)
