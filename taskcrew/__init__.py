"""
taskcrew: Task orchestration for agentic coding assistants

Turns a planned goal into interdependent tasks, assigns them to a fixed roster
of specialized agents, and drives them to completion while respecting
dependency order, per-agent concurrency and partial-failure containment.
"""

__version__ = "0.1.0"

from taskcrew.core.exceptions import TaskCrewError

__all__ = ["TaskCrewError", "__version__"]
