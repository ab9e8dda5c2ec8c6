"""taskcrew exception classes."""


class TaskCrewError(Exception):
    """Base exception for all taskcrew errors."""

    pass


class PlanningFailure(TaskCrewError):
    """Raised when a plan is malformed and cannot be ingested."""

    pass


class ConfigurationError(TaskCrewError):
    """Raised when configuration is invalid."""

    pass


class ExecutionFailure(TaskCrewError):
    """Raised when a task execution fails."""

    pass


class StateTransitionError(ExecutionFailure):
    """Raised when an invalid state transition is attempted."""

    pass


class OrchestrationTimeout(TaskCrewError):
    """Raised when waiting for a plan to resolve exceeds the caller's timeout."""

    pass
