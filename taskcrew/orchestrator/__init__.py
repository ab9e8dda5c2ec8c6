"""Orchestration layer for driving a plan's tasks to completion.

This package provides the event-driven loop that dispatches ready tasks to
idle agents, the retry policy applied to failed executions, and the
executor and resource interfaces the loop talks to.
"""

from .agents import DEFAULT_AGENTS, AgentHandle, build_dispatch_table
from .executor import (
    CallableExecutor,
    CommandExecutor,
    EchoExecutor,
    TaskExecutor,
    TaskResult,
)
from .loop import OrchestrationLoop, OrchestrationSummary
from .resources import DirectoryResourceStore, InMemoryResourceStore, ResourceStore
from .retry_policy import (
    MAX_AUTO_RETRIES,
    ManualRetryResult,
    RetryConfig,
    RetryDecision,
    RetryPolicy,
)

__all__ = [
    "OrchestrationLoop",
    "OrchestrationSummary",
    "RetryPolicy",
    "RetryConfig",
    "RetryDecision",
    "ManualRetryResult",
    "MAX_AUTO_RETRIES",
    "TaskExecutor",
    "TaskResult",
    "CallableExecutor",
    "EchoExecutor",
    "CommandExecutor",
    "ResourceStore",
    "InMemoryResourceStore",
    "DirectoryResourceStore",
    "AgentHandle",
    "DEFAULT_AGENTS",
    "build_dispatch_table",
]
