"""Mock utilities for testing."""

from .executor_mocks import InvariantCheckingExecutor, ScriptedExecutor, make_plan

__all__ = ["InvariantCheckingExecutor", "ScriptedExecutor", "make_plan"]
