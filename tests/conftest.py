"""Shared pytest fixtures for taskcrew tests."""

from pathlib import Path
from typing import List

import pytest

from taskcrew.core.task_graph import TaskGraphStore
from taskcrew.orchestrator.resources import InMemoryResourceStore
from taskcrew.tracking.activity_logger import ActivityLogger

ROSTER = ["X", "Y", "Z"]


@pytest.fixture
def roster() -> List[str]:
    """Small agent roster used across tests."""
    return list(ROSTER)


@pytest.fixture
def store(roster: List[str]) -> TaskGraphStore:
    """Empty graph store over the test roster."""
    return TaskGraphStore(roster)


@pytest.fixture
def resource_store() -> InMemoryResourceStore:
    return InMemoryResourceStore()


@pytest.fixture
def activity_logger(tmp_path: Path) -> ActivityLogger:
    """Activity logger writing into a temporary directory."""
    return ActivityLogger(session_id="test-session", logs_dir=tmp_path / "logs")
