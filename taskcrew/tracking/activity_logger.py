"""Activity logging for orchestration runs."""

import json
import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events that can be logged."""

    PLAN_INGESTED = "plan_ingested"
    PLAN_REJECTED = "plan_rejected"
    TASK_DISPATCHED = "task_dispatched"
    TASK_COMPLETED = "task_completed"
    TASK_RETRY = "task_retry"
    TASK_FAILED = "task_failed"
    TASK_BLOCKED = "task_blocked"
    TASK_UNBLOCKED = "task_unblocked"
    MANUAL_RETRY = "manual_retry"
    PLAN_RESOLVED = "plan_resolved"
    ERROR = "error"
    INFO = "info"
    DEBUG = "debug"


# Severity of each event type, compared against the configured level
_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}

_EVENT_LEVELS: Dict[EventType, str] = {
    EventType.DEBUG: "DEBUG",
    EventType.TASK_RETRY: "WARN",
    EventType.TASK_BLOCKED: "WARN",
    EventType.PLAN_REJECTED: "ERROR",
    EventType.TASK_FAILED: "ERROR",
    EventType.ERROR: "ERROR",
}


class ActivityEvent(BaseModel):
    """Activity event model."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: EventType = Field(..., description="Type of event")
    level: str = Field(default="INFO", description="Event severity")
    session_id: str = Field(..., description="Session identifier")
    task_id: Optional[str] = Field(None, description="Task identifier")
    agent: Optional[str] = Field(None, description="Agent involved in the event")
    message: str = Field(..., description="Event message")
    data: Dict[str, Any] = Field(
        default_factory=dict, description="Additional event data"
    )
    duration_ms: Optional[int] = Field(None, description="Duration in milliseconds")


class ActivityLogger:
    """Thread-safe activity logger for orchestration runs."""

    def __init__(
        self,
        session_id: Optional[str] = None,
        logs_dir: Optional[Path] = None,
        level: str = "INFO",
        log_format: str = "json",
    ):
        """Initialize activity logger.

        Args:
            session_id: Current session identifier (generated if None)
            logs_dir: Directory to store log files (default: .taskcrew/logs)
            level: Minimum level written (DEBUG, INFO, WARN, ERROR)
            log_format: "json" for JSON lines, "text" for readable lines
        """
        level = level.upper()
        if level not in _LEVELS:
            raise ValueError(f"level must be one of: {', '.join(_LEVELS)}")
        if log_format not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")

        self.session_id = session_id or _generate_session_id()
        self.logs_dir = Path(logs_dir) if logs_dir else Path.cwd() / ".taskcrew" / "logs"
        self.session_log_dir = self.logs_dir / "sessions" / self.session_id
        self.level = level
        self.log_format = log_format

        self.session_log_dir.mkdir(parents=True, exist_ok=True)

        suffix = "jsonl" if log_format == "json" else "log"
        self.main_log_file = self.session_log_dir / f"activity.{suffix}"

        # Thread lock for safe concurrent logging
        self._lock = threading.Lock()

    def log_event(
        self,
        event_type: EventType,
        message: str,
        task_id: Optional[str] = None,
        agent: Optional[str] = None,
        duration_ms: Optional[int] = None,
        **kwargs,
    ) -> Optional[ActivityEvent]:
        """Log an activity event.

        Args:
            event_type: Type of event
            message: Event message
            task_id: Optional task identifier
            agent: Optional agent name
            duration_ms: Optional duration
            **kwargs: Additional event data

        Returns:
            The written event, or None if it was below the configured level
        """
        level = _EVENT_LEVELS.get(event_type, "INFO")
        if _LEVELS[level] < _LEVELS[self.level]:
            return None

        event = ActivityEvent(
            event_type=event_type,
            level=level,
            session_id=self.session_id,
            task_id=task_id,
            agent=agent,
            message=message,
            data=kwargs,
            duration_ms=duration_ms,
        )
        self._write_event(event)
        return event

    def log_plan_ingested(self, task_count: int, goal: Optional[str] = None) -> None:
        self.log_event(
            EventType.PLAN_INGESTED,
            f"Plan accepted with {task_count} task(s)",
            task_count=task_count,
            goal=goal,
        )

    def log_plan_rejected(self, error: str) -> None:
        self.log_event(EventType.PLAN_REJECTED, f"Plan rejected: {error}", error=error)

    def log_task_dispatched(self, task_id: str, agent: str, description: str) -> None:
        self.log_event(
            EventType.TASK_DISPATCHED,
            f"Task dispatched: {description}",
            task_id=task_id,
            agent=agent,
        )

    def log_task_completed(self, task_id: str, agent: str, duration_ms: int) -> None:
        self.log_event(
            EventType.TASK_COMPLETED,
            "Task completed successfully",
            task_id=task_id,
            agent=agent,
            duration_ms=duration_ms,
        )

    def log_task_retry(self, task_id: str, agent: str, message: str, retry_count: int) -> None:
        self.log_event(
            EventType.TASK_RETRY,
            message,
            task_id=task_id,
            agent=agent,
            retry_count=retry_count,
        )

    def log_task_failed(self, task_id: str, agent: str, error: str, duration_ms: int) -> None:
        """Log terminal task failure.

        Args:
            task_id: Task identifier
            agent: Owning agent
            error: Error message
            duration_ms: Duration of the last attempt in milliseconds
        """
        self.log_event(
            EventType.TASK_FAILED,
            f"Task failed: {error}",
            task_id=task_id,
            agent=agent,
            duration_ms=duration_ms,
            error=error,
        )

    def log_task_blocked(self, task_id: str, blocked_by: List[str]) -> None:
        self.log_event(
            EventType.TASK_BLOCKED,
            f"Task blocked by {', '.join(blocked_by)}",
            task_id=task_id,
            blocked_by=blocked_by,
        )

    def log_task_unblocked(self, task_id: str) -> None:
        self.log_event(EventType.TASK_UNBLOCKED, "Task unblocked", task_id=task_id)

    def log_manual_retry(self, task_id: str, applied: bool, message: str) -> None:
        self.log_event(
            EventType.MANUAL_RETRY, message, task_id=task_id, applied=applied
        )

    def log_plan_resolved(self, success: bool, stats: Dict[str, Any]) -> None:
        self.log_event(
            EventType.PLAN_RESOLVED,
            "Plan resolved successfully" if success else "Plan resolved with failures",
            success=success,
            **stats,
        )

    def log_error(self, error: str, task_id: Optional[str] = None, **kwargs) -> None:
        self.log_event(EventType.ERROR, error, task_id=task_id, error=error, **kwargs)

    def log_info(self, message: str, task_id: Optional[str] = None, **kwargs) -> None:
        self.log_event(EventType.INFO, message, task_id=task_id, **kwargs)

    def log_debug(self, message: str, task_id: Optional[str] = None, **kwargs) -> None:
        self.log_event(EventType.DEBUG, message, task_id=task_id, **kwargs)

    def get_events(self) -> List[ActivityEvent]:
        """Read back all events of this session (JSON format only)."""
        if self.log_format != "json" or not self.main_log_file.exists():
            return []

        events = []
        with self._lock:
            with open(self.main_log_file, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        events.append(ActivityEvent(**json.loads(line)))
        return events

    def get_task_events(self, task_id: str) -> List[ActivityEvent]:
        """Get all events for a specific task.

        Args:
            task_id: Task identifier

        Returns:
            List of events for the task
        """
        return [event for event in self.get_events() if event.task_id == task_id]

    def _write_event(self, event: ActivityEvent) -> None:
        """Append an event to the session log in a thread-safe manner."""
        with self._lock:
            with open(self.main_log_file, "a", encoding="utf-8") as f:
                if self.log_format == "json":
                    json.dump(
                        event.model_dump(mode="json"),
                        f,
                        default=str,
                        separators=(",", ":"),
                    )
                else:
                    f.write(_format_text(event))
                f.write("\n")


def _format_text(event: ActivityEvent) -> str:
    parts = [
        event.timestamp.strftime("%H:%M:%S"),
        f"{event.level:<5}",
        event.agent or "Orchestrator",
    ]
    if event.task_id:
        parts.append(f"[{event.task_id}]")
    parts.append(event.message)
    return " ".join(parts)


def _generate_session_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"{timestamp}-{uuid.uuid4().hex[:8]}"
