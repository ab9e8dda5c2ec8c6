"""Tests for the task graph store."""

import threading

import pytest

from taskcrew.core import (
    AgentStatus,
    GraphEvent,
    PlanningFailure,
    StateTransitionError,
    TaskGraphStore,
    TaskState,
)
from tests.mocks import make_plan


@pytest.fixture
def two_task_store(store):
    store.ingest_plan(make_plan(("1", "X"), ("2", "Y", ["1"])))
    return store


class TestStoreConstruction:
    def test_empty_roster_rejected(self):
        with pytest.raises(ValueError):
            TaskGraphStore([])

    def test_duplicate_agents_rejected(self):
        with pytest.raises(ValueError):
            TaskGraphStore(["X", "X"])

    def test_roster_agents_start_idle(self, store):
        snapshot = store.snapshot()

        assert list(snapshot.agents) == ["X", "Y", "Z"]
        assert all(a.status == AgentStatus.IDLE for a in snapshot.agents.values())
        assert snapshot.tasks == {}


class TestIngestPlan:
    """Test plan ingestion."""

    def test_ingest_creates_queued_tasks(self, store):
        snapshot = store.ingest_plan(make_plan(("1", "X"), ("1.1", "X"), ("2", "Y", ["1"])))

        assert snapshot.generation == 1
        assert [t.id for t in snapshot.all_tasks()] == ["1", "1.1", "2"]
        assert all(t.state == TaskState.QUEUED for t in snapshot.all_tasks())
        assert all(t.retry_count == 0 for t in snapshot.all_tasks())
        assert snapshot.agents["X"].tasks == ["1", "1.1"]
        assert snapshot.agents["Y"].tasks == ["2"]
        assert snapshot.agents["Z"].tasks == []

    def test_ingest_replaces_previous_graph(self, two_task_store):
        two_task_store.ingest_plan(make_plan(("a", "Z")))
        snapshot = two_task_store.snapshot()

        assert list(snapshot.tasks) == ["a"]
        assert snapshot.agents["X"].tasks == []
        assert snapshot.generation == 2

    def test_rejected_plan_keeps_current_graph(self, two_task_store):
        with pytest.raises(PlanningFailure):
            two_task_store.ingest_plan(make_plan(("3", "X", ["missing"])))

        snapshot = two_task_store.snapshot()
        assert sorted(snapshot.tasks) == ["1", "2"]
        assert snapshot.generation == 1

    def test_rejected_first_plan_leaves_no_tasks(self, store):
        with pytest.raises(PlanningFailure):
            store.ingest_plan(make_plan(("1", "X"), ("2", "X", ["3"])))

        assert store.snapshot().tasks == {}
        assert store.generation == 0

    def test_unknown_agent_rejected(self, store):
        with pytest.raises(PlanningFailure):
            store.ingest_plan(make_plan(("1", "W")))

    def test_reset_notifies_listeners(self, store):
        events = []
        store.add_listener(events.append)

        store.ingest_plan(make_plan(("1", "X")))

        assert events == [GraphEvent(kind="reset", generation=1)]

    def test_clear(self, two_task_store):
        two_task_store.clear()

        assert two_task_store.snapshot().tasks == {}
        assert not two_task_store.has_task("1")


class TestSetTaskState:
    """Test the mutation primitive."""

    def test_execute_marks_agent_working(self, two_task_store):
        task = two_task_store.set_task_state("1", TaskState.EXECUTING)

        assert task.state == TaskState.EXECUTING
        agent = two_task_store.snapshot().agents["X"]
        assert agent.status == AgentStatus.WORKING
        assert agent.current_task == "1"

    def test_leaving_executing_marks_agent_idle(self, two_task_store):
        two_task_store.set_task_state("1", TaskState.EXECUTING)
        two_task_store.set_task_state("1", TaskState.COMPLETED)

        agent = two_task_store.snapshot().agents["X"]
        assert agent.status == AgentStatus.IDLE
        assert agent.current_task is None

    def test_execute_requires_completed_dependencies(self, two_task_store):
        with pytest.raises(StateTransitionError, match="dependencies not completed"):
            two_task_store.set_task_state("2", TaskState.EXECUTING)

        assert two_task_store.get_task("2").state == TaskState.QUEUED

    def test_execute_requires_idle_agent(self, store):
        store.ingest_plan(make_plan(("1", "X"), ("2", "X")))
        store.set_task_state("1", TaskState.EXECUTING)

        with pytest.raises(StateTransitionError, match="already working"):
            store.set_task_state("2", TaskState.EXECUTING)

    def test_invalid_transition(self, two_task_store):
        with pytest.raises(StateTransitionError, match="queued -> completed"):
            two_task_store.set_task_state("1", TaskState.COMPLETED)

    def test_retry_edges_rejected(self, two_task_store):
        two_task_store.set_task_state("1", TaskState.EXECUTING)
        with pytest.raises(StateTransitionError):
            two_task_store.set_task_state("1", TaskState.QUEUED)

        two_task_store.set_task_state("1", TaskState.FAILED, reason="boom")
        with pytest.raises(StateTransitionError):
            two_task_store.set_task_state("1", TaskState.QUEUED)

    def test_failed_records_error(self, two_task_store):
        two_task_store.set_task_state("1", TaskState.EXECUTING)
        task = two_task_store.set_task_state("1", TaskState.FAILED, reason="boom")

        assert task.error_message == "boom"

    def test_unknown_task(self, two_task_store):
        with pytest.raises(ValueError):
            two_task_store.set_task_state("9", TaskState.EXECUTING)

    def test_history_and_listener_events(self, two_task_store):
        events = []
        two_task_store.add_listener(events.append)

        two_task_store.set_task_state("1", TaskState.EXECUTING, reason="go")
        two_task_store.set_task_state("1", TaskState.COMPLETED)

        history = two_task_store.get_task("1").history
        assert [(h.from_state, h.to_state) for h in history] == [
            (TaskState.QUEUED, TaskState.EXECUTING),
            (TaskState.EXECUTING, TaskState.COMPLETED),
        ]
        assert history[0].reason == "go"
        assert [e.to_state for e in events] == [TaskState.EXECUTING, TaskState.COMPLETED]
        assert all(e.kind == "transition" and e.task_id == "1" for e in events)

    def test_failing_listener_does_not_break_mutation(self, two_task_store, capsys):
        def broken(event):
            raise RuntimeError("observer crashed")

        two_task_store.add_listener(broken)
        two_task_store.set_task_state("1", TaskState.EXECUTING)

        assert two_task_store.get_task("1").state == TaskState.EXECUTING
        assert "observer crashed" in capsys.readouterr().err

    def test_remove_listener(self, two_task_store):
        events = []
        two_task_store.add_listener(events.append)
        two_task_store.remove_listener(events.append)

        two_task_store.set_task_state("1", TaskState.EXECUTING)

        assert events == []


class TestRetryTransitions:
    """Test the retry-only transitions."""

    def test_requeue_for_retry_increments_count(self, two_task_store):
        two_task_store.set_task_state("1", TaskState.EXECUTING)

        task = two_task_store.requeue_for_retry("1", reason="flaky")

        assert task.state == TaskState.QUEUED
        assert task.retry_count == 1
        assert two_task_store.snapshot().agents["X"].status == AgentStatus.IDLE

    def test_requeue_requires_executing(self, two_task_store):
        with pytest.raises(StateTransitionError):
            two_task_store.requeue_for_retry("1")

    def test_manual_reset_clears_retry_count(self, two_task_store):
        two_task_store.set_task_state("1", TaskState.EXECUTING)
        two_task_store.requeue_for_retry("1")
        two_task_store.set_task_state("1", TaskState.EXECUTING)
        two_task_store.set_task_state("1", TaskState.FAILED, reason="boom")

        task = two_task_store.reset_for_manual_retry("1")

        assert task.state == TaskState.QUEUED
        assert task.retry_count == 0
        assert task.error_message is None

    def test_manual_reset_requires_failed(self, two_task_store):
        with pytest.raises(StateTransitionError):
            two_task_store.reset_for_manual_retry("1")


class TestSnapshot:
    """Test snapshot isolation and projections."""

    def test_snapshot_is_a_copy(self, two_task_store):
        snapshot = two_task_store.snapshot()
        snapshot.tasks["1"].state = TaskState.COMPLETED
        snapshot.agents["X"].tasks.append("bogus")

        fresh = two_task_store.snapshot()
        assert fresh.tasks["1"].state == TaskState.QUEUED
        assert fresh.agents["X"].tasks == ["1"]

    def test_get_task_is_a_copy(self, two_task_store):
        task = two_task_store.get_task("1")
        task.dependencies.append("2")

        assert two_task_store.get_task("1").dependencies == []

    def test_tasks_by_agent_sorted(self, store):
        store.ingest_plan(make_plan(("10", "X"), ("2", "X"), ("1.1", "Y")))

        grouped = store.snapshot().tasks_by_agent()

        assert [t.id for t in grouped["X"]] == ["2", "10"]
        assert [t.id for t in grouped["Y"]] == ["1.1"]
        assert grouped["Z"] == []

    def test_count_by_state(self, two_task_store):
        two_task_store.set_task_state("1", TaskState.EXECUTING)

        counts = two_task_store.snapshot().count_by_state()

        assert counts[TaskState.EXECUTING] == 1
        assert counts[TaskState.QUEUED] == 1
        assert counts[TaskState.FAILED] == 0

    def test_concurrent_dispatch_admits_one_task_per_agent(self, store):
        store.ingest_plan(make_plan(*[(str(i), "X") for i in range(1, 9)]))
        admitted = []
        barrier = threading.Barrier(8)

        def attempt(task_id):
            barrier.wait()
            try:
                store.set_task_state(task_id, TaskState.EXECUTING)
                admitted.append(task_id)
            except StateTransitionError:
                pass

        threads = [threading.Thread(target=attempt, args=(str(i),)) for i in range(1, 9)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(admitted) == 1
        assert store.snapshot().agents["X"].current_task == admitted[0]
