"""Rich rendering of graph snapshots and run summaries."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from taskcrew.core.task_graph import GraphSnapshot
from taskcrew.core.task_state import AgentStatus, TaskState
from taskcrew.orchestrator.loop import OrchestrationSummary

STATE_STYLES = {
    TaskState.QUEUED: "[blue]queued[/blue]",
    TaskState.BLOCKED: "[magenta]blocked[/magenta]",
    TaskState.EXECUTING: "[yellow]executing[/yellow]",
    TaskState.COMPLETED: "[green]completed[/green]",
    TaskState.FAILED: "[red]failed[/red]",
}


def snapshot_table(snapshot: GraphSnapshot, title: str = "Tasks by Agent") -> Table:
    """Build a table of all tasks grouped by owning agent."""
    table = Table(title=title)
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("ID", style="bold", no_wrap=True)
    table.add_column("State")
    table.add_column("Retries", justify="right")
    table.add_column("Resource", style="green")
    table.add_column("Description", style="white")

    for agent_name, tasks in snapshot.tasks_by_agent().items():
        for index, task in enumerate(tasks):
            description = task.description
            if len(description) > 50:
                description = description[:47] + "..."
            table.add_row(
                escape(agent_name) if index == 0 else "",
                escape(task.id),
                STATE_STYLES[task.state],
                str(task.retry_count),
                escape(task.target_resource),
                escape(description),
            )
    return table


def roster_table(snapshot: GraphSnapshot) -> Table:
    """Build a table of the agent roster and what each agent is doing."""
    table = Table(title="Agent Team")
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Tasks", justify="right")
    table.add_column("Current Task")

    for agent in snapshot.agents.values():
        status = (
            "[yellow]working[/yellow]"
            if agent.status == AgentStatus.WORKING
            else "[dim]idle[/dim]"
        )
        table.add_row(
            escape(agent.name), status, str(len(agent.tasks)), escape(agent.current_task or "-")
        )
    return table


def print_summary(console: Console, summary: OrchestrationSummary) -> None:
    """Print the terminal summary of a run."""
    lines = [summary.message, f"[dim]{summary.passes} pass(es) in {summary.duration_seconds:.1f}s[/dim]"]
    lines.extend(escape(detail) for detail in summary.details)
    console.print(
        Panel(
            "\n".join(lines),
            title="Plan resolved" if summary.success else "Plan finished with failures",
            border_style="green" if summary.success else "red",
        )
    )
