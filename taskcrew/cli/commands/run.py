"""taskcrew run command."""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from taskcrew.cli.render import print_summary, roster_table, snapshot_table
from taskcrew.config.models import TaskCrewConfig
from taskcrew.core.exceptions import PlanningFailure
from taskcrew.core.plan_schema import load_plan
from taskcrew.core.task_graph import GraphEvent, TaskGraphStore
from taskcrew.orchestrator.executor import CommandExecutor, EchoExecutor, TaskExecutor
from taskcrew.orchestrator.loop import OrchestrationLoop
from taskcrew.orchestrator.resources import (
    DirectoryResourceStore,
    InMemoryResourceStore,
    ResourceStore,
)
from taskcrew.orchestrator.retry_policy import RetryConfig, RetryPolicy
from taskcrew.tracking.activity_logger import ActivityLogger

console = Console()


@click.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--executor",
    "-e",
    "executor_kind",
    type=click.Choice(["echo", "command"]),
    help="Executor to use (overrides configuration)",
)
@click.option(
    "--resources",
    "-r",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the target resources (in-memory if omitted)",
)
@click.option(
    "--max-retries",
    type=click.IntRange(0, 10),
    help="Automatic retries per task (overrides configuration)",
)
@click.option(
    "--interactive/--no-interactive",
    default=False,
    help="Offer manual retry of failed tasks before exiting",
)
@click.pass_context
def run_command(
    ctx: click.Context,
    plan_file: Path,
    executor_kind: Optional[str],
    resources: Optional[Path],
    max_retries: Optional[int],
    interactive: bool,
) -> None:
    """Run a plan until every task is resolved.

    Tasks are dispatched to their agents as soon as their dependencies
    complete. Exits with status 1 if any task failed or never ran.

    \b
    Examples:
        taskcrew run plan.yaml                     # Echo executor, in-memory resources
        taskcrew run plan.yaml -r ./app            # Write results into ./app
        taskcrew run plan.yaml -e command          # Use the configured generator command
        taskcrew run plan.yaml --interactive       # Offer manual retries on failure
    """
    config: TaskCrewConfig = ctx.obj["config"]
    verbose: bool = ctx.obj.get("verbose", False)

    try:
        plan = load_plan(plan_file)
    except PlanningFailure as e:
        console.print(f"[red]Planning failure:[/red] {escape(str(e))}")
        raise click.ClickException(f"Plan rejected: {e}")

    store = TaskGraphStore(config.orchestrator.agents)
    if verbose:
        store.add_listener(_print_transition)

    retries = config.orchestrator.max_auto_retries if max_retries is None else max_retries
    activity_logger = ActivityLogger(
        logs_dir=config.get_log_dir(),
        level=config.logging.level,
        log_format=config.logging.format,
    )

    with OrchestrationLoop(
        store,
        _build_executor(config, executor_kind),
        retry_policy=RetryPolicy(RetryConfig(max_auto_retries=retries)),
        resource_store=_build_resource_store(resources),
        activity_logger=activity_logger,
    ) as loop:
        try:
            loop.submit_plan(plan)
        except PlanningFailure as e:
            console.print(f"[red]Planning failure:[/red] {escape(str(e))}")
            raise click.ClickException(f"Plan rejected: {e}")

        console.print(
            f"[green]✓[/green] Plan accepted: {len(plan.tasks)} task(s)"
            + (f" for goal: {escape(plan.goal)}" if plan.goal else "")
        )

        summary = loop.run()
        while interactive and summary.failed:
            retried = [
                task_id
                for task_id in summary.failed
                if click.confirm(f"Retry failed task {task_id}?", default=True)
                and loop.retry(task_id).applied
            ]
            if not retried:
                break
            console.print(f"[dim]Resuming with {len(retried)} retried task(s)...[/dim]")
            summary = loop.run()

        console.print(snapshot_table(loop.snapshot()))
        if verbose:
            console.print(roster_table(loop.snapshot()))
        print_summary(console, summary)
        console.print(f"[dim]Activity log: {escape(str(activity_logger.main_log_file))}[/dim]")

    if not summary.success:
        ctx.exit(1)


def _build_executor(config: TaskCrewConfig, kind: Optional[str]) -> TaskExecutor:
    kind = kind or config.executor.kind
    if kind == "command":
        return CommandExecutor(
            command=config.executor.command,
            working_dir=config.get_working_dir(),
            timeout=config.executor.get_timeout_seconds(),
        )
    return EchoExecutor()


def _build_resource_store(resources: Optional[Path]) -> ResourceStore:
    if resources is None:
        return InMemoryResourceStore()
    return DirectoryResourceStore(resources)


def _print_transition(event: GraphEvent) -> None:
    if event.kind == "reset":
        console.print("[dim]Task graph reset[/dim]")
        return
    console.print(
        f"[dim]{escape(event.task_id)}: {event.from_state.value} -> {event.to_state.value}"
        + (f" ({escape(event.reason)})" if event.reason else "")
        + "[/dim]"
    )
