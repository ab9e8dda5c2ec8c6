"""taskcrew validate command."""

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from taskcrew.cli.render import snapshot_table
from taskcrew.config.models import TaskCrewConfig
from taskcrew.core.exceptions import PlanningFailure
from taskcrew.core.plan_schema import load_plan
from taskcrew.core.task_graph import TaskGraphStore

console = Console()


@click.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def validate_command(ctx: click.Context, plan_file: Path) -> None:
    """Validate a plan file against the agent roster.

    Checks the plan schema, task id uniqueness, agent names and dependency
    references without running anything.

    \b
    Examples:
        taskcrew validate plan.yaml
    """
    config: TaskCrewConfig = ctx.obj["config"]

    try:
        plan = load_plan(plan_file)
        snapshot = TaskGraphStore(config.orchestrator.agents).ingest_plan(plan.tasks)
    except PlanningFailure as e:
        console.print(f"[red]✗ Invalid plan:[/red] {escape(str(e))}")
        raise click.ClickException(f"Plan rejected: {e}")

    console.print(snapshot_table(snapshot, title=f"Plan: {escape(plan_file.name)}"))
    console.print(f"[green]✓[/green] Plan is valid ({len(snapshot.tasks)} tasks)")
