"""taskcrew agents command."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from taskcrew.config.models import TaskCrewConfig

console = Console()


@click.command()
@click.pass_context
def agents_command(ctx: click.Context) -> None:
    """List the configured agent roster."""
    config: TaskCrewConfig = ctx.obj["config"]

    table = Table(title="Agent Team")
    table.add_column("#", style="dim cyan", no_wrap=True)
    table.add_column("Agent", style="cyan")

    for index, name in enumerate(config.orchestrator.agents, start=1):
        table.add_row(str(index), escape(name))

    console.print(table)
    console.print(
        f"[dim]Executor: {config.executor.kind}, "
        f"max automatic retries: {config.orchestrator.max_auto_retries}[/dim]"
    )
