"""Main CLI entry point for taskcrew."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from taskcrew.cli.commands.agents import agents_command
from taskcrew.cli.commands.run import run_command
from taskcrew.cli.commands.validate import validate_command
from taskcrew.config.loader import load_config
from taskcrew.core.exceptions import ConfigurationError, TaskCrewError

console = Console()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config: Optional[Path]) -> None:
    """taskcrew: Task orchestration for an AI agent team.

    Runs a plan of interdependent tasks across a fixed roster of agents,
    respecting dependency order, one task per agent at a time, and bounded
    automatic retry.

    \b
    Examples:
        taskcrew agents             # Show the agent roster
        taskcrew validate plan.yaml # Check a plan without running it
        taskcrew run plan.yaml      # Run a plan to completion
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    try:
        ctx.obj["config"] = load_config(project_config_path=config)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if verbose:
        console.print("[dim]taskcrew starting with verbose output enabled[/dim]")


cli.add_command(agents_command, name="agents")
cli.add_command(validate_command, name="validate")
cli.add_command(run_command, name="run")


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except TaskCrewError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
