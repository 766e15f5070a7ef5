#!/usr/bin/env python3
"""atar CLI - Main entry point"""

import dataclasses
import functools
import os
import sys

from rich.console import Console

# Rich-Click: CLI help with colors
import rich_click as click
from click.exceptions import ClickException

from atar import __version__
from atar.commands.deploy import deploy
from atar.commands.undeploy import undeploy
from atar.config import Settings

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = False
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.MAX_WIDTH = 100

# COMMANDS / OPTIONS
click.rich_click.STYLE_COMMAND = "bold cyan"
click.rich_click.STYLE_OPTION = "bold magenta"
click.rich_click.STYLE_SWITCH = "bold green"
click.rich_click.STYLE_ARGUMENT = "bold yellow"

# HEADERS
click.rich_click.STYLE_HEADER_TEXT = "bold cyan"
click.rich_click.STYLE_USAGE = "bold yellow"
click.rich_click.STYLE_USAGE_COMMAND = "bold cyan"

# METAVARS / REQUIRED / DEFAULTS
click.rich_click.STYLE_METAVAR = "bold yellow"
click.rich_click.STYLE_REQUIRED_SHORT = "bold red"
click.rich_click.STYLE_REQUIRED_LONG = "bold red"
click.rich_click.STYLE_OPTION_DEFAULT = "dim cyan"

# PANEL BORDERS
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "cyan"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "cyan"

console = Console()

BANNER = """
[bold cyan]╔═══════════════════════════════════════════════════════════╗[/bold cyan]
[bold cyan]║[/bold cyan]  [bold white]atar[/bold white] - ephemeral Terraform deployments                 [bold cyan]║[/bold cyan]
[bold cyan]╚═══════════════════════════════════════════════════════════╝[/bold cyan]
"""


def handle_cli_errors(func):
    """Decorator to handle CLI errors gracefully."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ClickException as e:
            e.show()
            sys.exit(e.exit_code)
        except KeyboardInterrupt:
            console.print("\n\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            sys.exit(130)
        except Exception as e:
            console.print(f"\n[bold red]✗ Unexpected error:[/bold red] {e}\n")
            if os.environ.get("DEBUG") or os.environ.get("VERBOSE"):
                import traceback

                console.print("[dim]Traceback:[/dim]")
                traceback.print_exc()
            sys.exit(1)

    return wrapper


@click.group(cls=click.RichGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="atar")
@click.option("--debug", is_flag=True, help="Show Terraform commands and debug output")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """
    atar - Throwaway infrastructure that cleans up after itself.

    \b
    Quick Start:
      atar deploy --terraform infra/main.tf --region us-east-1
      # ... use the resources, then press Ctrl+C to destroy them

    \b
    Left-over resources:
      atar undeploy --terraform infra/main.tf --region us-east-1
    """
    settings = Settings.from_env()
    if debug:
        settings = dataclasses.replace(settings, debug=True)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        console.print(BANNER)
        console.print("[yellow]Run 'atar --help' for usage[/yellow]\n")


cli.add_command(deploy)
cli.add_command(undeploy)


@handle_cli_errors
def main():
    """Main entry point with error handling."""
    cli()


if __name__ == "__main__":
    main()
