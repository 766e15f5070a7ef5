"""Options and request building shared by deploy and undeploy."""

import dataclasses
from pathlib import Path
from typing import Optional, Sequence

import click

from atar.config import Settings, collect_variables
from atar.exceptions import ConfigurationError
from atar.models import DeploymentRequest

# Free-form `--<name> <value>` pairs land in ctx.args
VARIABLE_CONTEXT_SETTINGS = {
    "ignore_unknown_options": True,
    "allow_extra_args": True,
}


def terraform_options(func):
    """Attach --terraform, --var, --var-file, --log-dir and --debug to a command."""
    func = click.option(
        "--debug",
        is_flag=True,
        help="Show Terraform commands and debug output",
    )(func)
    func = click.option(
        "--log-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Write a log file under this directory (or set ATAR_LOG_DIR)",
    )(func)
    func = click.option(
        "--var-file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="YAML/JSON mapping of Terraform variables",
    )(func)
    func = click.option(
        "--var",
        "assignments",
        multiple=True,
        metavar="NAME=VALUE",
        help="Terraform variable (repeatable)",
    )(func)
    func = click.option(
        "--terraform",
        "terraform_file",
        required=True,
        type=click.Path(exists=True, path_type=Path),
        help="Path to Terraform `main.tf` file (or its directory)",
    )(func)
    return func


def build_request(
    terraform_file: Path,
    assignments: Sequence[str],
    var_file: Optional[Path],
    extra_args: Sequence[str],
) -> DeploymentRequest:
    """
    Build the immutable request from CLI input.

    Raises:
        click.UsageError: On malformed variables
    """
    try:
        variables = collect_variables(var_file, assignments, extra_args)
    except ConfigurationError as e:
        raise click.UsageError(e.format_message())
    return DeploymentRequest(terraform_file=terraform_file, variables=variables)


def resolve_settings(
    ctx: click.Context, log_dir: Optional[Path], debug: bool
) -> Settings:
    """Group settings with per-command overrides applied."""
    settings: Settings = ctx.obj or Settings.from_env()
    if log_dir is not None:
        settings = dataclasses.replace(settings, log_dir=log_dir)
    if debug:
        settings = dataclasses.replace(settings, debug=True)
    return settings
