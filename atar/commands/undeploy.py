"""
Undeploy Command

Destroy a Terraform deployment that was left behind.
"""

from pathlib import Path
from typing import Optional

import click

from atar.base import BaseCommand
from atar.commands.common import (
    VARIABLE_CONTEXT_SETTINGS,
    build_request,
    resolve_settings,
    terraform_options,
)
from atar.config import Settings
from atar.constants import ERROR_DESTROY_MANUAL
from atar.exceptions import DestroyError, SpawnError
from atar.models import DeploymentRequest, ExitCode
from atar.reporter import OutputReporter
from atar.terraform_utils import TerraformManager


class UndeployCommand(BaseCommand):
    """Destroy an existing deployment once, without waiting."""

    def __init__(
        self,
        request: DeploymentRequest,
        settings: Optional[Settings] = None,
        verbose: bool = False,
    ):
        super().__init__(settings=settings, verbose=verbose)
        self.request = request

    def execute(self) -> None:
        """Execute undeploy command."""
        logger = self.init_logger(self.request.working_dir.name, "undeploy")
        code = ExitCode.SUCCESS
        with logger:
            self.show_header(
                title="Destroy Deployment",
                details={"Configuration": self.request.terraform_file},
            )
            OutputReporter(console=self.console).print_variables(self.request)

            client = TerraformManager(self.settings.terraform_bin, logger=logger)
            logger.step("Destroying resources")
            try:
                client.check_installed()
                client.destroy(self.request)
            except SpawnError as e:
                logger.log_error(e.message, e.context)
                code = ExitCode.ENGINE_UNAVAILABLE
            except DestroyError as e:
                logger.log_error(e.message, e.context)
                logger.log_error(
                    "Manual cleanup required",
                    ERROR_DESTROY_MANUAL.format(path=self.request.terraform_file),
                )
                code = ExitCode.DESTROY_FAILED
            else:
                logger.success("Resources destroyed")

        self.print_log_location()
        self.exit_with(code)


@click.command(name="undeploy", context_settings=VARIABLE_CONTEXT_SETTINGS)
@terraform_options
@click.pass_context
def undeploy(
    ctx: click.Context,
    terraform_file: Path,
    assignments: tuple,
    var_file: Optional[Path],
    log_dir: Optional[Path],
    debug: bool,
):
    """
    Destroy an existing Terraform deployment

    Pass the same variables that were used for deploy.

    \b
    Variables named like an atar option
    (terraform, var, var-file, log-dir, debug)
    must be passed as --var NAME=VALUE.

    \b
    Examples:
        atar undeploy --terraform infra/main.tf --region us-east-1
    """
    request = build_request(terraform_file, assignments, var_file, ctx.args)

    settings = resolve_settings(ctx, log_dir, debug)

    cmd = UndeployCommand(request, settings=settings)
    cmd.run()
