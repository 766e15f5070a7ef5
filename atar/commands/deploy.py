"""
Deploy Command

Apply a Terraform configuration, keep it alive while the process runs,
and destroy it on exit.
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
from atar.exceptions import OutputError
from atar.lifecycle import LifecycleController
from atar.models import DeploymentOutcome, DeploymentRequest, ExitCode
from atar.reporter import OutputReporter
from atar.signals import SignalInterceptor
from atar.terraform_utils import TerraformManager


class DeployCommand(BaseCommand):
    """Ephemeral deployment: apply, wait, destroy."""

    def __init__(
        self,
        request: DeploymentRequest,
        settings: Optional[Settings] = None,
        verbose: bool = False,
        hold_seconds: Optional[float] = None,
    ):
        super().__init__(settings=settings, verbose=verbose)
        self.request = request
        self.hold_seconds = hold_seconds

    def execute(self) -> None:
        """Execute deploy command."""
        logger = self.init_logger(self.request.working_dir.name, "deploy")
        with logger:
            details = {"Configuration": self.request.terraform_file}
            if self.hold_seconds is not None:
                details["Duration"] = f"{self.hold_seconds:g}s"
            self.show_header(
                title="Ephemeral Deployment",
                subtitle="Resources live until Ctrl+C, SIGTERM or SIGHUP",
                details=details,
            )

            reporter = OutputReporter(console=self.console)
            reporter.print_variables(self.request)

            controller = LifecycleController(
                TerraformManager(self.settings.terraform_bin, logger=logger),
                interceptor=SignalInterceptor(logger=logger),
                reporter=reporter,
                logger=logger,
                hold_seconds=self.hold_seconds,
            )
            outcome = controller.run(self.request)
            self._summarize(outcome)

        self.print_log_location()
        self.exit_with(outcome.exit_code)

    def _summarize(self, outcome: DeploymentOutcome) -> None:
        self.console.print()
        code = outcome.exit_code
        if code == ExitCode.SUCCESS:
            self.print_success("Deployment destroyed cleanly")
        elif code == ExitCode.INTERRUPTED:
            self.print_warning("Interrupted before apply, nothing to clean up")
        elif code == ExitCode.APPLY_FAILED:
            if isinstance(outcome.apply_error, OutputError):
                self.print_error("Apply succeeded but its outputs could not be read")
            else:
                self.print_error("Apply failed")
            if outcome.destroy_attempted:
                self.print_dim("Cleanup of partially created resources succeeded")
        elif code == ExitCode.ENGINE_UNAVAILABLE:
            self.print_error("Terraform could not be executed, nothing was created")
        elif code == ExitCode.DESTROY_FAILED:
            self.print_error("Destroy failed: resources may still exist")


@click.command(name="deploy", context_settings=VARIABLE_CONTEXT_SETTINGS)
@terraform_options
@click.option(
    "--duration",
    type=click.FloatRange(min=0),
    default=None,
    metavar="SECONDS",
    help="Destroy automatically after SECONDS instead of waiting for a signal",
)
@click.pass_context
def deploy(
    ctx: click.Context,
    terraform_file: Path,
    assignments: tuple,
    var_file: Optional[Path],
    log_dir: Optional[Path],
    debug: bool,
    duration: Optional[float],
):
    """
    Deploy a Terraform module, wait until interrupted, then destroy it

    Any other --<name> <value> pair is passed to Terraform as a variable.

    \b
    Variables named like an atar option
    (terraform, var, var-file, log-dir, debug, duration)
    must be passed as --var NAME=VALUE.

    \b
    Examples:
        atar deploy --terraform infra/main.tf --region us-east-1
        atar deploy --terraform infra --var-file vars.yaml --duration 600

    \b
    Exit codes:
        0  deployed and cleanly destroyed
        1  apply failed (cleanup attempted)
        3  Terraform not executable
        4  destroy failed, manual cleanup required
    """
    request = build_request(terraform_file, assignments, var_file, ctx.args)

    settings = resolve_settings(ctx, log_dir, debug)

    cmd = DeployCommand(request, settings=settings, hold_seconds=duration)
    cmd.run()
