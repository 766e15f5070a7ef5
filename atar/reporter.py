"""
Output Reporter

Key/value rendering of a deployment request and its Terraform outputs.
"""

from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape

from atar.constants import OUTPUTS_BANNER_WIDTH, SENSITIVE_PLACEHOLDER
from atar.models import DeploymentRequest, OutputVariable


def _banner(title: str) -> str:
    label = f" {title} "
    left = (OUTPUTS_BANNER_WIDTH - len(label)) // 2
    right = OUTPUTS_BANNER_WIDTH - len(label) - left
    return f"{'*' * left}{label}{'*' * right}"


class OutputReporter:
    """Writes name/value pairs to the user-facing console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_variables(self, request: DeploymentRequest) -> None:
        """Show the configuration path and each variable once, before running."""
        self.console.print("Variables:")
        self.console.print(f"  path: {escape(str(request.terraform_file))}")
        for name, value in request.variables.items():
            self.console.print(f"  {escape(name)}: {escape(value)}")

    def report(self, outputs: Sequence[OutputVariable]) -> None:
        """Print outputs in capture order. Prints nothing for no outputs."""
        if not outputs:
            return

        self.console.print(_banner("Outputs"), highlight=False)
        for output in outputs:
            value = SENSITIVE_PLACEHOLDER if output.sensitive else output.value
            self.console.print(
                f"[cyan]{escape(output.name)}[/cyan]: {escape(value)}", highlight=False
            )
        self.console.print("*" * OUTPUTS_BANNER_WIDTH, highlight=False)
