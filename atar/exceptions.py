"""
atar Exception Hierarchy

Clean exception hierarchy for consistent error handling across the CLI.
"""

from typing import Optional


class AtarError(Exception):
    """Base exception for all atar errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(AtarError):
    """Raised when CLI input or a variable file is invalid."""

    pass


class StateTransitionError(AtarError):
    """Raised when the lifecycle controller attempts an illegal transition."""

    pass


class SpawnError(AtarError):
    """Raised when the Terraform binary cannot be started at all."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to execute `{command}`", context=reason)


class OperationError(AtarError):
    """
    Raised when a Terraform operation does not complete.

    `exit_code` is None when the child could not be started at all.
    """

    phase = "operation"

    def __init__(self, command: str, exit_code: Optional[int], stderr: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        if exit_code is None:
            message = f"`{command}` could not be executed"
        else:
            message = f"`{command}` failed with exit code {exit_code}"
        context = stderr.strip() or None
        super().__init__(message, context)


class InitError(OperationError):
    """Raised when `terraform init` fails."""

    phase = "init"


class ApplyError(OperationError):
    """Raised when `terraform apply` fails."""

    phase = "apply"


class OutputError(OperationError):
    """Raised when outputs cannot be read after a successful apply."""

    phase = "output"


class DestroyError(OperationError):
    """Raised when `terraform destroy` fails. Resources may be orphaned."""

    phase = "destroy"
