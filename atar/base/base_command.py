"""
Base Command Class

Abstract base for all atar CLI commands.
Provides common functionality and structure.
"""

from abc import ABC, abstractmethod
from typing import Optional

from rich.console import Console
from rich.markup import escape

from atar.config import Settings
from atar.exceptions import AtarError
from atar.logger import DeployLogger
from atar.models import ExitCode
from atar.ui_components import show_header


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Logger initialization
    - Header display
    - Error handling with consistent exit codes
    """

    def __init__(self, settings: Optional[Settings] = None, verbose: bool = False):
        self.settings = settings or Settings.from_env()
        self.verbose = verbose or self.settings.debug
        self.console = Console()
        self.logger: Optional[DeployLogger] = None

    def init_logger(self, deployment_name: str, command_name: str) -> DeployLogger:
        """
        Initialize command logger.

        Args:
            deployment_name: Deployment name (configuration directory name)
            command_name: Command name

        Returns:
            DeployLogger instance
        """
        self.logger = DeployLogger(
            deployment_name,
            command_name,
            verbose=self.verbose,
            log_dir=self.settings.log_dir,
            output_console=self.console,
        )
        return self.logger

    def show_header(
        self,
        title: str,
        subtitle: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Show command header."""
        show_header(
            title=title,
            subtitle=subtitle,
            details=details,
            console=self.console,
        )

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓ {escape(message)}[/green]")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗ {escape(message)}[/red]")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]")

    def print_dim(self, message: str) -> None:
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def print_log_location(self) -> None:
        if self.logger and self.logger.log_path:
            self.console.print(f"[dim]Logs saved to:[/dim] {self.logger.log_path}\n")

    def exit_with(self, code: ExitCode) -> None:
        """Raise SystemExit for a non-zero exit code."""
        if code != ExitCode.SUCCESS:
            raise SystemExit(int(code))

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """
        Execute command logic.

        Must be implemented by subclasses.
        """
        pass

    def run(self, **kwargs) -> None:
        """
        Run command with error handling.

        Args:
            **kwargs: Command arguments
        """
        try:
            self.execute(**kwargs)
        except KeyboardInterrupt:
            # Only reachable before signal interception is armed
            self.console.print("\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            self.print_log_location()
            raise SystemExit(int(ExitCode.INTERRUPTED))
        except SystemExit:
            raise
        except AtarError as e:
            if self.logger:
                self.logger.log_error(e.message, e.context)
            else:
                self.console.print(f"\n[bold red]✗ {escape(e.message)}[/bold red]")
                if e.context:
                    self.print_dim(f"Context: {e.context}")
            self.print_log_location()
            raise SystemExit(1)
        except Exception as e:
            error_type = type(e).__name__
            self.console.print(f"\n[bold red]✗ {error_type}:[/bold red] {escape(str(e))}\n")
            if self.logger:
                self.logger.log_error(f"{error_type}: {e}")
            self.print_log_location()
            if self.verbose:
                self.console.print_exception()
            raise SystemExit(1)
