"""
Logging system for atar
Provides clean console output with an optional real-time log file
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from rich.console import Console
from rich.markup import escape

from atar.constants import LOG_DATE_FORMAT, LOG_TIME_FORMAT

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class DeployLogger:
    """
    Manages logging for deployment operations
    - Shows clean progress lines in console
    - Mirrors everything to a log file when a log directory is configured
    - Captures errors with context
    """

    def __init__(
        self,
        deployment_name: str,
        operation: str,
        verbose: bool = False,
        log_dir: Optional[Path] = None,
        output_console: Optional[Console] = None,
    ):
        """
        Initialize logger

        Args:
            deployment_name: Name of the deployment (configuration directory name)
            operation: Operation name (e.g., 'deploy', 'undeploy')
            verbose: If True, show debug lines and commands in console
            log_dir: Root directory for log files (no file is written if None)
            output_console: Rich console to print to (module console by default)
        """
        self.deployment_name = deployment_name
        self.operation = operation
        self.verbose = verbose
        self.console = output_console or console
        self.log_file: Optional[TextIO] = None
        self.log_path: Optional[Path] = None
        self.current_step = ""
        self.has_errors = False

        if log_dir is not None:
            # Structure: {log_dir}/{deployment}/{date}/{time}_{operation}.log
            now = datetime.now()
            logs_dir = Path(log_dir) / deployment_name / now.strftime(LOG_DATE_FORMAT)
            logs_dir.mkdir(parents=True, exist_ok=True)

            self.log_path = logs_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"
            self.log_file = open(self.log_path, "w", buffering=1)
            self._write_log_header()

    def _write_log_header(self):
        """Write log file header"""
        header = f"""
{"=" * 80}
atar Deployment Log
{"=" * 80}
Deployment: {self.deployment_name}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self.log_file.write(header)
        self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and optionally console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        timestamp = datetime.now().strftime("%H:%M:%S")

        if self.log_file:
            self.log_file.write(f"[{timestamp}] [{level}] {message}\n")
            self.log_file.flush()

        if self.verbose:
            if level == "ERROR":
                self.console.print(f"[red]{escape(message)}[/red]")
            elif level == "WARNING":
                self.console.print(f"[yellow]{escape(message)}[/yellow]")
            elif level == "DEBUG":
                self.console.print(f"[dim]{escape(message)}[/dim]")

    def debug(self, message: str):
        """Log a debug message (console only when verbose)"""
        self.log(message, "DEBUG")

    def log_command(self, command: str):
        """Log a command being executed"""
        self.log(f"Executing: {command}", "DEBUG")

    def log_output(self, output: str, stream: str = "stdout"):
        """
        Write command output to the log file only.

        The console side is handled by the caller, which streams the
        child's output live.

        Args:
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr)
        """
        if not output or not self.log_file:
            return

        clean_output = ANSI_ESCAPE.sub("", output)
        try:
            for line in clean_output.splitlines():
                self.log_file.write(f"  [{stream}] {line}\n")
            self.log_file.flush()
        except (BlockingIOError, OSError):
            # Terminal responsiveness matters more than a complete log
            pass

    def log_error(self, error: str, context: Optional[str] = None):
        """
        Log an error with context

        Args:
            error: Error message
            context: Additional context (e.g., captured stderr)
        """
        self.has_errors = True

        if self.log_file:
            error_block = f"""
{"!" * 80}
ERROR OCCURRED
{"!" * 80}
{error}
"""
            if context:
                error_block += f"\nContext: {context}\n"
            error_block += f"{'!' * 80}\n\n"
            self.log_file.write(error_block)
            self.log_file.flush()

        self.console.print()
        self.console.print(f"[bold red]✗ {escape(error)}[/bold red]")
        if context:
            self.console.print(f"  [color(208)]{escape(context)}[/color(208)]")

    def step(self, step_name: str):
        """
        Start a new step

        Args:
            step_name: Name of the step
        """
        if self.current_step:
            self.console.print()

        self.current_step = step_name
        self.log(f"Step: {step_name}", "INFO")
        self.console.print(f"[color(214)]▶[/color(214)] [white]{escape(step_name)}[/white]")

    def success(self, message: str):
        """Log a success message"""
        self.log(message, "INFO")
        self.console.print(f"  [dim]✓ {escape(message)}[/dim]")

    def warning(self, message: str):
        """Log a warning message"""
        self.log(message, "WARNING")
        self.console.print(f"  [yellow]⚠[/yellow] [dim]{escape(message)}[/dim]")

    def close(self):
        """Close log file"""
        if self.log_file:
            footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
            self.log_file.write(footer)
            self.log_file.close()
            self.log_file = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        """Context manager exit"""
        if exc_type is not None and exc_type != SystemExit:
            self.log_error(
                str(exc_val) if exc_val else "Operation failed",
                context=f"{exc_type.__name__}",
            )
        self.close()
        return False  # Don't suppress exceptions
