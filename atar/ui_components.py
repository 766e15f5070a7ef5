"""
atar - UI Components
Standardized headers and summary lines
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape

LOGO = "atar"

BRAND_COLOR = "color(214)"


def _prefix() -> str:
    return f" [bold {BRAND_COLOR}]{LOGO}[/bold {BRAND_COLOR}] [dim]›[/dim]"


def show_header(
    title: str,
    subtitle: Optional[str] = None,
    details: Optional[dict] = None,
    console: Optional[Console] = None,
):
    """
    Display a standardized atar command header.

    Args:
        title: Main title (e.g., "Ephemeral Deployment")
        subtitle: Optional subtitle line
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)

    Example:
        show_header(
            title="Ephemeral Deployment",
            details={"Configuration": "infra/main.tf"}
        )
    """
    if console is None:
        console = Console()

    console.print(f"{_prefix()} [bold white]{escape(title)}[/bold white]")

    if subtitle:
        console.print(f"{_prefix()} [dim]{escape(subtitle)}[/dim]")

    if details:
        for key, value in details.items():
            console.print(f"{_prefix()} {escape(key)}: [cyan]{escape(str(value))}[/cyan]")

    # Single blank line after header
    console.print()
