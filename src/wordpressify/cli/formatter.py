from typing import List
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from wordpressify.cli import messages
from wordpressify.utils.diagnostics import PipelineDiagnostic

# Create a stderr console for logging
error_console = Console(stderr=True)


class OutputFormatter:
    """
    Handles console output for the CLI.
    Status messages and alerts go to stderr; nothing here writes data to stdout.
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print workflow messages to stderr with color coding.
        """
        style = "white"
        prefix = messages.PRODUCT

        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        error_console.print(f"{prefix} [{style}]{message}[/{style}]")

    @staticmethod
    def alert(message: str, fatal: bool = False) -> None:
        """
        Ring the terminal bell and print a marked error message.
        """
        error_console.bell()
        label = "[bold white on red]Error[/bold white on red]" if fatal else "[black on yellow]Warning[/black on yellow]"
        error_console.print(f"{messages.PRODUCT} - {label} ⚠️  {message}")

    @staticmethod
    def print_diagnostics(diagnostics: List[PipelineDiagnostic]) -> None:
        """
        Table of the file-level failures of one build.
        """
        if not diagnostics:
            return

        table = Table(title="Pipeline Errors", border_style="red", header_style="bold red")
        table.add_column("Task", style="bold")
        table.add_column("Message")
        table.add_column("File")

        for diag in diagnostics:
            color = "yellow" if diag.severity == "warning" else "red"
            table.add_row(
                f"[{color}]{escape(diag.task_name)}[/{color}]",
                escape(diag.message),
                escape(diag.file_path or ""),
            )

        error_console.print(table)
        error_console.print() # spacing
