"""Console output helpers built on rich."""

from __future__ import annotations

from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .common import SEVERITY_ERROR, SEVERITY_WARNING
from .models import CleanupReport, TranslationUnit

console = Console()

_SEVERITY_STYLE = {
    SEVERITY_ERROR: "red",
    SEVERITY_WARNING: "yellow",
}


class Message:
    """Panel-style status messages."""

    @staticmethod
    def info(text: str, title: str = "Info", out: Optional[Console] = None) -> None:
        (out or console).print(Panel(Text(text, style="cyan"), title=title, border_style="cyan"))

    @staticmethod
    def success(text: str, title: str = "Success", out: Optional[Console] = None) -> None:
        (out or console).print(Panel(Text(f"✅ {text}", style="green"), title=title, border_style="green"))

    @staticmethod
    def warning(text: str, title: str = "Warning", out: Optional[Console] = None) -> None:
        (out or console).print(Panel(Text(f"⚠️  {text}", style="yellow"), title=title, border_style="yellow"))

    @staticmethod
    def error(text: str, title: str = "Error", out: Optional[Console] = None) -> None:
        (out or console).print(Panel(Text(f"❌ {text}", style="red"), title=title, border_style="red"))


def _clip(text: str, width: int = 60) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= width else text[: width - 1] + "…"


def issue_table(
    units: Iterable[TranslationUnit],
    include_ignored: bool = False,
    limit: int = 200,
) -> Table:
    """Build a table with one row per issue."""
    table = Table(title="QA issues", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Severity")
    table.add_column("Issue")
    table.add_column("Source", overflow="fold")
    table.add_column("Target", overflow="fold")

    rows = 0
    for unit in units:
        for issue in unit.qa_issues:
            if issue.is_ignored and not include_ignored:
                continue
            if rows >= limit:
                table.caption = f"showing first {limit} issues"
                return table
            style = _SEVERITY_STYLE.get(issue.severity, "cyan")
            label = issue.code + (" (ignored)" if issue.is_ignored else "")
            table.add_row(
                str(unit.order),
                Text(issue.severity, style=style),
                label,
                _clip(unit.source.text),
                _clip(unit.target.text),
            )
            rows += 1
    return table


def summary_table(summary: dict) -> Table:
    """Two-column table from QAEngine.get_summary()."""
    table = Table(title="Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in summary.items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}: {v}" for k, v in value.items()) or "-"
        table.add_row(key.replace("_", " "), str(value))
    return table


def show_cleanup_report(report: CleanupReport, out: Optional[Console] = None) -> None:
    table = Table(title="Cleanup", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("modified", str(report.modified))
    table.add_row("deleted", str(report.deleted))
    table.add_row("duplicates removed", str(report.duplicates_removed))
    table.add_row("tags fixed", str(report.tags_fixed))
    table.add_row("metadata updated", str(report.metadata_updated))
    (out or console).print(table)
