"""Rich display for agentic chat in the terminal.

Streams model text as it arrives, and renders approval prompts and
tool catalogs as styled panels and tables.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kubeai.tools.base import ToolDefinition

_TRUNCATE_LEN = 80


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class ChatDisplay:
    """Terminal rendering for ``kubeai ask``.

    Accepts an optional :class:`~rich.console.Console` for dependency
    injection in tests.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    @property
    def console(self) -> Console:
        return self._console

    # ── Streaming ─────────────────────────────────────────────

    def write_chunk(self, text: str) -> None:
        """Print a streamed chunk verbatim (no markup, no newline)."""
        self._console.print(text, end="", markup=False, highlight=False, soft_wrap=True)

    def finish(self) -> None:
        self._console.print()

    # ── Approvals ─────────────────────────────────────────────

    def show_approval_request(self, tool_name: str, command: str, category: str) -> None:
        self._console.print()
        self._console.print(
            Panel(
                command,
                title=f"[bold yellow]APPROVAL[/bold yellow] {tool_name} ({category})",
                border_style="yellow",
            )
        )

    def show_approval_timeout(self, approval_id: str) -> None:
        self._console.print(f"Approval {approval_id} timed out; tool call denied.", style="red")

    # ── Catalogs ──────────────────────────────────────────────

    def show_tools(self, definitions: Sequence[ToolDefinition]) -> None:
        if not definitions:
            self._console.print("No tools registered.")
            return
        table = Table(title=f"Tools ({len(definitions)})")
        table.add_column("Name", style="cyan")
        table.add_column("Source")
        table.add_column("Description")
        for d in definitions:
            table.add_row(d.name, d.source or "built-in", _truncate(d.description))
        self._console.print(table)

    def show_models(self, provider_id: str, models: Sequence[str], current: str) -> None:
        self._console.print(f"{provider_id}:")
        for m in models:
            marker = "  (configured)" if m == current else ""
            self._console.print(f"  {m}{marker}", highlight=False)

    def show_error(self, message: str) -> None:
        self._console.print(f"Error: {message}", style="bold red", markup=False)
