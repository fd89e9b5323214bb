"""Tests for the Rich chat display module."""

from __future__ import annotations

import io

from rich.console import Console

from kubeai.cli.display import ChatDisplay, _truncate
from kubeai.tools.base import ToolDefinition


def _make_display() -> tuple[ChatDisplay, io.StringIO]:
    """Create a display with captured output."""
    buf = io.StringIO()
    console = Console(file=buf, width=100, no_color=True)
    return ChatDisplay(console=console), buf


# ── Truncation ────────────────────────────────────────────────


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert _truncate("hello", 10) == "hello"

    def test_whitespace_collapsed(self) -> None:
        assert _truncate("a\n  b\tc") == "a b c"

    def test_over_limit_truncated(self) -> None:
        assert _truncate("word " * 40, 20) == "word word word word ..."


# ── Streaming ─────────────────────────────────────────────────


class TestStreaming:
    def test_chunks_are_verbatim(self) -> None:
        display, buf = _make_display()
        display.write_chunk("Listing [bold]pods[/bold]")
        display.write_chunk(" now")
        display.finish()
        assert buf.getvalue() == "Listing [bold]pods[/bold] now\n"

    def test_error(self) -> None:
        display, buf = _make_display()
        display.show_error("boom [x]")
        assert "Error: boom [x]" in buf.getvalue()


# ── Approvals ─────────────────────────────────────────────────


class TestApprovals:
    def test_request_panel(self) -> None:
        display, buf = _make_display()
        display.show_approval_request("kubectl", "kubectl delete pod nginx", "dangerous")
        out = buf.getvalue()
        assert "APPROVAL kubectl (dangerous)" in out
        assert "kubectl delete pod nginx" in out

    def test_timeout(self) -> None:
        display, buf = _make_display()
        display.show_approval_timeout("approval_abc")
        assert "Approval approval_abc timed out; tool call denied." in buf.getvalue()


# ── Catalogs ──────────────────────────────────────────────────


class TestCatalogs:
    def test_no_tools(self) -> None:
        display, buf = _make_display()
        display.show_tools([])
        assert "No tools registered." in buf.getvalue()

    def test_tools_table(self) -> None:
        display, buf = _make_display()
        display.show_tools(
            [
                ToolDefinition("kubectl", "Run kubectl", {}),
                ToolDefinition("search", "Search docs", {}, source="docs"),
            ]
        )
        out = buf.getvalue()
        assert "Tools (2)" in out
        assert "built-in" in out
        assert "docs" in out

    def test_models(self) -> None:
        display, buf = _make_display()
        display.show_models("openai", ["gpt-4", "gpt-4o"], "gpt-4o")
        assert buf.getvalue().splitlines() == ["openai:", "  gpt-4", "  gpt-4o  (configured)"]
