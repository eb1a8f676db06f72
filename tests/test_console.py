"""Console tests."""

from __future__ import annotations

import io

import pytest

from proc_executor.console import Console


@pytest.fixture
def color_console(monkeypatch, console_out: io.StringIO, console_err: io.StringIO) -> Console:
    """Console that renders styles into the in-memory buffers."""
    monkeypatch.delenv("NO_COLOR", raising=False)
    return Console(console_out, console_err, force_terminal=True, color_system="standard")


class TestPlainConsole:
    """Non-terminal console."""

    def test_write_passthrough(self, console: Console, console_out):
        console.write("[bold]not markup[/bold]\n")

        assert console_out.getvalue() == "[bold]not markup[/bold]\n"

    def test_write_to_stderr(self, console: Console, console_out, console_err):
        console.write("oops", stderr=True)

        assert console_err.getvalue() == "oops"
        assert console_out.getvalue() == ""

    def test_highlight_ignored_without_terminal(self, console: Console, console_out):
        assert console.supports_highlighting is False
        console.write("plain", highlighted=True)

        assert console_out.getvalue() == "plain"

    def test_empty_text_ignored(self, console: Console, console_out):
        console.write("")

        assert console_out.getvalue() == ""

    def test_files_exposed(self, console: Console, console_out, console_err):
        assert console.stdout is console_out
        assert console.stderr is console_err


class TestHighlighting:
    """Terminal console with colour."""

    def test_supports_highlighting(self, color_console: Console):
        assert color_console.supports_highlighting is True

    def test_highlighted_write_styled(self, color_console: Console, console_out):
        color_console.write("boom\n", highlighted=True)

        value = console_out.getvalue()
        assert "\x1b[" in value
        assert "boom" in value

    def test_plain_write_not_styled(self, color_console: Console, console_out):
        color_console.write("fine\n")

        assert console_out.getvalue() == "fine\n"

    def test_no_color_disables(self, console_out, console_err):
        console = Console(
            console_out, console_err, force_terminal=True, no_color=True, color_system="standard"
        )
        console.write("boom", highlighted=True)

        assert console.supports_highlighting is False
        assert console_out.getvalue() == "boom"
