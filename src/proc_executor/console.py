"""Console destination for forwarded and flushed process output.

Wraps a pair of ``rich`` consoles (stdout/stderr). Plain writes go straight to
the underlying file so forwarded process output is passed through untouched;
highlighted writes go through rich so colour support and NO_COLOR are
honoured.
"""

from __future__ import annotations

import threading
from typing import TextIO

from rich.console import Console as RichConsole
from rich.text import Text

__all__ = ["Console", "HIGHLIGHT_STYLE"]

# Style for captured output shown after a failed run
HIGHLIGHT_STYLE = "bold red"


class Console:
    """Text destination with an optional highlighting capability.

    Example:
        console = Console()
        console.write("building...\\n")
        console.write("error: boom\\n", stderr=True, highlighted=True)

    Attributes:
        stdout: Underlying stdout file
        stderr: Underlying stderr file
    """

    def __init__(
        self,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        *,
        force_terminal: bool | None = None,
        no_color: bool | None = None,
        color_system: str | None = "auto",
    ) -> None:
        self._out = RichConsole(
            file=stdout,
            force_terminal=force_terminal,
            no_color=no_color,
            color_system=color_system,
            highlight=False,
            soft_wrap=True,
        )
        self._err = RichConsole(
            file=stderr,
            stderr=True,
            force_terminal=force_terminal,
            no_color=no_color,
            color_system=color_system,
            highlight=False,
            soft_wrap=True,
        )
        # Relays for stdout and stderr may write concurrently
        self._lock = threading.Lock()

    @property
    def stdout(self) -> TextIO:
        return self._out.file

    @property
    def stderr(self) -> TextIO:
        return self._err.file

    @property
    def supports_highlighting(self) -> bool:
        """Whether highlighted output renders as colour on this console."""
        return (
            self._out.is_terminal
            and self._out.color_system is not None
            and not self._out.no_color
        )

    def write(self, text: str, *, stderr: bool = False, highlighted: bool = False) -> None:
        """Write text to stdout or stderr.

        Args:
            text: Text to write (written as-is, no newline appended)
            stderr: Write to stderr instead of stdout
            highlighted: Style the text when the console supports it
        """
        if not text:
            return
        target = self._err if stderr else self._out
        with self._lock:
            if highlighted and self.supports_highlighting:
                target.print(Text(text, style=HIGHLIGHT_STYLE), end="")
            else:
                target.file.write(text)
            target.file.flush()
