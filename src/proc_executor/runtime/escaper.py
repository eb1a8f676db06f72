"""Command-line escaping for Windows CreateProcess.

CreateProcess takes a single command-line string which the child's C runtime
splits back into argv. Each token is escaped so that the re-parsed argv is
exactly the original token list.
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    "build_command_line",
    "escape_create_process_arg",
]

_NEEDS_QUOTING = frozenset(' \t\n\v"')


def escape_create_process_arg(arg: str) -> str:
    """Escape a single argument for CreateProcess.

    Tokens without whitespace or quotes are returned unchanged. Otherwise the
    token is wrapped in quotes; a run of backslashes followed by a quote or by
    the closing quote is doubled, and embedded quotes are backslash-escaped.

    Args:
        arg: Raw argument

    Returns:
        Escaped argument
    """
    if not arg:
        return '""'
    if not any(c in _NEEDS_QUOTING for c in arg):
        return arg

    parts = ['"']
    backslashes = 0
    for c in arg:
        if c == "\\":
            backslashes += 1
            continue
        if c == '"':
            # 2N+1 backslashes: N literal ones plus the escape for the quote
            parts.append("\\" * (backslashes * 2 + 1))
            parts.append('"')
        else:
            parts.append("\\" * backslashes)
            parts.append(c)
        backslashes = 0

    # Trailing run is followed by our closing quote
    parts.append("\\" * (backslashes * 2))
    parts.append('"')
    return "".join(parts)


def build_command_line(command: Iterable[str]) -> str:
    """Join escaped tokens into one CreateProcess command line."""
    return " ".join(escape_create_process_arg(token) for token in command)
