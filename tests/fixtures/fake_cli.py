#!/usr/bin/env python3
"""Fake child process for executor tests.

Behaves like a small, scriptable command so tests do not depend on the
platform's shell utilities.

Usage:
    python fake_cli.py [--stdout TEXT] [--stderr TEXT] [--stdout-bytes N]
                       [--echo-stdin] [--sleep SECONDS] [--exit-code CODE]
                       [--print-env NAME] [--print-env-keys] [--print-cwd]
                       [--print-argv ARG ...]

Actions run in the order: echo stdin, print-cwd, print-env, print-env-keys,
print-argv, stdout-bytes, stdout, stderr, sleep, exit.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from typing import NoReturn


def write_out(text: str) -> None:
    sys.stdout.buffer.write(text.encode("utf-8"))
    sys.stdout.buffer.flush()


def main() -> NoReturn:
    parser = argparse.ArgumentParser(description="Fake child process for testing")
    parser.add_argument("--stdout", type=str, default=None, help="Text written to stdout")
    parser.add_argument("--stderr", type=str, default=None, help="Text written to stderr")
    parser.add_argument("--stdout-bytes", type=int, default=0, help="Bytes of filler for stdout")
    parser.add_argument("--echo-stdin", action="store_true", help="Copy stdin to stdout")
    parser.add_argument("--sleep", type=float, default=0.0, help="Seconds to sleep before exit")
    parser.add_argument("--exit-code", type=int, default=0, help="Exit code")
    parser.add_argument("--print-env", type=str, default=None, help="Print one env var")
    parser.add_argument("--print-env-keys", action="store_true", help="Print env keys as JSON")
    parser.add_argument("--print-cwd", action="store_true", help="Print working directory")
    parser.add_argument("--print-argv", nargs=argparse.REMAINDER, default=None,
                        help="Print the remaining arguments as JSON")

    args = parser.parse_args()

    if args.echo_stdin:
        data = sys.stdin.buffer.read()
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()

    if args.print_cwd:
        write_out(os.getcwd())

    if args.print_env is not None:
        write_out(os.environ.get(args.print_env, "<unset>"))

    if args.print_env_keys:
        write_out(json.dumps(sorted(os.environ)))

    if args.print_argv is not None:
        write_out(json.dumps(args.print_argv))

    if args.stdout_bytes:
        line = b"0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ\n"
        remaining = args.stdout_bytes
        while remaining > 0:
            chunk = line[:remaining]
            sys.stdout.buffer.write(chunk)
            remaining -= len(chunk)
        sys.stdout.buffer.flush()

    if args.stdout is not None:
        write_out(args.stdout)

    if args.stderr is not None:
        sys.stderr.buffer.write(args.stderr.encode("utf-8"))
        sys.stderr.buffer.flush()

    if args.sleep:
        time.sleep(args.sleep)

    sys.exit(args.exit_code)


if __name__ == "__main__":
    main()
