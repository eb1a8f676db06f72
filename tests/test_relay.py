"""Stream relay unit tests."""

from __future__ import annotations

import io
import os

import pytest

from proc_executor.console import Console
from proc_executor.runtime.errors import StreamIOFailure
from proc_executor.runtime.relay import (
    CapturingSink,
    ForwardingSink,
    StdinRelay,
    StreamRelay,
)


def _pipe() -> tuple[io.BufferedReader, io.BufferedWriter]:
    r, w = os.pipe()
    return os.fdopen(r, "rb"), os.fdopen(w, "wb")


class _FailingReader(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        raise OSError("read failed")


# =============================================================================
# Sinks
# =============================================================================


class TestSinks:
    """Capturing and forwarding sinks."""

    def test_capturing_sink_joins_chunks(self):
        sink = CapturingSink()
        sink.write(b"hello ")
        sink.write(b"world")

        assert sink.getvalue() == b"hello world"
        assert sink.text() == "hello world"

    def test_capturing_sink_replaces_invalid_bytes(self):
        sink = CapturingSink()
        sink.write(b"ok\xff")

        assert sink.text() == "ok�"

    def test_forwarding_sink_handles_split_multibyte(self, console: Console, console_out):
        sink = ForwardingSink(console, stderr=False)
        euro = "€".encode("utf-8")
        sink.write(euro[:2])
        assert console_out.getvalue() == ""

        sink.write(euro[2:])
        sink.close()
        assert console_out.getvalue() == "€"

    def test_forwarding_sink_to_stderr(self, console: Console, console_out, console_err):
        sink = ForwardingSink(console, stderr=True)
        sink.write(b"warn\n")
        sink.close()

        assert console_err.getvalue() == "warn\n"
        assert console_out.getvalue() == ""


# =============================================================================
# Relays
# =============================================================================


class TestStreamRelay:
    """Draining a stream into a sink."""

    @pytest.mark.timeout(10)
    def test_drains_until_eof(self):
        reader, writer = _pipe()
        sink = CapturingSink()
        relay = StreamRelay("stdout", reader, sink, chunk_size=7)
        relay.start()

        writer.write(b"line one\nline two\n")
        writer.close()
        relay.join()

        assert sink.text() == "line one\nline two\n"
        assert relay.bytes_relayed == len(b"line one\nline two\n")
        assert relay.error is None
        assert reader.closed

    @pytest.mark.timeout(10)
    def test_read_failure_recorded(self):
        sink = CapturingSink()
        relay = StreamRelay("stderr", io.BufferedReader(_FailingReader()), sink)
        relay.start()
        relay.join()

        assert isinstance(relay.error, StreamIOFailure)
        assert relay.error.stream == "stderr"
        assert sink.text() == ""

    def test_thread_name_and_daemon(self):
        reader, writer = _pipe()
        relay = StreamRelay("stdout", reader, CapturingSink(), pid=42)
        writer.close()
        reader.close()

        assert relay.name == "proc-executor-stdout-42"
        assert relay.daemon is True


class TestStdinRelay:
    """Feeding stdin from a source."""

    @pytest.mark.timeout(10)
    def test_copies_and_closes(self):
        reader, writer = _pipe()
        relay = StdinRelay(io.BytesIO(b"payload" * 100), writer, chunk_size=16)
        relay.start()

        data = reader.read()
        relay.join()

        assert data == b"payload" * 100
        assert writer.closed
        assert relay.error is None

    @pytest.mark.timeout(10)
    def test_stop_before_start_sends_eof(self):
        reader, writer = _pipe()
        relay = StdinRelay(io.BytesIO(b"never sent"), writer)
        relay.stop()
        relay.start()
        relay.join()

        assert reader.read() == b""
        assert writer.closed

    @pytest.mark.timeout(10)
    def test_broken_pipe_recorded(self):
        reader, writer = _pipe()
        reader.close()
        relay = StdinRelay(io.BytesIO(b"x" * 1024), writer)
        relay.start()
        relay.join()

        assert isinstance(relay.error, StreamIOFailure)
        assert relay.error.stream == "stdin"
