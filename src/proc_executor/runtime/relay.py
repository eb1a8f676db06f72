"""Stream relays.

A relay is a worker thread that moves bytes between one process stream and
one sink or source until EOF. Drain relays must be running before anything
blocks on process exit: pipe buffers are bounded, and a child whose output is
not being read blocks on write forever.
"""

from __future__ import annotations

import codecs
import logging
import threading
from typing import IO, Protocol

from ..console import Console
from .errors import StreamIOFailure

__all__ = [
    "CapturingSink",
    "ForwardingSink",
    "Sink",
    "StdinRelay",
    "StreamRelay",
]

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 4096


class Sink(Protocol):
    """Destination for bytes drained from a process stream."""

    def write(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class CapturingSink:
    """Accumulates drained bytes in memory."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self._chunks: list[bytes] = []

    def write(self, data: bytes) -> None:
        self._chunks.append(data)

    def close(self) -> None:
        pass

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)

    def text(self) -> str:
        """Decode everything captured so far."""
        return self.getvalue().decode(self.encoding, errors="replace")


class ForwardingSink:
    """Writes drained bytes through to the console as they arrive.

    Decoding is incremental so multi-byte characters split across reads are
    not mangled.
    """

    def __init__(self, console: Console, *, stderr: bool, encoding: str = "utf-8") -> None:
        self.console = console
        self.stderr = stderr
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    def write(self, data: bytes) -> None:
        text = self._decoder.decode(data)
        if text:
            self.console.write(text, stderr=self.stderr)

    def close(self) -> None:
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.console.write(tail, stderr=self.stderr)


class StreamRelay(threading.Thread):
    """Drains one process output stream into a sink until EOF.

    Example:
        sink = CapturingSink()
        relay = StreamRelay("stdout", process.stdout, sink)
        relay.start()
        ...
        relay.join()
        print(sink.text())

    Attributes:
        stream_name: "stdout" or "stderr"
        sink: Where drained bytes go
        error: The failure that ended the relay early, if any
    """

    def __init__(
        self,
        stream_name: str,
        source: IO[bytes],
        sink: Sink,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pid: int | None = None,
    ) -> None:
        super().__init__(name=f"proc-executor-{stream_name}-{pid}", daemon=True)
        self.stream_name = stream_name
        self.source = source
        self.sink = sink
        self.chunk_size = chunk_size
        self.error: StreamIOFailure | None = None
        self.bytes_relayed = 0

    def run(self) -> None:
        # read1 returns as soon as any data is available
        read = getattr(self.source, "read1", self.source.read)
        try:
            while True:
                chunk = read(self.chunk_size)
                if not chunk:
                    break
                self.bytes_relayed += len(chunk)
                self.sink.write(chunk)
        except (OSError, ValueError) as e:
            # ValueError: the stream was closed under us by an external destroy
            self.error = StreamIOFailure(self.stream_name, str(e))
            logger.debug(f"Relay stopped early: {self.error}")
        finally:
            self.sink.close()
            self._close_source()

    def _close_source(self) -> None:
        try:
            self.source.close()
        except (OSError, ValueError) as e:
            logger.debug(f"Error closing {self.stream_name}: {e}")


class StdinRelay(threading.Thread):
    """Feeds a process's stdin from a binary source.

    Closes stdin when the source is exhausted or stop() is called, so the
    child sees EOF.
    """

    def __init__(
        self,
        source: IO[bytes],
        target: IO[bytes],
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pid: int | None = None,
    ) -> None:
        super().__init__(name=f"proc-executor-stdin-{pid}", daemon=True)
        self.source = source
        self.target = target
        self.chunk_size = chunk_size
        self.error: StreamIOFailure | None = None
        self._stop_requested = threading.Event()

    def stop(self) -> None:
        """Stop feeding after the current chunk."""
        self._stop_requested.set()

    def run(self) -> None:
        read = getattr(self.source, "read1", self.source.read)
        try:
            while not self._stop_requested.is_set():
                chunk = read(self.chunk_size)
                if not chunk:
                    break
                self.target.write(chunk)
                self.target.flush()
        except (OSError, ValueError) as e:
            # Typically BrokenPipeError: the child exited without reading it all
            self.error = StreamIOFailure("stdin", str(e))
            logger.debug(f"Stdin relay stopped early: {self.error}")
        finally:
            self._close_target()

    def _close_target(self) -> None:
        try:
            self.target.close()
        except (OSError, ValueError) as e:
            logger.debug(f"Error closing stdin: {e}")
