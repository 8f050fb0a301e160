"""
Process types shared by every ProcessManager implementation.

This module provides:
- ProcessStartMode: How a process is spawned
- ProcessResult: Outcome of a run-to-completion invocation
- ByteStream: Single-consumer async stream of stdio chunks
- Process: Abstract handle on a running process
- Encoding helpers for stdio text
"""

from __future__ import annotations

import asyncio
import codecs
import locale
import signal
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Union

# Reserved encoding name denoting the platform's preferred encoding
SYSTEM_ENCODING = "system"

Output = Union[str, bytes]


class ProcessStartMode(str, Enum):
    """Modes with which a process can be started."""

    NORMAL = "normal"
    INHERIT_STDIO = "inheritStdio"
    DETACHED = "detached"
    DETACHED_WITH_STDIO = "detachedWithStdio"

    @property
    def pipes_stdio(self) -> bool:
        return self in (ProcessStartMode.NORMAL, ProcessStartMode.DETACHED_WITH_STDIO)

    @property
    def is_detached(self) -> bool:
        return self in (ProcessStartMode.DETACHED, ProcessStartMode.DETACHED_WITH_STDIO)


# =============================================================================
# Encoding helpers
# =============================================================================


def normalize_encoding(name: str | None) -> str | None:
    """Return the canonical codec name, ``SYSTEM_ENCODING`` or None.

    Raises:
        LookupError: If ``name`` is not a known codec.
    """
    if name is None:
        return None
    if name == SYSTEM_ENCODING:
        return SYSTEM_ENCODING
    return codecs.lookup(name).name


def codec_for(encoding: str) -> str:
    """Resolve an encoding name to a codec usable with str.encode/bytes.decode."""
    if encoding == SYSTEM_ENCODING:
        return locale.getpreferredencoding(False)
    return encoding


def decode_output(data: bytes, encoding: str | None, errors: str = "strict") -> Output:
    """Decode raw stdio bytes; ``encoding=None`` keeps them as bytes."""
    if encoding is None:
        return data
    return data.decode(codec_for(encoding), errors)


def encode_output(data: Output, encoding: str | None) -> bytes:
    """Encode stdio output for storage; bytes pass through unchanged."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    return data.encode(codec_for(encoding or SYSTEM_ENCODING))


# =============================================================================
# Results and streams
# =============================================================================


@dataclass(frozen=True)
class ProcessResult:
    """Result of a process that ran to completion."""

    pid: int
    exit_code: int
    stdout: Output
    stderr: Output


class _EndOfStream:
    pass


_EOF = _EndOfStream()


@dataclass(frozen=True)
class _StreamFailure:
    error: BaseException


class ByteStream:
    """Single-consumer async stream of byte chunks.

    Producers call ``feed()`` and finally ``close()`` (or ``fail()``).
    Chunks are buffered until consumed, so a consumer that starts
    iterating late still sees every chunk in arrival order.

    Example:
        ```python
        async for chunk in process.stdout:
            handle(chunk)

        data = await process.stderr.read()
        ```
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: bytes) -> None:
        if self._closed:
            raise RuntimeError("Cannot feed a closed stream")
        self._queue.put_nowait(bytes(chunk))

    def fail(self, error: BaseException) -> None:
        """Deliver an error to the consumer and close the stream."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_StreamFailure(error))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_EOF)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        item = await self._queue.get()
        if isinstance(item, _EndOfStream):
            # Keep the marker so later iterations also terminate.
            self._queue.put_nowait(item)
            raise StopAsyncIteration
        if isinstance(item, _StreamFailure):
            self._queue.put_nowait(_EOF)
            raise item.error
        return item

    async def read(self) -> bytes:
        """Consume the stream to its end and return the joined bytes."""
        chunks = [chunk async for chunk in self]
        return b"".join(chunks)


class Process(ABC):
    """Handle on a started process.

    ``stdout`` and ``stderr`` are ``ByteStream`` objects; ``wait()``
    resolves with the exit code once the process has exited.
    """

    @property
    @abstractmethod
    def pid(self) -> int:
        ...

    @property
    @abstractmethod
    def stdout(self) -> ByteStream:
        ...

    @property
    @abstractmethod
    def stderr(self) -> ByteStream:
        ...

    @property
    def stdin(self) -> asyncio.StreamWriter | None:
        return None

    @property
    @abstractmethod
    def returncode(self) -> int | None:
        """Exit code if the process has exited, else None."""
        ...

    @abstractmethod
    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        ...

    @abstractmethod
    def kill(self, sig: int = signal.SIGTERM) -> bool:
        """Send ``sig`` to the process. Returns True if delivered."""
        ...

    async def done(self) -> int:
        """Wait until the process has exited and both stdio streams are drained.

        Consumes whatever remains on ``stdout`` and ``stderr``.
        """
        _, _, exit_code = await asyncio.gather(
            self.stdout.read(),
            self.stderr.read(),
            self.wait(),
        )
        return exit_code


__all__ = [
    "SYSTEM_ENCODING",
    "Output",
    "ProcessStartMode",
    "ProcessResult",
    "ByteStream",
    "Process",
    "normalize_encoding",
    "codec_for",
    "decode_output",
    "encode_output",
]
