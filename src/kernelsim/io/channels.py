"""Context channels — how a blocked process learns where to resume.

Each process gets a pair of half-duplex channels to the kernel:

**outbound** (process → kernel)
    Right before a blocking syscall, the process writes one
    ``SyscallContext`` — its program counter and the operation it
    wants (READ or WRITE).  Only then does it ring the kernel.  The
    kernel reads exactly one context per syscall.

**inbound** (kernel → process)
    When the scheduler resumes a process that has a saved context, it
    writes a single integer — the instruction offset to continue at.
    The process drains this channel at the start of its next quantum
    and jumps there instead of incrementing its counter.

Like Unix pipes, channels carry raw bytes, so both records have a
fixed binary layout:

    SyscallContext:  <i resume_point> <c operation>   (5 bytes)
    resume point:    <i resume_point>                 (4 bytes)

A read that finds nothing, or finds bytes of the wrong shape, is a
``ProtocolViolation``.  The kernel survives these — it logs the
problem and carries on without the context.
"""

from __future__ import annotations

import struct
from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from threading import Lock

_CONTEXT_FORMAT = struct.Struct("<ic")
_RESUME_FORMAT = struct.Struct("<i")

# A saved point must still fit the wire layout after the kernel skips past it.
MAX_RESUME_POINT = 2**31 - 2


class ProtocolViolation(RuntimeError):  # noqa: N818
    """Raise when a channel is empty or carries malformed data."""


class Operation(StrEnum):
    """The kind of blocking I/O a process requests.

    Values are the one-byte tags used on the wire.
    """

    READ = "R"
    WRITE = "W"


@dataclass(frozen=True)
class SyscallContext:
    """What a process hands the kernel when it blocks.

    Attributes:
        resume_point: The program counter at the syscall instruction.
        operation: READ or WRITE (informational only).

    """

    resume_point: int
    operation: Operation

    def encode(self) -> bytes:
        """Pack into the fixed 5-byte wire layout."""
        return _CONTEXT_FORMAT.pack(self.resume_point, self.operation.value.encode("ascii"))

    @classmethod
    def decode(cls, data: bytes) -> SyscallContext:
        """Unpack a context from its wire layout.

        Raises:
            ProtocolViolation: If the length or operation tag is wrong,
                or the resume point is outside ``0..MAX_RESUME_POINT``.

        """
        if len(data) != _CONTEXT_FORMAT.size:
            msg = f"Syscall context must be {_CONTEXT_FORMAT.size} bytes, got {len(data)}"
            raise ProtocolViolation(msg)
        resume_point, tag = _CONTEXT_FORMAT.unpack(data)
        if not 0 <= resume_point <= MAX_RESUME_POINT:
            msg = f"Resume point {resume_point} is outside 0..{MAX_RESUME_POINT}"
            raise ProtocolViolation(msg)
        try:
            operation = Operation(tag.decode("ascii"))
        except (UnicodeDecodeError, ValueError) as e:
            msg = f"Unknown operation tag {tag!r}"
            raise ProtocolViolation(msg) from e
        return cls(resume_point=resume_point, operation=operation)


def encode_resume_point(resume_point: int) -> bytes:
    """Pack a resume point into its 4-byte wire layout.

    Raises:
        ProtocolViolation: If the value does not fit in 4 bytes.

    """
    try:
        return _RESUME_FORMAT.pack(resume_point)
    except struct.error as e:
        msg = f"Resume point {resume_point} does not fit the wire layout"
        raise ProtocolViolation(msg) from e


def decode_resume_point(data: bytes) -> int:
    """Unpack a resume point.

    Raises:
        ProtocolViolation: If the data is not exactly 4 bytes.

    """
    if len(data) != _RESUME_FORMAT.size:
        msg = f"Resume point must be {_RESUME_FORMAT.size} bytes, got {len(data)}"
        raise ProtocolViolation(msg)
    (resume_point,) = _RESUME_FORMAT.unpack(data)
    return resume_point


class Channel:
    """A one-way, non-blocking byte channel.

    Writes append a chunk; reads pop the oldest chunk or return None.
    Chunks are never split or merged, so one ``write`` pairs with one
    ``read``.  A lock makes it safe to write from an application
    thread while the kernel thread reads.
    """

    def __init__(self, *, name: str) -> None:
        """Create an open, empty channel.

        Args:
            name: Label used in log and error messages.

        """
        self._name = name
        self._buffer: deque[bytes] = deque()
        self._lock = Lock()

    @property
    def name(self) -> str:
        """Return the channel label."""
        return self._name

    def __len__(self) -> int:
        """Return the number of unread chunks."""
        with self._lock:
            return len(self._buffer)

    def is_empty(self) -> bool:
        """Return True if there is nothing to read."""
        return len(self) == 0

    def write(self, data: bytes) -> None:
        """Append one chunk to the channel."""
        with self._lock:
            self._buffer.append(data)

    def read(self) -> bytes | None:
        """Pop the oldest chunk, or return None if the channel is empty."""
        with self._lock:
            if not self._buffer:
                return None
            return self._buffer.popleft()

    def drain(self) -> list[bytes]:
        """Pop every unread chunk, oldest first."""
        with self._lock:
            chunks = list(self._buffer)
            self._buffer.clear()
        return chunks


@dataclass
class ChannelPair:
    """The two channels between one process and the kernel."""

    name: str
    inbound: Channel = field(init=False)
    outbound: Channel = field(init=False)

    def __post_init__(self) -> None:
        """Create both channels, labelled after the process."""
        self.inbound = Channel(name=f"{self.name}.in")
        self.outbound = Channel(name=f"{self.name}.out")

    # -- process side --------------------------------------------------------

    def send_context(self, context: SyscallContext) -> None:
        """Write a syscall context to the kernel (process side)."""
        self.outbound.write(context.encode())

    def receive_resume_point(self) -> int | None:
        """Drain the inbound channel and return the newest resume point.

        Called by the process at the start of each quantum.  Returns
        None when the kernel has delivered nothing.  If somehow more
        than one value is waiting, the last one wins.

        Raises:
            ProtocolViolation: If a chunk is malformed.

        """
        resume_point: int | None = None
        for chunk in self.inbound.drain():
            resume_point = decode_resume_point(chunk)
        return resume_point

    # -- kernel side ---------------------------------------------------------

    def read_context(self) -> SyscallContext:
        """Read exactly one syscall context (kernel side).

        Raises:
            ProtocolViolation: If the channel is empty or the data is malformed.

        """
        data = self.outbound.read()
        if data is None:
            msg = f"No syscall context available on {self.outbound.name}"
            raise ProtocolViolation(msg)
        return SyscallContext.decode(data)

    def deliver_resume_point(self, resume_point: int) -> None:
        """Write a resume point for the process (kernel side)."""
        self.inbound.write(encode_resume_point(resume_point))
