"""Wire format shared by the client and the daemon (big-endian binary)."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable

from .timing import Timing

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


class RequestCode(IntEnum):
    LIST_TASKS = 0x4C53
    CREATE_TASK = 0x4352
    REMOVE_TASK = 0x524D
    GET_TIMES_AND_EXITCODES = 0x5458
    TERMINATE = 0x544D
    GET_STDOUT = 0x534F
    GET_STDERR = 0x5345


class ReplyCode(IntEnum):
    OK = 0x4F4B
    ERROR = 0x4552


class ErrorCode(IntEnum):
    NOT_FOUND = 0x4E46
    NEVER_RUN = 0x4E52


class ProtocolError(Exception):
    """Raised when a message is truncated or malformed."""


@dataclass(frozen=True)
class TaskInfo:
    """A task as listed by the daemon."""

    taskid: int
    timing: Timing
    command: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Run:
    """One past run of a task: start time (epoch seconds) and exit code."""

    time: int
    exitcode: int


class Reader:
    """Sequential decoder over a received message."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, size: int) -> bytes:
        if size < 0 or size > self.remaining:
            raise ProtocolError(
                f"wanted {size} bytes, only {self.remaining} left in message")
        chunk = self._data[self._pos:self._pos + size]
        self._pos += size
        return chunk

    def _unpack(self, fmt: str) -> int:
        (value,) = struct.unpack(fmt, self.read(struct.calcsize(fmt)))
        return value

    def uint8(self) -> int:
        return self._unpack(">B")

    def uint16(self) -> int:
        return self._unpack(">H")

    def uint32(self) -> int:
        return self._unpack(">I")

    def uint64(self) -> int:
        return self._unpack(">Q")

    def int64(self) -> int:
        return self._unpack(">q")

    def string(self) -> str:
        """Read a length-prefixed string; anything from a NUL byte on is dropped."""
        raw = self.read(self.uint32())
        return raw.split(b"\0", 1)[0].decode(_ENCODING, _ERRORS)

    def timing(self) -> Timing:
        minutes = self.uint64()
        hours = self.uint32()
        days = self.uint8()
        return Timing(minutes, hours, days)

    def command(self) -> list[str]:
        return [self.string() for _ in range(self.uint32())]


def encode_string(value: str | bytes) -> bytes:
    raw = value if isinstance(value, bytes) else value.encode(_ENCODING, _ERRORS)
    return struct.pack(">I", len(raw)) + raw


def encode_timing(timing: Timing) -> bytes:
    return struct.pack(">QIB", timing.minutes, timing.hours, timing.daysofweek)


def encode_command(argv: Iterable[str | bytes]) -> bytes:
    args = list(argv)
    return struct.pack(">I", len(args)) + b"".join(encode_string(a) for a in args)


def encode_list_request() -> bytes:
    return struct.pack(">H", RequestCode.LIST_TASKS)


def encode_terminate_request() -> bytes:
    return struct.pack(">H", RequestCode.TERMINATE)


def encode_create_request(timing: Timing, argv: Iterable[str | bytes]) -> bytes:
    return (struct.pack(">H", RequestCode.CREATE_TASK)
            + encode_timing(timing) + encode_command(argv))


def encode_taskid_request(code: RequestCode, taskid: int) -> bytes:
    return struct.pack(">HQ", code, taskid)


def encode_ok(payload: bytes = b"") -> bytes:
    return struct.pack(">H", ReplyCode.OK) + payload


def encode_error(code: ErrorCode) -> bytes:
    return struct.pack(">HH", ReplyCode.ERROR, code)