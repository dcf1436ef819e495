"""Client side of the daemon protocol: sends requests over the named pipes."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from .paths import PipePaths
from .protocol import (
    ErrorCode,
    ProtocolError,
    Reader,
    ReplyCode,
    RequestCode,
    Run,
    TaskInfo,
    encode_create_request,
    encode_list_request,
    encode_taskid_request,
    encode_terminate_request,
)
from .timing import Timing

_MESSAGES = {
    ErrorCode.NOT_FOUND: "Task with the given taskid was not found.",
    ErrorCode.NEVER_RUN: "Task with the given taskid wasn't run at least once.",
}


class DaemonError(Exception):
    """Raised when the daemon answers a request with an error reply."""

    def __init__(self, code: ErrorCode | None, message: str | None = None) -> None:
        if message is None:
            message = _MESSAGES.get(code, "daemon responded with an error code") \
                if code is not None else "daemon responded with an error code"
        super().__init__(message)
        self.code = code


class Client:
    """Talks to a running daemon through its request and reply pipes."""

    def __init__(self, paths: PipePaths) -> None:
        self.paths = paths

    def _exchange(self, request: bytes) -> Reader:
        with open(self.paths.request, "wb") as pipe:
            pipe.write(request)
        with open(self.paths.reply, "rb") as pipe:
            data = pipe.read()
        return Reader(data)

    def _call(self, request: bytes) -> Reader:
        """Send ``request``, check the reply type and return the rest of it."""
        reader = self._exchange(request)
        reptype = reader.uint16()
        if reptype == ReplyCode.OK:
            return reader
        if reptype == ReplyCode.ERROR:
            if reader.remaining < 2:
                raise DaemonError(None)
            errcode = reader.uint16()
            try:
                code = ErrorCode(errcode)
            except ValueError:
                raise ProtocolError(
                    f"error code 0x{errcode:04x} is corrupted") from None
            raise DaemonError(code)
        raise ProtocolError(f"reply type 0x{reptype:04x} is corrupted")

    def list_tasks(self) -> list[TaskInfo]:
        reader = self._call(encode_list_request())
        tasks = []
        for _ in range(reader.uint32()):
            taskid = reader.uint64()
            timing = reader.timing()
            command = tuple(reader.command())
            tasks.append(TaskInfo(taskid, timing, command))
        return tasks

    def create_task(self, timing: Timing, argv: Iterable[str | bytes]) -> int:
        """Create a task and return the id the daemon assigned to it."""
        reader = self._call(encode_create_request(timing, argv))
        return reader.uint64()

    def remove_task(self, taskid: int) -> None:
        self._call(encode_taskid_request(RequestCode.REMOVE_TASK, taskid))

    def times_and_exitcodes(self, taskid: int) -> list[Run]:
        reader = self._call(
            encode_taskid_request(RequestCode.GET_TIMES_AND_EXITCODES, taskid))
        return [Run(reader.int64(), reader.uint16())
                for _ in range(reader.uint32())]

    def _output(self, code: RequestCode, taskid: int) -> bytes:
        reader = self._call(encode_taskid_request(code, taskid))
        return reader.read(reader.uint32())

    def stdout(self, taskid: int) -> bytes:
        """Standard output of the last run of a task."""
        return self._output(RequestCode.GET_STDOUT, taskid)

    def stderr(self, taskid: int) -> bytes:
        """Standard error of the last run of a task."""
        return self._output(RequestCode.GET_STDERR, taskid)

    def terminate(self) -> None:
        self._call(encode_terminate_request())


def format_task(task: TaskInfo) -> str:
    """One line of the task listing: ``ID: TIMING COMMAND...``."""
    return " ".join([f"{task.taskid}:", str(task.timing), *task.command])


def format_run(run: Run) -> str:
    """A past run as ``YYYY-MM-DD HH:MM:SS EXITCODE`` in local time."""
    stamp = datetime.fromtimestamp(run.time).strftime("%Y-%m-%d %H:%M:%S")
    return f"{stamp} {run.exitcode}"