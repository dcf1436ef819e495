"""Decoding of client requests and building of the daemon's replies."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable

from .protocol import (
    ErrorCode,
    ProtocolError,
    Reader,
    RequestCode,
    encode_command,
    encode_error,
    encode_ok,
    encode_string,
    encode_timing,
)
from .store import NeverRun, TaskNotFound, TaskStore


@dataclass(frozen=True)
class Response:
    """Bytes to send back to the client, and whether the daemon must stop."""

    payload: bytes
    terminate: bool = False


class RequestHandler:
    """Executes client requests against a task store."""

    def __init__(self, store: TaskStore) -> None:
        self.store = store
        self._handlers: dict[RequestCode, Callable[[Reader], Response]] = {
            RequestCode.LIST_TASKS: self._list_tasks,
            RequestCode.CREATE_TASK: self._create_task,
            RequestCode.REMOVE_TASK: self._remove_task,
            RequestCode.GET_TIMES_AND_EXITCODES: self._times_and_exitcodes,
            RequestCode.TERMINATE: self._terminate,
            RequestCode.GET_STDOUT: lambda reader: self._output(reader, "stdout"),
            RequestCode.GET_STDERR: lambda reader: self._output(reader, "stderr"),
        }

    def handle(self, data: bytes) -> Response:
        """Decode one request and return the reply for it.

        Raises ProtocolError for a truncated message or an unknown opcode.
        """
        reader = Reader(data)
        opcode = reader.uint16()
        try:
            code = RequestCode(opcode)
        except ValueError:
            raise ProtocolError(f"unknown operation 0x{opcode:04x}") from None
        return self._handlers[code](reader)

    def _list_tasks(self, reader: Reader) -> Response:
        tasks = self.store.tasks()
        body = [struct.pack(">I", len(tasks))]
        for task in tasks:
            body.append(struct.pack(">Q", task.taskid))
            body.append(encode_timing(task.timing))
            body.append(encode_command(task.command))
        return Response(encode_ok(b"".join(body)))

    def _create_task(self, reader: Reader) -> Response:
        timing = reader.timing()
        command = reader.command()
        taskid = self.store.create(timing, command)
        return Response(encode_ok(struct.pack(">Q", taskid)))

    def _remove_task(self, reader: Reader) -> Response:
        taskid = reader.uint64()
        try:
            self.store.remove(taskid)
        except (TaskNotFound, OSError):
            return Response(encode_error(ErrorCode.NOT_FOUND))
        return Response(encode_ok())

    def _times_and_exitcodes(self, reader: Reader) -> Response:
        taskid = reader.uint64()
        try:
            runs = self.store.runs(taskid)
        except TaskNotFound:
            return Response(encode_error(ErrorCode.NOT_FOUND))
        body = struct.pack(">I", len(runs)) + b"".join(
            struct.pack(">qH", run.time, run.exitcode) for run in runs)
        return Response(encode_ok(body))

    def _output(self, reader: Reader, stream: str) -> Response:
        taskid = reader.uint64()
        try:
            data = self.store.output(taskid, stream)
        except (TaskNotFound, NeverRun) as exc:
            return Response(encode_error(exc.code))
        return Response(encode_ok(encode_string(data)))

    def _terminate(self, reader: Reader) -> Response:
        return Response(encode_ok(), terminate=True)