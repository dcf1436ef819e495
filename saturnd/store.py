"""On-disk storage of tasks, their definitions, runs and captured output."""

from __future__ import annotations

import os
import struct
import time
from pathlib import Path
from typing import Iterable

from .paths import make_dirs, remove_tree
from .protocol import ErrorCode, Reader, Run, TaskInfo, encode_command, encode_timing
from .timing import Timing

_TASKID_FILE = "taskid"
_TIMING_FILE = "timing"
_COMMAND_FILE = "command"
_RUNS_DIR = "runs"
_TIME_FILE = "time"
_EXITCODE_FILE = "exitcode"
_STREAMS = ("stdout", "stderr")


class TaskNotFound(LookupError):
    """Raised when no task has the requested id."""

    code = ErrorCode.NOT_FOUND


class NeverRun(LookupError):
    """Raised when a task exists but has not produced any output yet."""

    code = ErrorCode.NEVER_RUN


def _numeric_entries(directory: Path) -> list[int]:
    """Integer names of the visible entries of ``directory``, sorted."""
    if not directory.is_dir():
        return []
    numbers = []
    for entry in directory.iterdir():
        if entry.name.startswith("."):
            continue
        try:
            numbers.append(int(entry.name))
        except ValueError:
            continue
    return sorted(numbers)


class TaskStore:
    """Tasks kept as one directory per task id under ``root``.

    Each task directory holds ``taskid``, ``timing`` and ``command`` files,
    a ``runs`` directory with one numbered sub-directory per run, and the
    ``stdout``/``stderr`` files of the most recent run.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)
        self._last_taskid: int | None = None

    def task_dir(self, taskid: int) -> Path:
        return self.root / str(taskid)

    def exists(self, taskid: int) -> bool:
        return self.task_dir(taskid).is_dir()

    def _require(self, taskid: int) -> Path:
        path = self.task_dir(taskid)
        if not path.is_dir():
            raise TaskNotFound(f"task {taskid} not found")
        return path

    def task_ids(self) -> list[int]:
        """Ids of all stored tasks in increasing order."""
        return _numeric_entries(self.root)

    def next_taskid(self) -> int:
        """The id the next created task will receive; ids are never reused."""
        highest = max(self.task_ids(), default=0)
        if self._last_taskid is not None:
            highest = max(highest, self._last_taskid)
        return highest + 1

    def create(self, timing: Timing, command: Iterable[str | bytes]) -> int:
        """Store a new task and return its id."""
        taskid = self.next_taskid()
        path = self.task_dir(taskid)
        make_dirs(path)
        (path / _TASKID_FILE).write_bytes(struct.pack(">Q", taskid))
        (path / _TIMING_FILE).write_bytes(encode_timing(timing))
        (path / _COMMAND_FILE).write_bytes(encode_command(command))
        (path / _RUNS_DIR).mkdir()
        self._last_taskid = taskid
        return taskid

    def timing(self, taskid: int) -> Timing:
        path = self._require(taskid)
        return Reader((path / _TIMING_FILE).read_bytes()).timing()

    def command(self, taskid: int) -> list[str]:
        path = self._require(taskid)
        return Reader((path / _COMMAND_FILE).read_bytes()).command()

    def load(self, taskid: int) -> TaskInfo:
        path = self._require(taskid)
        stored_id = Reader((path / _TASKID_FILE).read_bytes()).uint64()
        return TaskInfo(stored_id, self.timing(taskid), tuple(self.command(taskid)))

    def tasks(self) -> list[TaskInfo]:
        """All tasks, first created first."""
        return [self.load(taskid) for taskid in self.task_ids()]

    def remove(self, taskid: int) -> None:
        path = self._require(taskid)
        remove_tree(path)

    def runs(self, taskid: int) -> list[Run]:
        """Finished runs of a task in the order they started."""
        runs_dir = self._require(taskid) / _RUNS_DIR
        result = []
        for number in _numeric_entries(runs_dir):
            run_dir = runs_dir / str(number)
            time_file = run_dir / _TIME_FILE
            exitcode_file = run_dir / _EXITCODE_FILE
            if not (time_file.is_file() and exitcode_file.is_file()):
                continue
            started = Reader(time_file.read_bytes()).int64()
            code = Reader(exitcode_file.read_bytes()).uint16()
            result.append(Run(started, code))
        return result

    def start_run(self, taskid: int, when: int | None = None) -> int:
        """Record the start of a new run and return its run number."""
        runs_dir = self._require(taskid) / _RUNS_DIR
        runs_dir.mkdir(exist_ok=True)
        number = max(_numeric_entries(runs_dir), default=0) + 1
        run_dir = runs_dir / str(number)
        run_dir.mkdir()
        started = int(time.time()) if when is None else int(when)
        (run_dir / _TIME_FILE).write_bytes(struct.pack(">q", started))
        return number

    def record_exitcode(self, taskid: int, run: int, code: int) -> None:
        run_dir = self._require(taskid) / _RUNS_DIR / str(run)
        if not run_dir.is_dir():
            raise LookupError(f"task {taskid} has no run {run}")
        (run_dir / _EXITCODE_FILE).write_bytes(struct.pack(">H", code & 0xFFFF))

    def output(self, taskid: int, stream: str) -> bytes:
        """Captured ``stdout`` or ``stderr`` of the last run of a task."""
        if stream not in _STREAMS:
            raise ValueError(f"unknown stream {stream!r}")
        path = self._require(taskid) / stream
        if not path.is_file():
            raise NeverRun(f"task {taskid} has never run")
        return path.read_bytes()