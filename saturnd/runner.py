"""Running stored tasks and finding the ones that are due."""

from __future__ import annotations

import subprocess
import threading
from datetime import datetime

from .protocol import ProtocolError
from .store import TaskNotFound, TaskStore

EXEC_FAILURE = 255
KILLED = 0xFFFF


def exit_status(returncode: int) -> int:
    """Exit code to record for a finished process; 0xFFFF if it was killed."""
    if returncode < 0:
        return KILLED
    return returncode & 0xFF


def run_task(store: TaskStore, taskid: int) -> int:
    """Run a task once, capturing its output, and return the recorded code.

    The ``stdout`` and ``stderr`` files only keep the last run; the start
    time is logged just before the command starts and the exit code once it
    has finished.
    """
    argv = store.command(taskid)
    task_dir = store.task_dir(taskid)
    with open(task_dir / "stdout", "wb") as out, \
            open(task_dir / "stderr", "wb") as err:
        run = store.start_run(taskid)
        if not argv:
            err.write(b"execvp error: empty command\n")
            code = EXEC_FAILURE
        else:
            try:
                finished = subprocess.run(
                    argv, stdin=subprocess.DEVNULL, stdout=out, stderr=err,
                    check=False)
            except OSError as exc:
                err.write(f"execvp error: {exc.strerror}\n".encode())
                code = EXEC_FAILURE
            else:
                code = exit_status(finished.returncode)
    store.record_exitcode(taskid, run, code)
    return code


def due_tasks(store: TaskStore, moment: datetime | None = None) -> list[int]:
    """Ids of the tasks whose timing matches ``moment`` (default: now)."""
    if moment is None:
        moment = datetime.now()
    due = []
    for taskid in store.task_ids():
        try:
            timing = store.timing(taskid)
        except (TaskNotFound, ProtocolError, OSError):
            continue
        if timing.matches(moment):
            due.append(taskid)
    return due


def _run_quietly(store: TaskStore, taskid: int) -> None:
    try:
        run_task(store, taskid)
    except (TaskNotFound, ProtocolError, OSError, LookupError):
        pass


def check_tasks(store: TaskStore,
                moment: datetime | None = None) -> list[threading.Thread]:
    """Start every due task in the background and return the started threads."""
    threads = []
    for taskid in due_tasks(store, moment):
        thread = threading.Thread(
            target=_run_quietly, args=(store, taskid), daemon=True,
            name=f"task-{taskid}")
        thread.start()
        threads.append(thread)
    return threads