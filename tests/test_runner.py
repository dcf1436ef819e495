import time
from datetime import datetime

import pytest

from saturnd.runner import check_tasks, due_tasks, exit_status, run_task
from saturnd.store import TaskNotFound, TaskStore
from saturnd.timing import Timing


@pytest.fixture
def store(tmp_path):
    return TaskStore(tmp_path / "tasks")


def test_exit_status_normal():
    assert exit_status(0) == 0
    assert exit_status(3) == 3


def test_exit_status_killed():
    assert exit_status(-9) == 0xFFFF


def test_run_task_records_output_and_code(store):
    taskid = store.create(Timing.from_strings(),
                          ["sh", "-c", "echo hi; echo oops >&2; exit 3"])
    before = int(time.time())
    assert run_task(store, taskid) == 3
    after = int(time.time())
    assert store.output(taskid, "stdout") == b"hi\n"
    assert store.output(taskid, "stderr") == b"oops\n"
    runs = store.runs(taskid)
    assert len(runs) == 1
    assert runs[0].exitcode == 3
    assert before <= runs[0].time <= after


def test_output_keeps_only_last_run(store):
    taskid = store.create(Timing.from_strings(), ["echo", "again"])
    run_task(store, taskid)
    run_task(store, taskid)
    assert store.output(taskid, "stdout") == b"again\n"
    assert [run.exitcode for run in store.runs(taskid)] == [0, 0]


def test_killed_task(store):
    taskid = store.create(Timing.from_strings(), ["sh", "-c", "kill -9 $$"])
    assert run_task(store, taskid) == 0xFFFF
    assert store.runs(taskid)[0].exitcode == 0xFFFF


def test_missing_program(store):
    taskid = store.create(Timing.from_strings(), ["no-such-program-for-saturnd"])
    assert run_task(store, taskid) == 255
    assert store.output(taskid, "stderr").startswith(b"execvp error")
    assert store.runs(taskid)[0].exitcode == 255


def test_run_unknown_task(store):
    with pytest.raises(TaskNotFound):
        run_task(store, 42)


def test_due_tasks(store):
    moment = datetime(2024, 1, 1, 12, 30)
    due = store.create(Timing.from_strings("30", "12", "*"), ["true"])
    store.create(Timing.from_strings("0", "12", "*"), ["true"])
    always = store.create(Timing.from_strings(), ["true"])
    assert due_tasks(store, moment) == [due, always]


def test_due_tasks_without_tasks_dir(store):
    assert due_tasks(store, datetime(2024, 1, 1)) == []


def test_check_tasks_runs_due_tasks(store):
    moment = datetime(2024, 1, 1, 12, 30)
    due = store.create(Timing.from_strings("30", "*", "*"), ["echo", "ran"])
    idle = store.create(Timing.from_strings("31", "*", "*"), ["echo", "idle"])
    threads = check_tasks(store, moment)
    for thread in threads:
        thread.join(timeout=10)
    assert len(threads) == 1
    assert store.output(due, "stdout") == b"ran\n"
    assert store.runs(idle) == []