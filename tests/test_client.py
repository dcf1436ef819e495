import os
import struct
import threading
from datetime import datetime

import pytest

from saturnd.client import Client, DaemonError, format_run, format_task
from saturnd.operations import RequestHandler
from saturnd.paths import PipePaths
from saturnd.protocol import (
    ErrorCode,
    ProtocolError,
    Run,
    TaskInfo,
    encode_error,
    encode_ok,
)
from saturnd.store import TaskStore
from saturnd.timing import Timing


@pytest.fixture
def paths(tmp_path):
    pipes = PipePaths.from_directory(tmp_path / "pipes")
    pipes.directory.mkdir()
    os.mkfifo(pipes.request)
    os.mkfifo(pipes.reply)
    return pipes


@pytest.fixture
def store(tmp_path):
    root = tmp_path / "tasks"
    root.mkdir()
    return TaskStore(root)


def _serve(paths, respond):
    """Answer one request in a background thread; returns the captured requests."""
    received = []

    def worker():
        with open(paths.request, "rb") as pipe:
            data = pipe.read()
        received.append(data)
        reply = respond(data)
        with open(paths.reply, "wb") as pipe:
            pipe.write(reply)

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    return received, thread


def _serve_store(paths, store):
    handler = RequestHandler(store)
    return _serve(paths, lambda data: handler.handle(data).payload)


def test_list_tasks_empty_sends_ls(paths):
    received, thread = _serve(paths, lambda data: encode_ok(struct.pack(">I", 0)))
    assert Client(paths).list_tasks() == []
    thread.join(5)
    assert received == [b"LS"]


def test_create_task_round_trip(paths, store):
    received, thread = _serve_store(paths, store)
    taskid = Client(paths).create_task(Timing.from_strings("5", "*", "1-5"),
                                       ["echo", "hi"])
    thread.join(5)
    assert taskid == 1
    assert received[0][:2] == b"CR"
    assert store.command(1) == ["echo", "hi"]
    assert store.timing(1) == Timing.from_strings("5", "*", "1-5")


def test_list_tasks_after_create(paths, store):
    timing = Timing.from_strings("0", "12", "*")
    store.create(timing, ["ls", "-l"])
    _, thread = _serve_store(paths, store)
    tasks = Client(paths).list_tasks()
    thread.join(5)
    assert tasks == [TaskInfo(1, timing, ("ls", "-l"))]


def test_remove_task(paths, store):
    store.create(Timing.from_strings(), ["true"])
    received, thread = _serve_store(paths, store)
    Client(paths).remove_task(1)
    thread.join(5)
    assert received[0] == b"RM" + struct.pack(">Q", 1)
    assert not store.exists(1)


def test_remove_missing_task_raises_not_found(paths, store):
    _, thread = _serve_store(paths, store)
    with pytest.raises(DaemonError) as info:
        Client(paths).remove_task(42)
    thread.join(5)
    assert info.value.code is ErrorCode.NOT_FOUND


def test_stdout_never_run(paths, store):
    store.create(Timing.from_strings(), ["echo", "hi"])
    _, thread = _serve_store(paths, store)
    with pytest.raises(DaemonError) as info:
        Client(paths).stdout(1)
    thread.join(5)
    assert info.value.code is ErrorCode.NEVER_RUN


def test_stdout_and_stderr_contents(paths, store):
    store.create(Timing.from_strings(), ["echo", "hi"])
    (store.task_dir(1) / "stdout").write_bytes(b"hi\n")
    (store.task_dir(1) / "stderr").write_bytes(b"oops\n")
    _, thread = _serve_store(paths, store)
    assert Client(paths).stdout(1) == b"hi\n"
    thread.join(5)
    _, thread = _serve_store(paths, store)
    assert Client(paths).stderr(1) == b"oops\n"
    thread.join(5)


def test_stderr_missing_task(paths, store):
    _, thread = _serve_store(paths, store)
    with pytest.raises(DaemonError) as info:
        Client(paths).stderr(7)
    thread.join(5)
    assert info.value.code is ErrorCode.NOT_FOUND


def test_times_and_exitcodes(paths, store):
    store.create(Timing.from_strings(), ["true"])
    run = store.start_run(1, when=1000)
    store.record_exitcode(1, run, 3)
    _, thread = _serve_store(paths, store)
    runs = Client(paths).times_and_exitcodes(1)
    thread.join(5)
    assert runs == [Run(1000, 3)]


def test_terminate_sends_tm(paths):
    received, thread = _serve(paths, lambda data: encode_ok())
    Client(paths).terminate()
    thread.join(5)
    assert received == [b"TM"]


def test_terminate_error_reply(paths):
    _, thread = _serve(paths, lambda data: encode_error(ErrorCode.NOT_FOUND))
    with pytest.raises(DaemonError):
        Client(paths).terminate()
    thread.join(5)


def test_corrupted_reply_type(paths):
    _, thread = _serve(paths, lambda data: b"ZZ")
    with pytest.raises(ProtocolError):
        Client(paths).terminate()
    thread.join(5)


def test_corrupted_error_code(paths):
    _, thread = _serve(paths, lambda data: b"ERZZ")
    with pytest.raises(ProtocolError):
        Client(paths).stdout(1)
    thread.join(5)


def test_format_task():
    task = TaskInfo(3, Timing.from_strings(), ("echo", "hi"))
    assert format_task(task) == "3: * * * echo hi"


def test_format_run():
    moment = datetime(2021, 12, 1, 10, 30, 5)
    assert format_run(Run(int(moment.timestamp()), 2)) == "2021-12-01 10:30:05 2"