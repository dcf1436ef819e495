"""The scheduling daemon: serves client requests and runs due tasks."""

from __future__ import annotations

import argparse
import os
import select
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Sequence

from .operations import RequestHandler
from .paths import PipePaths, default_paths, make_dirs, tasks_dir
from .protocol import ProtocolError
from .runner import check_tasks
from .store import TaskStore

_CHUNK = 8192


def _next_minute(moment: float) -> float:
    return float((int(moment) // 60 + 1) * 60)


class Daemon:
    """Listens on the request pipe, answers on the reply pipe.

    Use ``setup_fifos`` once, then ``step`` or ``run``; ``close`` releases
    the request pipe.
    """

    def __init__(self, paths: PipePaths, store: TaskStore) -> None:
        self.paths = paths
        self.store = store
        self.handler = RequestHandler(store)
        self._fd: int | None = None
        self._poller: select.poll | None = None

    def __enter__(self) -> "Daemon":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def setup_fifos(self) -> None:
        """Create the pipe directory and both FIFOs, then open the request pipe."""
        make_dirs(self.paths.directory)
        for fifo in (self.paths.request, self.paths.reply):
            if not os.path.exists(fifo):
                os.mkfifo(fifo, 0o600)
        self._open_request()

    def _open_request(self) -> None:
        self._close_request()
        self._fd = os.open(self.paths.request, os.O_RDONLY | os.O_NONBLOCK)
        self._poller = select.poll()
        self._poller.register(self._fd, select.POLLIN)

    def _close_request(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
        self._fd = None
        self._poller = None

    def _read_request(self) -> bytes:
        """Read a whole request up to the client closing its end."""
        assert self._fd is not None
        os.set_blocking(self._fd, True)
        chunks = []
        while True:
            chunk = os.read(self._fd, _CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
        self._open_request()
        return b"".join(chunks)

    def _reply(self, payload: bytes) -> None:
        fd = os.open(self.paths.reply, os.O_WRONLY)
        try:
            view = memoryview(payload)
            while view:
                written = os.write(fd, view)
                view = view[written:]
        except BrokenPipeError:
            pass
        finally:
            os.close(fd)

    def step(self, timeout: float | None) -> bool:
        """Wait up to ``timeout`` seconds for one request and answer it.

        Returns False once a terminate request has been answered, True
        otherwise.
        """
        if self._poller is None:
            raise RuntimeError("request pipe is not open; call setup_fifos() first")
        millis = None if timeout is None else max(0, int(timeout * 1000))
        events = self._poller.poll(millis)
        if not events:
            return True
        _, mask = events[0]
        if not mask & select.POLLIN:
            self._open_request()
            return True
        data = self._read_request()
        if not data:
            return True
        try:
            response = self.handler.handle(data)
        except ProtocolError as exc:
            print(f"saturnd: ignoring request: {exc}", file=sys.stderr)
            return True
        self._reply(response.payload)
        return not response.terminate

    def run(self) -> None:
        """Serve requests and start due tasks at each minute until terminated."""
        if self._poller is None:
            self.setup_fifos()
        next_check = _next_minute(time.time())
        while True:
            if not self.step(max(0.0, next_check - time.time())):
                return
            now = time.time()
            if now >= next_check:
                check_tasks(self.store, datetime.fromtimestamp(next_check))
                next_check = _next_minute(now)

    def close(self) -> None:
        self._close_request()


def daemonize() -> None:
    """Detach from the terminal with the usual double fork."""
    if os.fork() > 0:
        os._exit(0)
    os.setsid()
    if os.fork() > 0:
        os._exit(0)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="saturnd",
                                     description="Run the task scheduling daemon.")
    parser.add_argument("-f", "--foreground", action="store_true",
                        help="do not detach from the terminal")
    parser.add_argument("-p", "--pipes-dir", default=None,
                        help="directory of the named pipes")
    parser.add_argument("-t", "--tasks-dir", default=None,
                        help="directory where tasks are stored")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Start the daemon; returns the process exit status."""
    args = _build_parser().parse_args(argv)
    if not args.foreground:
        daemonize()
    os.umask(0)
    paths = (PipePaths.from_directory(args.pipes_dir)
             if args.pipes_dir else default_paths())
    store = TaskStore(Path(args.tasks_dir) if args.tasks_dir else tasks_dir())
    try:
        make_dirs(store.root)
        with Daemon(paths, store) as daemon:
            daemon.setup_fifos()
            daemon.run()
    except OSError as exc:
        print(f"saturnd: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())