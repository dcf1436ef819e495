"""Command-line client: sends one request to the daemon and prints the answer."""

from __future__ import annotations

import argparse
import re
import sys
from typing import Sequence

from .client import Client, DaemonError, format_run, format_task
from .paths import PipePaths, default_paths
from .protocol import ProtocolError, RequestCode
from .timing import Timing, TimingError

USAGE = """\
   usage: cassini [OPTIONS] -l -> list all tasks
      or: cassini [OPTIONS]    -> same
      or: cassini [OPTIONS] -q -> terminate the daemon
      or: cassini [OPTIONS] -c [-m MINUTES] [-H HOURS] [-d DAYSOFWEEK] COMMAND_NAME [ARG_1] ... [ARG_N]
          -> add a new task and print its TASKID
             the "timing" fields follow the format & semantics of crontab(5)
             default value for each field is "*"
      or: cassini [OPTIONS] -r TASKID -> remove a task
      or: cassini [OPTIONS] -x TASKID -> get info (time + exit code) on all the past runs of a task
      or: cassini [OPTIONS] -o TASKID -> get the standard output of the last run of a task
      or: cassini [OPTIONS] -e TASKID -> get the standard error
      or: cassini -h -> display this message

   options:
     -p PIPES_DIR -> look for the pipes in PIPES_DIR (default: /tmp/<USERNAME>/saturnd/pipes)
"""

_DIGITS = re.compile(r"[0-9]+")
_UINT64_MAX = (1 << 64) - 1


class _UsageError(Exception):
    """Raised by the parser instead of exiting."""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise _UsageError(message)


class _TaskIdAction(argparse.Action):
    """Selects an operation that takes a task id, and stores the id."""

    def __call__(self, parser, namespace, values, option_string=None):
        namespace.operation = self.const
        namespace.taskid = values


def _taskid(text: str) -> int:
    if not _DIGITS.fullmatch(text):
        raise argparse.ArgumentTypeError(f"invalid task id {text!r}")
    value = int(text)
    if value > _UINT64_MAX:
        raise argparse.ArgumentTypeError(f"task id {text} is too large")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Parser for the client's options; the last operation given wins."""
    parser = _Parser(prog="cassini", add_help=False, usage=USAGE)
    parser.set_defaults(operation=RequestCode.LIST_TASKS, taskid=None)
    parser.add_argument("-h", dest="help", action="store_true")
    parser.add_argument("-l", dest="operation", action="store_const",
                        const=RequestCode.LIST_TASKS)
    parser.add_argument("-c", dest="operation", action="store_const",
                        const=RequestCode.CREATE_TASK)
    parser.add_argument("-q", dest="operation", action="store_const",
                        const=RequestCode.TERMINATE)
    parser.add_argument("-m", dest="minutes", default="*", metavar="MINUTES")
    parser.add_argument("-H", dest="hours", default="*", metavar="HOURS")
    parser.add_argument("-d", dest="days", default="*", metavar="DAYSOFWEEK")
    parser.add_argument("-p", dest="pipes_dir", default=None, metavar="PIPES_DIR")
    for flag, code in (("-r", RequestCode.REMOVE_TASK),
                       ("-x", RequestCode.GET_TIMES_AND_EXITCODES),
                       ("-o", RequestCode.GET_STDOUT),
                       ("-e", RequestCode.GET_STDERR)):
        parser.add_argument(flag, dest="taskid", metavar="TASKID", type=_taskid,
                            action=_TaskIdAction, const=code)
    parser.add_argument("command", nargs=argparse.REMAINDER)
    return parser


def _write_bytes(data: bytes) -> None:
    sys.stdout.flush()
    buffer = getattr(sys.stdout, "buffer", None)
    if buffer is None:
        sys.stdout.write(data.decode("utf-8", "replace"))
    else:
        buffer.write(data)
        buffer.flush()


def _dispatch(client: Client, args: argparse.Namespace) -> None:
    operation = args.operation
    if operation == RequestCode.LIST_TASKS:
        for task in client.list_tasks():
            print(format_task(task))
    elif operation == RequestCode.CREATE_TASK:
        timing = Timing.from_strings(args.minutes, args.hours, args.days)
        print(client.create_task(timing, args.command))
    elif operation == RequestCode.TERMINATE:
        client.terminate()
    elif operation == RequestCode.REMOVE_TASK:
        client.remove_task(args.taskid)
    elif operation == RequestCode.GET_TIMES_AND_EXITCODES:
        for run in client.times_and_exitcodes(args.taskid):
            print(format_run(run))
    elif operation == RequestCode.GET_STDOUT:
        _write_bytes(client.stdout(args.taskid))
    elif operation == RequestCode.GET_STDERR:
        _write_bytes(client.stderr(args.taskid))


def main(argv: Sequence[str] | None = None) -> int:
    """Run the client; returns the process exit status."""
    try:
        args = build_parser().parse_args(argv)
    except _UsageError as exc:
        print(f"cassini: {exc}", file=sys.stderr)
        print(USAGE, end="", file=sys.stderr)
        return 1
    if args.help:
        print(USAGE, end="")
        return 0

    paths = (PipePaths.from_directory(args.pipes_dir)
             if args.pipes_dir else default_paths())
    try:
        _dispatch(Client(paths), args)
    except (DaemonError, ProtocolError, TimingError, OSError) as exc:
        print(f"cassini: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())