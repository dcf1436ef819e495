# saturnd

A small cron-like scheduler for a single user on a POSIX system. The
`saturnd` daemon keeps a set of tasks on disk and runs each one whenever its
timing matches the current minute. The `cassini` client talks to the daemon
through two named pipes to add, list and remove tasks and to look at what
they did.

## Installation

```
pip install .
```

No third-party libraries are needed. The test suite needs `pytest`
(`pip install .[test]`).

## Starting the daemon

```
saturnd                 # detach from the terminal and serve
saturnd -f              # stay in the foreground
saturnd -p PIPES_DIR    # use another directory for the named pipes
saturnd -t TASKS_DIR    # keep tasks in another directory
```

By default the pipes `saturnd-request-pipe` and `saturnd-reply-pipe` are
created in `/tmp/<USERNAME>/saturnd/pipes`, and tasks are kept under
`/tmp/<USERNAME>/saturnd/tasks`. The user name comes from `$USER` when it is
set. There is one directory per task, so tasks survive a restart, and task
ids are never reused while the daemon runs.

At the start of every minute the daemon checks every task and starts, each
in a background thread, those whose timing matches. Each run records its
start time and exit code. A task killed by a signal records 65535. A command
that cannot be started records 255. The standard output and standard error
of the most recent run are kept in the task's `stdout` and `stderr` files.

## Using the client

```
cassini -l                      # list all tasks (the default)
cassini -c -m 0 -H 9-17 -d 1-5 echo hello
                                # add a task, print its TASKID
cassini -r TASKID               # remove a task
cassini -x TASKID               # time and exit code of every past run
cassini -o TASKID               # standard output of the last run
cassini -e TASKID               # standard error of the last run
cassini -q                      # stop the daemon
cassini -h                      # show usage
```

Use `-p PIPES_DIR` to point the client at a pipes directory other than the
default. When several operations are given, the last one wins. The client
exits with status 1 on a usage error, an error reply from the daemon
(for example an unknown task id, or `-o`/`-e` on a task that never ran), a
malformed reply or an I/O error.

Tasks are listed one per line in the form:

```
TASKID: MINUTES HOURS DAYSOFWEEK COMMAND ARGS...
```

Past runs are listed one per line as `YYYY-MM-DD HH:MM:SS EXITCODE`, in
local time.

### Timing fields

The `-m`, `-H` and `-d` options take crontab-style fields. A field is `*` or
a comma-separated list of numbers and ranges such as `1,5-9,30`. Minutes go
from 0 to 59, hours from 0 to 23 and days of the week from 0 (Sunday) to 6
(Saturday). Each field defaults to `*`. Step values such as `*/5` and names
of days are not part of the syntax.

## Using it as a library

```python
from saturnd.timing import Timing
from saturnd.paths import PipePaths
from saturnd.client import Client, format_task

timing = Timing.from_strings("0", "9-17", "1-5")
print(timing)  # "0 9-17 1-5"

client = Client(PipePaths.from_directory("/tmp/me/saturnd/pipes"))
for task in client.list_tasks():
    print(format_task(task))
```

- `saturnd.timing`: `Timing` (bit masks, `from_strings`, `matches`, `str()`),
  `parse_field`, `format_field` and `TimingError`.
- `saturnd.protocol`: the big-endian wire format. It has the request, reply
  and error codes, the `encode_*` functions and the `Reader` decoder, used by
  both sides.
- `saturnd.paths`: `PipePaths` and the default locations.
- `saturnd.store`: `TaskStore` manages the on-disk task directories. It
  raises `TaskNotFound` and `NeverRun`.
- `saturnd.operations`: `RequestHandler` turns request bytes into a
  `Response`.
- `saturnd.runner`: `run_task`, `due_tasks` and `check_tasks`.
- `saturnd.client`: `Client`, `DaemonError`, `format_task` and `format_run`.
- `saturnd.daemon`: `Daemon` (with `setup_fifos`, `step`, `run` and `close`)
  and `daemonize`.

## Limitations

The daemon serves one request at a time over a single pair of named pipes. It
is meant for one user and has no access control beyond the pipes' file mode.
Only the last run's output is kept. Nothing limits how long a task may run.