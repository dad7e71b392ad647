# tinyshell

A tiny Unix shell with job control, together with the tools used to check
such a shell: a trace runner that feeds a shell scripted commands and
signals, a driver that compares a shell's output with that of a reference
shell, and a set of small helper programs that traces start as jobs.

It runs on POSIX systems only: it relies on `fork`, process signals and
Unix domain sockets. It has no dependencies outside the standard library.

## Installing

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## The shell

```
tinyshell [-hvp]
```

- `-h` prints a help message
- `-v` prints extra diagnostic information (`Added job. [jid] pid cmdline` for each new job)
- `-p` does not print a prompt, which is handy for automatic testing

The prompt is `eslab_tsh> `. Standard error is sent to standard output.
Each line names a program by its path, followed by its arguments,
separated by spaces; text between single quotes is one argument. The
program is started with `execve` exactly as named; when that fails the
shell prints `<name> : Command not found`. A trailing `&` runs the job in
the background and the shell prints `(jid) (pid) cmdline` for it. Without
`&` the shell waits until the job is no longer in the foreground.

Built-in commands:

- `quit` leaves the shell
- `jobs` lists the jobs as `(jid) (pid) Running|Foreground|Stopped cmdline`

SIGINT (ctrl-c) is passed on to the foreground job. When a child is
killed by a signal the shell reports
`Job [jid] (pid) terminated by signal N`. SIGQUIT ends the shell with
`Terminating after receipt of SIGQUIT signal`. At most 16 jobs may exist
at once; one more prints `Tried to create too many jobs`.

From Python:

- `tinyshell.shell.Shell(verbose, emit_prompt, out, jitter)` with `eval`,
  `builtin_command`, `reap_children`, `install_signal_handlers` and
  `run(stdin)`; `quit` raises `ShellExit`
- `tinyshell.jobs.JobList`, the job table, with `add`, `delete`,
  `foreground_pid`, `get_by_pid`, `get_by_jid`, `pid_to_jid` and
  `format_listing`; `add` raises `TooManyJobsError` when it is full
- `tinyshell.commandline.parse_line(cmdline)`, returning a `ParsedCommand`
  with `argv` and `background`
- `tinyshell.forking.jitter_fork()`, a fork that sleeps for a random time
  of up to 0.1 s in either the parent or the child, to bring out races;
  the shell uses it when created with `jitter=True`

### What the shell does not do

There are no `fg` or `bg` commands, ctrl-z (SIGTSTP) is ignored by the
shell rather than passed on to the foreground job, and programs are not
looked up on `PATH`.

## Running a trace

```
tinyshell-runtrace -f <tracefile> [-s <shellprog>] [-hV]
```

The shell defaults to `./tsh`; `-V` is more verbose. A trace file is read
line by line:

- blank lines are skipped
- lines starting with `#` are echoed
- `WAIT` waits for a job to synchronise with the runner
- `NEXT` prints the shell's output up to its next prompt
- `SIGNAL` releases a job waiting on the synchronisation socket
- `SIGINT` and `SIGTSTP` send that signal to the shell
- any other line is sent to the shell as a command

The shell must answer with the prompt `eslab_tsh> ` first. Jobs find the
synchronisation socket through the `SYNCFD` environment variable. The
runner gives up after four seconds without an answer. At the end it kills
stray test programs with `/bin/kill`. In Python this is
`tinyshell.runtrace.TraceRunner`, which raises `RuntraceError` when a
trace cannot be run.

## Comparing a shell with a reference

```
tinyshell-sdriver [-hV] [-s <shell> -t <tracenum> -i <iters>]
```

- `-s <shell>` is the shell under test (default `./eslab_tsh`)
- `-t <n>` runs trace `n` only (`trace00.txt` to `trace21.txt`)
- `-i <iters>` runs each trace that many times (default 2)
- `-V` is more verbose

The reference shell is `./tshref`. Outputs are compared after removing all
whitespace, replacing process IDs written as `(12345)` with `(PID)` and
sorting the lines (`tinyshell.sdriver.filter_output` and
`outputs_match`). When they differ the driver shows both outputs and a
unified diff; after all traces it prints `Summary: N/M correct traces`.

The trace files and the reference shell are not part of this package; the
driver expects them in the current directory.

## Helper programs

These are the jobs the traces start:

- `tinyshell-mycat` copies standard input to standard output
- `tinyshell-myenv` prints `OSTYPE=` followed by the `PATH` it was started with
- `tinyshell-myintp` sends SIGINT to its parent, then spins
- `tinyshell-myints` sends SIGINT to itself, then spins
- `tinyshell-myspin1`, `tinyshell-myspin2 [secs]` synchronise with the runner, or spin for `secs` seconds (default 4) when run alone
- `tinyshell-mysplit [secs]` does the same in a forked child while the parent waits
- `tinyshell-mysplitp` stops its child and itself, and kills the child once restarted
- `tinyshell-mytstpp` sends SIGTSTP to its parent, then spins
- `tinyshell-mytstps` sends SIGTSTP to itself and exits once restarted

The spinning and synchronising programs end after four seconds if nothing
else ends them first.