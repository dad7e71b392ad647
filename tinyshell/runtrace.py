"""Run a shell under a trace file, feeding it commands and echoing its output."""

from __future__ import annotations

import enum
import getopt
import os
import select
import signal
import socket
import stat
import subprocess
import sys
from dataclasses import dataclass

from .config import DRIVER_TIMEOUT, MAXBUF, PROMPT

SANDBOX_PRELOAD = "/usr/lib/libdl.so ./sandbox.so"

_STRAY_PROGRAMS = (
    "tsh", "tshref", "mytstpp", "mytstps", "mycat", "myenv",
    "myintp", "myints", "myspin1", "myspin2", "mysplit",
)

_C_WHITESPACE = " \t\n\v\f\r"


class RuntraceError(Exception):
    """Raised when a trace cannot be run."""


class TraceAction(enum.Enum):
    """What a line of a trace file asks for."""

    BLANK = "blank"
    COMMENT = "comment"
    WAIT = "WAIT"
    NEXT = "NEXT"
    SIGNAL = "SIGNAL"
    SIGINT = "SIGINT"
    SIGTSTP = "SIGTSTP"
    SHELL = "shell"


_DIRECTIVES = {
    action.value: action
    for action in (
        TraceAction.WAIT,
        TraceAction.NEXT,
        TraceAction.SIGNAL,
        TraceAction.SIGINT,
        TraceAction.SIGTSTP,
    )
}


@dataclass(frozen=True)
class TraceLine:
    action: TraceAction
    text: str
    command: str = ""


def is_blank_line(text) -> bool:
    """True when text holds nothing but whitespace."""
    return not text.strip(_C_WHITESPACE)


def classify_line(line) -> TraceLine:
    """Decide what one trace line (with or without its newline) asks for."""
    text = line[:-1] if line.endswith("\n") else line
    if is_blank_line(text):
        return TraceLine(TraceAction.BLANK, text)
    if text.startswith("#"):
        return TraceLine(TraceAction.COMMENT, text)
    command = text.split()[0]
    return TraceLine(_DIRECTIVES.get(command, TraceAction.SHELL), text, command)


def readable(sock, seconds) -> bool:
    """Wait up to ``seconds`` for sock to become readable."""
    ready, _, _ = select.select([sock], [], [], seconds)
    return bool(ready)


def describe_child_status(pid=-1) -> str:
    """Describe what became of a child shell, without blocking."""
    try:
        reaped, status = os.waitpid(pid, os.WNOHANG)
    except ChildProcessError:
        return "Child shell appears to have never run"
    except OSError:
        return "Unknown child status"
    if reaped == 0:
        return "Child shell still running."
    if os.WIFEXITED(status):
        return f"Child shell terminated normally with status {os.WEXITSTATUS(status)}"
    if os.WIFSIGNALED(status):
        return f"Child shell terminated by signal {os.WTERMSIG(status)}"
    if os.WIFSTOPPED(status):
        return f"Child shell stopped by signal {os.WSTOPSIG(status)}"
    return "Unknown child status"


def clean():
    """Kill any stray shells and test jobs."""
    try:
        subprocess.run(
            ["/bin/kill", *_STRAY_PROGRAMS],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        pass


class TraceRunner:
    """Starts a shell and drives it with the commands of one trace file."""

    def __init__(self, shell_program="./tsh", trace_file=None, verbose=0,
                 sandboxing=False, out=None):
        self.shell_program = shell_program
        self.trace_file = trace_file
        self.verbose = verbose
        self.sandboxing = sandboxing
        self.timeout = DRIVER_TIMEOUT
        self._out = out
        self._data = None
        self._sync = None
        self._process = None

    @property
    def _stream(self):
        return self._out if self._out is not None else sys.stdout

    def _write(self, text):
        self._stream.write(text)

    def _check_shell(self):
        try:
            info = os.stat(self.shell_program)
        except OSError:
            raise RuntraceError(f"{self.shell_program}: File not found") from None
        if not info.st_mode & stat.S_IXUSR:
            raise RuntraceError(f"{self.shell_program}: File is not executable")

    def _start_shell(self, data_child, sync_child):
        env = dict(os.environ)
        env["SYNCFD"] = str(sync_child.fileno())
        if self.verbose:
            self._write(f"Created environment variable SYNCFD={sync_child.fileno()}\n")
        if self.sandboxing:
            env["LD_PRELOAD"] = SANDBOX_PRELOAD
        args = [self.shell_program] + (["-v"] if self.verbose else [])
        try:
            return subprocess.Popen(
                args,
                stdin=data_child.fileno(),
                stdout=data_child.fileno(),
                pass_fds=(sync_child.fileno(),),
                env=env,
            )
        except OSError as exc:
            raise RuntraceError(f"execve: {exc}") from None

    def _send(self, sock, payload, what):
        try:
            sock.send(payload)
        except OSError as exc:
            raise RuntraceError(f"{what}: {exc}") from None

    def _signal_shell(self, signum, name):
        try:
            os.kill(self._process.pid, signum)
        except OSError as exc:
            raise RuntraceError(f"kill {name}: {exc}") from None
        if self.verbose:
            self._write(f"Runtrace sent {name} to process {self._process.pid}\n")

    def _read_initial_prompt(self):
        if not readable(self._data, self.timeout):
            sys.stderr.write(
                f"{self.trace_file}: Runtrace timed out waiting for initial shell prompt\n"
            )
            return
        received = self._data.recv(MAXBUF).decode(errors="replace")
        if received != PROMPT:
            raise RuntraceError(
                f"{self.trace_file}: Runtrace expected initial shell prompt "
                f"but got '{received}' instead."
            )

    def run(self) -> int:
        """Run the whole trace; return the exit status."""
        self._check_shell()
        try:
            trace = open(self.trace_file, encoding="utf-8", errors="replace")
        except (OSError, TypeError):
            raise RuntraceError(f"Unable to open trace file {self.trace_file}") from None

        with trace:
            self._data, data_child = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
            self._sync, sync_child = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
            try:
                self._process = self._start_shell(data_child, sync_child)
                data_child.close()
                self._read_initial_prompt()
                return self._drive(trace)
            finally:
                self._stream.flush()
                if self._process is not None and self._process.poll() is None:
                    self._process.kill()
                    self._process.wait()
                for sock in (self._data, data_child, self._sync, sync_child):
                    sock.close()
                self._data = self._sync = self._process = None

    def _drive(self, trace) -> int:
        for raw in trace:
            item = classify_line(raw)
            if item.action is TraceAction.BLANK:
                if self.verbose:
                    self._write("runtrace: Ignoring blank line\n")
                continue
            if item.action is TraceAction.COMMENT:
                self._write(f"{item.text}\n")
                continue
            if self.verbose:
                self._write(f"runtrace: command={item.command} line={item.text}\n")

            if item.action is TraceAction.WAIT:
                if not readable(self._sync, self.timeout):
                    self._write(
                        f"{self.trace_file}: Runtrace timed out waiting for sync from job\n"
                    )
                    return 1
                try:
                    self._sync.recv(MAXBUF)
                except OSError as exc:
                    raise RuntraceError(f"recv syncfd: {exc}") from None
                if self.verbose:
                    self._write("runtrace: received sync from job\n")
            elif item.action is TraceAction.NEXT:
                if not self.next_prompt():
                    return 0
            elif item.action is TraceAction.SIGNAL:
                self._send(self._sync, b"signal", "send syncfd")
                if self.verbose:
                    self._write("runtrace: sent sync to shell job\n")
            elif item.action is TraceAction.SIGINT:
                self._signal_shell(signal.SIGINT, "SIGINT")
            elif item.action is TraceAction.SIGTSTP:
                self._signal_shell(signal.SIGTSTP, "SIGTSTP")
            else:
                if self.verbose:
                    self._write(f"runtrace: Sending '{item.text}' to shell\n")
                self._send(self._data, f"{item.text}\n".encode(), "send datafd[0]")

        # An empty datagram is end of input for the shell.
        self._send(self._data, b"", "send datafd[0]")
        try:
            self._process.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            self._write(
                f"{self.trace_file}: Runtrace timed out while "
                "waiting for shell to terminate.\n"
            )
            clean()
            return 1
        clean()
        return 0

    def next_prompt(self) -> bool:
        """Echo the shell's output up to its next prompt.

        Returns False on end of output or on a timeout.
        """
        if self._data is None or self._process is None:
            raise RuntraceError("no shell is running")
        while True:
            if not readable(self._data, self.timeout):
                self._write(
                    f"{self.trace_file}: Runtrace timed out waiting for next shell prompt\n"
                )
                self._write(describe_child_status(self._process.pid) + "\n")
                self._stream.flush()
                return False
            try:
                chunk = self._data.recv(MAXBUF)
            except OSError as exc:
                raise RuntraceError(f"next_prompt:recv1: {exc}") from None
            if not chunk:
                return False
            text = chunk.decode(errors="replace")
            if text == PROMPT:
                return True
            self._write(text)


def usage_text(msg="") -> str:
    return (
        f"{msg}\n"
        "Usage: runtrace -f <file> -s <shellprog> [-hV]\n"
        "Options:\n"
        "  -h            Print this message\n"
        "  -s <shell>    Shell program to test (default ./tsh)\n"
        "  -f <file>     Trace file\n"
        "  -V            Be more verbose\n"
    )


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    verbose = 0
    sandboxing = False
    shell_program = "./tsh"
    trace_file = None
    try:
        options, _ = getopt.getopt(args, "hVxs:f:")
    except getopt.GetoptError:
        sys.stdout.write(usage_text("Unrecognized argument"))
        return 0
    for option, value in options:
        if option == "-h":
            sys.stdout.write(usage_text(""))
            return 0
        if option == "-V":
            verbose += 1
        elif option == "-s":
            shell_program = value
        elif option == "-f":
            trace_file = value
        elif option == "-x":
            sandboxing = True

    if trace_file is None:
        sys.stdout.write(usage_text("Missing required argument (-f)"))
        return 0

    runner = TraceRunner(shell_program, trace_file, verbose, sandboxing)
    try:
        return runner.run()
    except RuntraceError as exc:
        sys.stdout.flush()
        sys.stderr.write(f"{exc}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())