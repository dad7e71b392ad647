"""A tiny shell with job control."""

from __future__ import annotations

import getopt
import os
import signal
import sys
import time

from .commandline import parse_line
from .config import PROMPT
from .forking import jitter_fork
from .jobs import JobList, JobState, TooManyJobsError

MAXLINE = 1024
_FOREGROUND_POLL = 0.01
_BLOCKED_SIGNALS = {signal.SIGCHLD, signal.SIGINT, signal.SIGTSTP}


class ShellExit(Exception):
    """Raised to leave the shell with an exit status."""

    def __init__(self, status=0):
        super().__init__(status)
        self.status = status


class Shell:
    """Read-eval loop that runs programs as foreground or background jobs."""

    def __init__(self, verbose=False, emit_prompt=True, out=None, jitter=False):
        self.verbose = verbose
        self.emit_prompt = emit_prompt
        self.jitter = jitter
        self._out = out
        self.jobs = JobList(verbose=verbose, out=out)

    @property
    def _stream(self):
        return self._out if self._out is not None else sys.stdout

    def _write(self, text):
        self._stream.write(text)

    def eval(self, cmdline):
        """Run one command line: a built-in, or a program as a new job."""
        parsed = parse_line(cmdline)
        if not parsed.argv:
            return
        previous = signal.pthread_sigmask(signal.SIG_BLOCK, _BLOCKED_SIGNALS)
        try:
            if self.builtin_command(parsed.argv):
                return
            self._stream.flush()
            pid = jitter_fork() if self.jitter else os.fork()
            if pid == 0:
                self._exec_child(parsed.argv, previous)
            try:
                self.jobs.add(pid, JobState.BG if parsed.background else JobState.FG, cmdline)
            except TooManyJobsError as exc:
                self._write(f"{exc}\n")
        finally:
            signal.pthread_sigmask(signal.SIG_SETMASK, previous)

        if parsed.background:
            self._write(f"({self.jobs.pid_to_jid(pid)}) ({pid}) {cmdline}")
        else:
            self._wait_foreground(pid)

    def _exec_child(self, argv, mask):
        try:
            # The shell ignores ctrl-z itself; its jobs get the default action.
            signal.signal(signal.SIGTSTP, signal.SIG_DFL)
            signal.pthread_sigmask(signal.SIG_SETMASK, mask)
            try:
                os.execve(argv[0], list(argv), os.environ)
            except (OSError, ValueError):
                self._write(f"{argv[0]} : Command not found\n\n")
                self._stream.flush()
        finally:
            os._exit(0)

    def _wait_foreground(self, pid):
        while True:
            self.reap_children()
            if self.jobs.foreground_pid() != pid:
                return
            time.sleep(_FOREGROUND_POLL)

    def builtin_command(self, argv) -> bool:
        """Run ``quit`` or ``jobs``; False when argv is not a built-in."""
        command = argv[0]
        if command == "quit":
            raise ShellExit(0)
        if command == "jobs":
            self._write(self.jobs.format_listing())
            return True
        return False

    def reap_children(self):
        """Collect every finished child and drop its job."""
        while True:
            try:
                pid, status = os.waitpid(-1, os.WNOHANG)
            except ChildProcessError:
                return
            if pid == 0:
                return
            if os.WIFSIGNALED(status):
                self._write(
                    f"Job [{self.jobs.pid_to_jid(pid)}] ({pid}) "
                    f"terminated by signal {os.WTERMSIG(status)}\n"
                )
            self.jobs.delete(pid)

    def forward_interrupt(self, signum, frame):
        """Pass the signal on to the foreground job, if any."""
        pid = self.jobs.foreground_pid()
        if pid:
            os.kill(pid, signum)

    def handle_quit_signal(self, signum, frame):
        self._write("Terminating after receipt of SIGQUIT signal\n")
        raise ShellExit(1)

    def _on_child(self, signum, frame):
        self.reap_children()

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self.forward_interrupt)
        signal.signal(signal.SIGTSTP, signal.SIG_IGN)
        signal.signal(signal.SIGCHLD, self._on_child)
        signal.signal(signal.SIGTTIN, signal.SIG_IGN)
        signal.signal(signal.SIGTTOU, signal.SIG_IGN)
        signal.signal(signal.SIGQUIT, self.handle_quit_signal)

    def run(self, stdin=None) -> int:
        """Read and evaluate lines until end of input; return the exit status."""
        stdin = sys.stdin if stdin is None else stdin
        try:
            while True:
                if self.emit_prompt:
                    self._write(PROMPT)
                    self._stream.flush()
                try:
                    line = stdin.readline(MAXLINE - 1)
                except OSError:
                    self._write("fgets error\n")
                    return 1
                if not line.endswith("\n") and len(line) < MAXLINE - 1:
                    return 0
                self.eval(line)
                self._stream.flush()
        except ShellExit as exc:
            return exc.status
        finally:
            self._stream.flush()


def usage_text() -> str:
    return (
        "Usage; shell [-hvp]\n"
        "   -h   print this message\n"
        "   -v   print additional diagnostic information \n"
        "   -p   do not emit a command prompt \n"
    )


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    verbose = False
    emit_prompt = True
    try:
        options, _ = getopt.getopt(args, "hvp")
    except getopt.GetoptError:
        sys.stdout.write(usage_text())
        return 1
    for option, _ in options:
        if option == "-h":
            sys.stdout.write(usage_text())
            return 1
        if option == "-v":
            verbose = True
        elif option == "-p":
            emit_prompt = False

    os.dup2(1, 2)
    shell = Shell(verbose=verbose, emit_prompt=emit_prompt)
    shell.install_signal_handlers()
    return shell.run(sys.stdin)


if __name__ == "__main__":
    sys.exit(main())