"""Small programs that shell traces run as jobs."""

from __future__ import annotations

import contextlib
import os
import re
import shutil
import signal
import socket
import sys

from .config import JOB_TIMEOUT, MAXBUF

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class _Timeout(Exception):
    pass


def _atoi(text) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def _perror(what, exc):
    sys.stderr.write(f"{what}: {exc.strerror or exc}\n")


@contextlib.contextmanager
def _alarm(seconds):
    def expire(signum, frame):
        raise _Timeout()

    previous = signal.signal(signal.SIGALRM, expire)
    signal.alarm(max(seconds, 0))
    try:
        yield
    finally:
        signal.alarm(0)
        signal.signal(signal.SIGALRM, previous)


def _until_alarm(seconds, action) -> int:
    """Run action; an expiring alarm ends it with status 0."""
    try:
        with _alarm(seconds):
            return action()
    except _Timeout:
        return 0


def _spin():
    while True:
        signal.pause()


def driver_sync_fd(environ=None):
    """The driver's synchronising descriptor from SYNCFD, or None if absent or closed."""
    env = os.environ if environ is None else environ
    value = env.get("SYNCFD")
    if value is None:
        return None
    fd = _atoi(value)
    try:
        os.fstat(fd)
    except OSError:
        return None
    return fd


def handshake(fd) -> bytes:
    """Send an empty datagram on fd and return the reply."""
    duplicate = os.dup(fd)
    try:
        sock = socket.socket(fileno=duplicate)
    except OSError:
        os.close(duplicate)
        raise
    with sock:
        sock.send(b"")
        return sock.recv(MAXBUF)


def spin_timeout(argv) -> int:
    """Seconds to spin: the first argument, or JOB_TIMEOUT."""
    return _atoi(argv[0]) if argv else JOB_TIMEOUT


def _sync_or_spin(args) -> int:
    fd = driver_sync_fd()
    if fd is not None:
        def sync():
            try:
                handshake(fd)
            except OSError as exc:
                _perror("handshake", exc)
                return 1
            return 0

        return _until_alarm(JOB_TIMEOUT, sync)
    return _until_alarm(spin_timeout(args), _spin)


def _signal_then_spin(target, signum) -> int:
    def act():
        try:
            os.kill(target, signum)
        except OSError as exc:
            _perror("kill", exc)
            return 1
        _spin()

    return _until_alarm(JOB_TIMEOUT, act)


def mycat_main(argv=None) -> int:
    """Copy standard input to standard output."""
    sys.stdout.flush()
    shutil.copyfileobj(sys.stdin.buffer, sys.stdout.buffer)
    sys.stdout.buffer.flush()
    return 0


def myenv_main(argv=None) -> int:
    """Print the PATH the job was started with."""
    sys.stdout.write(f"OSTYPE={os.environ.get('PATH', '(null)')}\n")
    sys.stdout.flush()
    return 0


def myintp_main(argv=None) -> int:
    """Send SIGINT to the parent, then spin until the job timeout."""
    return _signal_then_spin(os.getppid(), signal.SIGINT)


def myints_main(argv=None) -> int:
    """Send SIGINT to this process, then spin until the job timeout."""
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    return _signal_then_spin(os.getpid(), signal.SIGINT)


def myspin_main(argv=None) -> int:
    """Handshake with the driver if present, else spin for the given seconds."""
    return _sync_or_spin(_args(argv))


def mysplit_main(argv=None) -> int:
    """Fork a child that behaves like myspin and wait for it."""
    args = _args(argv)
    sys.stdout.flush()
    sys.stderr.flush()
    pid = os.fork()
    if pid == 0:
        status = 1
        try:
            status = _sync_or_spin(args)
        finally:
            os._exit(status)

    def reap():
        os.waitpid(pid, 0)
        return 0

    return _until_alarm(JOB_TIMEOUT, reap)


def mysplitp_main(argv=None) -> int:
    """Stop a spinning child and then this process; once resumed, kill the child."""
    sys.stdout.flush()
    sys.stderr.flush()
    pid = os.fork()
    if pid == 0:
        try:
            _spin()
        finally:
            os._exit(0)

    steps = (
        (pid, signal.SIGTSTP, "kill1"),
        (os.getpid(), signal.SIGTSTP, "kill2"),
        (pid, signal.SIGTERM, "kill3"),
    )
    for target, signum, label in steps:
        try:
            os.kill(target, signum)
        except OSError as exc:
            _perror(label, exc)
            return 1
    return 0


def mytstpp_main(argv=None) -> int:
    """Send SIGTSTP to the parent, then spin until the job timeout."""
    return _signal_then_spin(os.getppid(), signal.SIGTSTP)


def mytstps_main(argv=None) -> int:
    """Stop this process with SIGTSTP; finish once resumed."""
    try:
        os.kill(os.getpid(), signal.SIGTSTP)
    except OSError as exc:
        _perror("kill", exc)
        return 1
    return 0