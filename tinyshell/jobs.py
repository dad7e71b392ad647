"""The shell's fixed-size job table."""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass
from typing import Iterator, Optional

MAX_JOBS = 16


class JobState(enum.IntEnum):
    """State of a job: undefined, foreground, background or stopped."""

    UNDEF = 0
    FG = 1
    BG = 2
    ST = 3


_STATE_LABELS = {
    JobState.BG: "Running    ",
    JobState.FG: "Foreground ",
    JobState.ST: "Stopped    ",
}


class TooManyJobsError(Exception):
    """Raised when every slot of the job table is taken."""


@dataclass
class Job:
    pid: int
    jid: int
    state: JobState
    cmdline: str


class JobList:
    """Job table with a fixed number of slots, reused first-free."""

    def __init__(self, capacity=MAX_JOBS, verbose=False, out=None):
        self._slots: list[Optional[Job]] = [None] * capacity
        self._next_jid = 1
        self.verbose = verbose
        self._out = out

    @property
    def _stream(self):
        return self._out if self._out is not None else sys.stdout

    def add(self, pid, state, cmdline) -> Job:
        """Put a job in the first free slot and return it."""
        if pid < 1:
            raise ValueError(f"invalid pid {pid}")
        try:
            index = self._slots.index(None)
        except ValueError:
            raise TooManyJobsError("Tried to create too many jobs") from None
        job = Job(pid, self._next_jid, JobState(state), cmdline)
        self._next_jid += 1
        if self._next_jid > len(self._slots):
            self._next_jid = 1
        self._slots[index] = job
        if self.verbose:
            self._stream.write(f"Added job. [{job.jid}] {job.pid} {job.cmdline}\n")
        return job

    def delete(self, pid) -> bool:
        """Remove the job with this pid; True if one was removed."""
        if pid < 1:
            return False
        for index, job in enumerate(self._slots):
            if job is not None and job.pid == pid:
                self._slots[index] = None
                self._next_jid = self.max_jid() + 1
                return True
        return False

    def max_jid(self) -> int:
        return max((job.jid for job in self), default=0)

    def foreground_pid(self) -> Optional[int]:
        """Pid of the foreground job, or None when there is none."""
        return next((job.pid for job in self if job.state == JobState.FG), None)

    def get_by_pid(self, pid) -> Optional[Job]:
        if pid < 1:
            return None
        return next((job for job in self if job.pid == pid), None)

    def get_by_jid(self, jid) -> Optional[Job]:
        if jid < 1:
            return None
        return next((job for job in self if job.jid == jid), None)

    def pid_to_jid(self, pid) -> int:
        """Job id of the job with this pid, 0 when there is none."""
        job = self.get_by_pid(pid)
        return job.jid if job is not None else 0

    def format_listing(self) -> str:
        """The job table as the ``jobs`` command prints it."""
        parts = []
        for index, job in enumerate(self._slots):
            if job is None:
                continue
            label = _STATE_LABELS.get(
                job.state,
                f"listjobs: Internal error: job[{index}].state={int(job.state)} ",
            )
            parts.append(f"({job.jid}) ({job.pid}) {label}{job.cmdline}")
        return "".join(parts)

    def __iter__(self) -> Iterator[Job]:
        return (job for job in self._slots if job is not None)

    def __len__(self) -> int:
        return sum(1 for _ in self)