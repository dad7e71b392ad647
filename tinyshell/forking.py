"""A fork that randomly delays the parent or the child to expose races."""

from __future__ import annotations

import os
import random
import time

MAX_SLEEP_US = 100_000


def _time_seeded_rng() -> random.Random:
    return random.Random(time.time_ns() // 1000 % 1_000_000)


def choose_delay(rng=None) -> tuple[bool, int]:
    """Pick which side sleeps after a fork and for how many microseconds.

    Returns ``(sleep_in_child, microseconds)``; microseconds lies in
    ``[0, MAX_SLEEP_US]``.
    """
    if rng is None:
        rng = _time_seeded_rng()
    sleep_in_child = int(rng.random() + 0.5) != 0
    microseconds = int(rng.random() * MAX_SLEEP_US)
    return sleep_in_child, microseconds


def jitter_fork(rng=None) -> int:
    """Fork, then sleep a random while in either the parent or the child.

    Returns what ``os.fork`` returns: 0 in the child, the child's pid in
    the parent.
    """
    sleep_in_child, microseconds = choose_delay(rng)
    pid = os.fork()
    if (pid == 0) == sleep_in_child:
        time.sleep(microseconds / 1_000_000)
    return pid