"""Splitting a command line into arguments."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ParsedCommand:
    argv: tuple[str, ...]
    background: bool


def parse_line(cmdline) -> ParsedCommand:
    """Split a command line on spaces, keeping single-quoted text together.

    The last character of the line (normally its newline) is replaced by a
    space, and text after the last delimiter is dropped. A final argument
    starting with ``&`` asks for a background job and is removed. A blank
    line yields no arguments and counts as background.
    """
    text = cmdline[:-1] + " " if cmdline else ""
    rest = text.lstrip(" ")
    args = []
    while True:
        if rest.startswith("'"):
            rest = rest[1:]
            closer = "'"
        else:
            closer = " "
        end = rest.find(closer)
        if end < 0:
            break
        args.append(rest[:end])
        rest = rest[end + 1:].lstrip(" ")

    if not args:
        return ParsedCommand((), True)

    background = args[-1].startswith("&")
    if background:
        args.pop()
    return ParsedCommand(tuple(args), background)