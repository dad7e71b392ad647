"""Run trace files on a test shell and a reference shell and compare them."""

from __future__ import annotations

import difflib
import getopt
import io
import os
import re
import stat
import sys
from dataclasses import dataclass

from .config import ITERS, TRACEFILES
from .runtrace import RuntraceError, TraceRunner

_WHITESPACE = re.compile(r"\s+")
_PID = re.compile(r"\(\d+\)")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _atoi(text) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def filter_output(text) -> list[str]:
    """Normalise shell output for comparison.

    Every line loses all its whitespace, each ``(digits)`` becomes
    ``(PID)``, and the lines come back sorted.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return sorted(_PID.sub("(PID)", _WHITESPACE.sub("", line)) for line in lines)


def outputs_match(test_output, reference_output) -> bool:
    """True when both outputs agree once filtered."""
    return filter_output(test_output) == filter_output(reference_output)


@dataclass(frozen=True)
class TraceResult:
    trace_file: str
    passed: bool
    test_output: str
    reference_output: str
    diff: str = ""


class Driver:
    """Runs traces on the shell under test and on the reference shell."""

    def __init__(self, shell_program="./eslab_tsh", reference_program="./tshref",
                 iterations=ITERS, verbose=0, sandboxing=False, out=None):
        if iterations < 1:
            raise ValueError("Invalid number of iters")
        self.shell_program = shell_program
        self.reference_program = reference_program
        self.iterations = iterations
        self.verbose = verbose
        self.sandboxing = sandboxing
        self._out = out

    @property
    def _stream(self):
        return self._out if self._out is not None else sys.stdout

    def _write(self, text):
        self._stream.write(text)

    @staticmethod
    def _describe(program, trace_file, sandboxing) -> str:
        flag = "-x " if sandboxing else ""
        return f"runtrace {flag}-s {program} -f {trace_file}"

    def _run_shell(self, program, trace_file, sandboxing) -> tuple[bool, str]:
        buffer = io.StringIO()
        runner = TraceRunner(program, str(trace_file), 0, sandboxing, buffer)
        try:
            status = runner.run()
        except RuntraceError as exc:
            sys.stderr.write(f"{exc}\n")
            return False, buffer.getvalue()
        return status == 0, buffer.getvalue()

    def run_trace(self, trace_file) -> TraceResult:
        """Run one trace on both shells; the result says whether they agreed."""
        if not os.path.exists(trace_file):
            raise RuntraceError(f"{trace_file}: trace file not found")

        ok, test_output = self._run_shell(self.shell_program, trace_file, self.sandboxing)
        if not ok:
            self._write(
                "sdriver unable to run "
                f"{self._describe(self.shell_program, trace_file, self.sandboxing)}\n"
            )

        ok, reference_output = self._run_shell(self.reference_program, trace_file, False)
        if not ok:
            self._write(reference_output)
            raise RuntraceError(
                "sdriver unable to run "
                f"{self._describe(self.reference_program, trace_file, False)}"
            )

        if not outputs_match(test_output, reference_output):
            diff = "".join(
                difflib.unified_diff(
                    test_output.splitlines(True),
                    reference_output.splitlines(True),
                    "test",
                    "reference",
                )
            )
            self._write(f"Oops: test and reference outputs for {trace_file} differed.\n\n")
            self._write(f"Test output:\n{test_output}\n")
            self._write(f"Reference output:\n{reference_output}\n")
            self._write(f"Output of 'diff test reference':\n{diff}\n")
            return TraceResult(str(trace_file), False, test_output, reference_output, diff)

        if self.verbose:
            self._write(
                f"Success: The test and reference outputs for {trace_file} matched!\n"
            )
        if self.verbose > 1:
            self._write(f"Test output:\n{test_output}\n")
            self._write(f"Reference output:\n{reference_output}\n")
        return TraceResult(str(trace_file), True, test_output, reference_output)

    def run_all(self, trace_files=TRACEFILES) -> int:
        """Run every trace ``iterations`` times; return how many passed."""
        trace_files = list(trace_files)
        num_correct = 0
        for trace_file in trace_files:
            if self.iterations > 1:
                self._write(f"Running {self.iterations} iters of {trace_file}\n")
            passed = False
            for iteration in range(1, self.iterations + 1):
                if self.iterations > 1:
                    self._write(f"{iteration}. Running {trace_file}...\n")
                else:
                    self._write(f"Running {trace_file}...\n")
                passed = self.run_trace(trace_file).passed
                if not passed:
                    break
            if passed:
                num_correct += 1
        self._write(f"\nSummary: {num_correct}/{len(trace_files)} correct traces\n")
        return num_correct


def usage_text(iterations=ITERS) -> str:
    return (
        "Usage: sdriver [-hV] [-s <shell> -t <tracenum> -i <iters>]\n"
        "Options\n"
        "\t-h           Print this message.\n"
        f"\t-i <iters>   Run each trace <iters> times (default {iterations})\n"
        "\t-s <shell>   Name of test shell (default ./tsh)\n"
        "\t-t <n>       Run trace <n> only (default all)\n"
        "\t-V           Be more verbose.\n"
    )


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    verbose = 0
    shell_program = "./eslab_tsh"
    sandboxing = False
    autograded = False
    iterations = ITERS
    trace_number = None

    try:
        options, _ = getopt.getopt(args, "Ai:t:s:hVx")
    except getopt.GetoptError:
        sys.stdout.write(usage_text(iterations))
        return 0

    for option, value in options:
        if option == "-A":
            autograded = True
        elif option == "-i":
            iterations = _atoi(value)
            if iterations < 1:
                sys.stdout.write("Error: Invalid number of iters (-i)\n")
                sys.stdout.write(usage_text(iterations))
                return 0
        elif option == "-s":
            shell_program = value
        elif option == "-t":
            trace_number = _atoi(value)
            if not 0 <= trace_number < len(TRACEFILES):
                sys.stdout.write("Error: Invalid trace number (-t)\n")
                sys.stdout.write(usage_text(iterations))
                return 0
            verbose += 1
        elif option == "-V":
            verbose += 1
        elif option == "-x":
            sandboxing = True
        elif option == "-h":
            sys.stdout.write(usage_text(iterations))
            return 0

    try:
        info = os.stat(shell_program)
    except OSError:
        sys.stderr.write(f"{shell_program}: File not found\n")
        return 1
    if not info.st_mode & stat.S_IXUSR:
        sys.stderr.write(f"{shell_program}: File is not executable\n")
        return 1

    if trace_number is not None and autograded:
        sys.stdout.write("Warning: -A flag is ignored when testing single traces\n")

    driver = Driver(shell_program, "./tshref", iterations, verbose, sandboxing)
    try:
        if trace_number is not None:
            sys.stdout.write(f"Running {TRACEFILES[trace_number]}...\n")
            sys.stdout.flush()
            driver.run_trace(TRACEFILES[trace_number])
        else:
            driver.run_all(TRACEFILES)
    except RuntraceError as exc:
        sys.stdout.write(f"{exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())