import io
import sys

import pytest

from tinyshell.runtrace import RuntraceError
from tinyshell.sdriver import Driver, filter_output, main, outputs_match, usage_text

FAKE_SHELL = '''import os
prompt = b"eslab_tsh> "
os.write(1, prompt)
while True:
    data = os.read(0, 1024)
    if not data:
        break
    os.write(1, b"%s (%d): " % (LABEL, os.getpid()) + data)
    os.write(1, prompt)
'''


def make_shell(tmp_path, name, label):
    script = tmp_path / f"{name}.py"
    script.write_text(FAKE_SHELL.replace("LABEL", repr(label.encode())))
    launcher = tmp_path / name
    launcher.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n')
    launcher.chmod(0o755)
    return str(launcher)


@pytest.fixture
def trace(tmp_path):
    path = tmp_path / "trace.txt"
    path.write_text("# demo\necho hi\nNEXT\n")
    return str(path)


def test_filter_output_strips_whitespace_and_pids():
    assert filter_output("b  c\n(123) x\n") == ["(PID)x", "bc"]


def test_filter_output_of_empty_text():
    assert filter_output("") == []


def test_outputs_match_ignores_order_and_pids():
    assert outputs_match("a (1)\nb\n", "b\na (99)\n")


def test_outputs_match_detects_difference():
    assert not outputs_match("alpha\n", "beta\n")


def test_driver_rejects_zero_iterations():
    with pytest.raises(ValueError):
        Driver(iterations=0)


def test_missing_trace_file(tmp_path):
    driver = Driver(out=io.StringIO())
    with pytest.raises(RuntraceError, match="trace file not found"):
        driver.run_trace(str(tmp_path / "missing.txt"))


def test_matching_shells_pass(tmp_path, trace):
    shell = make_shell(tmp_path, "shell_a", "reply")
    out = io.StringIO()
    result = Driver(shell, shell, iterations=1, out=out).run_trace(trace)
    assert result.passed
    assert result.test_output.startswith("# demo\n")
    assert filter_output(result.test_output) == filter_output(result.reference_output)
    assert "Oops" not in out.getvalue()


def test_differing_shells_fail(tmp_path, trace):
    shell_a = make_shell(tmp_path, "shell_a", "reply")
    shell_b = make_shell(tmp_path, "shell_b", "other")
    out = io.StringIO()
    result = Driver(shell_a, shell_b, iterations=1, out=out).run_trace(trace)
    assert not result.passed
    text = out.getvalue()
    assert f"Oops: test and reference outputs for {trace} differed." in text
    assert "Output of 'diff test reference':" in text
    assert result.diff


def test_run_all_counts_correct_traces(tmp_path, trace):
    shell = make_shell(tmp_path, "shell_a", "reply")
    out = io.StringIO()
    assert Driver(shell, shell, iterations=2, out=out).run_all([trace]) == 1
    text = out.getvalue()
    assert f"Running 2 iters of {trace}" in text
    assert "Summary: 1/1 correct traces" in text


def test_usage_mentions_iterations():
    assert "(default 3)" in usage_text(3)


def test_main_rejects_bad_iterations(capsys):
    assert main(["-i", "0"]) == 0
    assert "Error: Invalid number of iters (-i)" in capsys.readouterr().out


def test_main_rejects_bad_trace_number(capsys):
    assert main(["-t", "22"]) == 0
    assert "Error: Invalid trace number (-t)" in capsys.readouterr().out


def test_main_missing_shell(tmp_path, capsys):
    missing = str(tmp_path / "nope")
    assert main(["-s", missing]) == 1
    assert f"{missing}: File not found" in capsys.readouterr().err