import io
import re
import shutil
import signal
import subprocess
import time

import pytest

from tinyshell.jobs import JobState
from tinyshell.shell import Shell, ShellExit, main, usage_text

SLEEP = shutil.which("sleep")
TRUE = shutil.which("true")
ECHO = shutil.which("echo")


def _wait_until_no_jobs(shell, timeout=5.0):
    deadline = time.monotonic() + timeout
    while len(shell.jobs) and time.monotonic() < deadline:
        shell.reap_children()
        time.sleep(0.01)


def test_quit_raises_shell_exit_with_zero():
    with pytest.raises(ShellExit) as info:
        Shell(out=io.StringIO()).builtin_command(("quit",))
    assert info.value.status == 0


def test_jobs_builtin_lists_table():
    out = io.StringIO()
    shell = Shell(out=out)
    shell.jobs.add(100, JobState.BG, "a\n")
    assert shell.builtin_command(("jobs",)) is True
    assert out.getvalue() == "(1) (100) Running    a\n"


def test_other_commands_are_not_builtins():
    assert Shell(out=io.StringIO()).builtin_command(("ls",)) is False


def test_blank_line_does_nothing():
    out = io.StringIO()
    shell = Shell(out=out)
    shell.eval("\n")
    assert out.getvalue() == ""
    assert len(shell.jobs) == 0


def test_background_job_is_announced_and_reaped():
    out = io.StringIO()
    shell = Shell(out=out)
    shell.eval(f"{TRUE} &\n")
    assert re.fullmatch(rf"\(1\) \(\d+\) {re.escape(TRUE)} &\n", out.getvalue())
    _wait_until_no_jobs(shell)
    assert len(shell.jobs) == 0


def test_foreground_job_runs_to_completion(capfd):
    shell = Shell(out=io.StringIO())
    shell.eval(f"{ECHO} hello\n")
    assert "hello\n" in capfd.readouterr().out
    assert len(shell.jobs) == 0


def test_missing_program_does_not_leave_a_job():
    shell = Shell(out=io.StringIO())
    shell.eval("/nonexistent/program\n")
    assert len(shell.jobs) == 0


def test_signaled_child_is_reported():
    out = io.StringIO()
    shell = Shell(out=out)
    shell.eval(f"{SLEEP} 5 &\n")
    job = next(iter(shell.jobs))
    signal_number = int(signal.SIGKILL)
    import os

    os.kill(job.pid, signal.SIGKILL)
    _wait_until_no_jobs(shell)
    assert f"Job [{job.jid}] ({job.pid}) terminated by signal {signal_number}\n" in out.getvalue()
    assert len(shell.jobs) == 0


def test_forward_interrupt_signals_foreground_job():
    shell = Shell(out=io.StringIO())
    process = subprocess.Popen([SLEEP, "5"])
    shell.jobs.add(process.pid, JobState.FG, "sleep 5\n")
    shell.forward_interrupt(signal.SIGTERM, None)
    assert process.wait(timeout=5) == -signal.SIGTERM


def test_quit_signal_handler_exits_with_one():
    out = io.StringIO()
    with pytest.raises(ShellExit) as info:
        Shell(out=out).handle_quit_signal(signal.SIGQUIT, None)
    assert info.value.status == 1
    assert out.getvalue() == "Terminating after receipt of SIGQUIT signal\n"


def test_run_prints_prompt_and_stops_at_end_of_input():
    out = io.StringIO()
    status = Shell(out=out).run(io.StringIO("jobs\n"))
    assert status == 0
    assert out.getvalue() == "eslab_tsh> eslab_tsh> "


def test_run_quit_stops_the_loop():
    out = io.StringIO()
    status = Shell(out=out).run(io.StringIO("quit\njobs\n"))
    assert status == 0
    assert out.getvalue() == "eslab_tsh> "


def test_run_ignores_unterminated_last_line():
    out = io.StringIO()
    shell = Shell(out=out, emit_prompt=False)
    assert shell.run(io.StringIO(f"{TRUE} &")) == 0
    assert out.getvalue() == ""
    assert len(shell.jobs) == 0


def test_usage_text_names_options():
    text = usage_text()
    assert text.startswith("Usage; shell [-hvp]\n")
    assert "-p   do not emit a command prompt" in text


def test_main_help_returns_one(capsys):
    assert main(["-h"]) == 1
    assert capsys.readouterr().out == usage_text()


def test_main_unknown_option_returns_one(capsys):
    assert main(["-z"]) == 1
    assert capsys.readouterr().out == usage_text()