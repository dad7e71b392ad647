import io

import pytest

from tinyshell.jobs import Job, JobList, JobState, TooManyJobsError


def test_add_assigns_increasing_job_ids():
    jobs = JobList()
    first = jobs.add(100, JobState.BG, "a\n")
    second = jobs.add(101, JobState.BG, "b\n")
    assert (first.jid, second.jid) == (1, 2)
    assert len(jobs) == 2


def test_add_rejects_non_positive_pid():
    with pytest.raises(ValueError):
        JobList().add(0, JobState.FG, "x\n")


def test_add_beyond_capacity_raises():
    jobs = JobList(capacity=2)
    jobs.add(100, JobState.BG, "a\n")
    jobs.add(101, JobState.BG, "b\n")
    with pytest.raises(TooManyJobsError, match="Tried to create too many jobs"):
        jobs.add(102, JobState.BG, "c\n")


def test_lookups_by_pid_and_jid():
    jobs = JobList()
    job = jobs.add(100, JobState.BG, "a\n")
    assert jobs.get_by_pid(100) == job
    assert jobs.get_by_jid(job.jid) == job
    assert jobs.pid_to_jid(100) == job.jid
    assert jobs.get_by_pid(999) is None
    assert jobs.get_by_jid(0) is None
    assert jobs.pid_to_jid(999) == 0


def test_delete_removes_and_resets_next_jid():
    jobs = JobList()
    jobs.add(100, JobState.BG, "a\n")
    jobs.add(101, JobState.BG, "b\n")
    third = jobs.add(102, JobState.BG, "c\n")
    assert jobs.delete(third.pid) is True
    assert jobs.add(103, JobState.BG, "d\n").jid == third.jid
    assert jobs.delete(999) is False
    assert jobs.delete(-1) is False


def test_deleted_slot_is_reused_in_listing_order():
    jobs = JobList()
    jobs.add(100, JobState.BG, "a\n")
    jobs.add(101, JobState.BG, "b\n")
    jobs.add(102, JobState.BG, "c\n")
    jobs.delete(101)
    newest = jobs.add(103, JobState.BG, "d\n")
    assert newest.jid == jobs.max_jid()
    assert [job.pid for job in jobs] == [100, 103, 102]


def test_foreground_pid():
    jobs = JobList()
    assert jobs.foreground_pid() is None
    jobs.add(100, JobState.BG, "a\n")
    jobs.add(101, JobState.FG, "b\n")
    assert jobs.foreground_pid() == 101


def test_format_listing_uses_state_labels():
    jobs = JobList()
    jobs.add(100, JobState.BG, "a\n")
    jobs.add(101, JobState.FG, "b\n")
    jobs.add(102, JobState.ST, "c\n")
    assert jobs.format_listing() == (
        "(1) (100) Running    a\n"
        "(2) (101) Foreground b\n"
        "(3) (102) Stopped    c\n"
    )


def test_format_listing_reports_undefined_state():
    jobs = JobList()
    jobs.add(100, JobState.UNDEF, "a\n")
    assert jobs.format_listing() == (
        "(1) (100) listjobs: Internal error: job[0].state=0 a\n"
    )


def test_verbose_add_reports_job():
    out = io.StringIO()
    jobs = JobList(verbose=True, out=out)
    jobs.add(100, JobState.BG, "sleep\n")
    assert out.getvalue() == "Added job. [1] 100 sleep\n\n"


def test_iteration_yields_jobs():
    jobs = JobList()
    jobs.add(100, JobState.BG, "a\n")
    assert list(jobs) == [Job(100, 1, JobState.BG, "a\n")]