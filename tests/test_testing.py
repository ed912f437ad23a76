"""Tests for the JobRecorder test helper."""

from datetime import datetime, timedelta, timezone

import pytest
from celery import Task, group
from celery.exceptions import Retry

from blog import Publisher
from celery_performs.testing import EnqueuedJob, JobRecorder


def test_patches_are_removed_on_exit():
    original_task_apply_async = Task.apply_async
    original_group_apply_async = group.apply_async

    with JobRecorder():
        assert Task.apply_async is not original_task_apply_async
        assert group.apply_async is not original_group_apply_async

    assert Task.apply_async is original_task_apply_async
    assert group.apply_async is original_group_apply_async


def test_records_single_and_bulk_submissions(job_recorder, publisher):
    other = Publisher.create(2)

    publisher.retract_later(reason="spam")
    Publisher.publish_later_bulk([publisher, other])

    assert len(job_recorder.jobs) == 3
    job_recorder.assert_enqueued_jobs(1, Publisher.RetractJob)
    job_recorder.assert_enqueued_jobs(2, Publisher.PublishJob)


def test_assert_enqueued_with_reports_mismatch(job_recorder, publisher):
    publisher.retract_later(reason="spam")

    with pytest.raises(AssertionError, match="No enqueued job matched"):
        job_recorder.assert_enqueued_with(job=Publisher.RetractJob, kwargs={"reason": "other"})

    with pytest.raises(AssertionError):
        job_recorder.assert_enqueued_with(job=Publisher.RetractJob, at=datetime.now(timezone.utc))


def test_assert_no_enqueued_jobs_fails_when_jobs_exist(job_recorder, publisher):
    publisher._private_method_later()

    with pytest.raises(AssertionError):
        job_recorder.assert_no_enqueued_jobs()
    job_recorder.assert_no_enqueued_jobs(Publisher.PublishJob)


def test_perform_enqueued_jobs_only_runs_pending(job_recorder, publisher):
    publisher._private_method_later()
    job_recorder.perform_enqueued_jobs()
    job_recorder.perform_enqueued_jobs()

    assert publisher.calls == [("_private_method",)]
    assert job_recorder.pending() == []


def test_perform_enqueued_jobs_by_job(job_recorder, publisher):
    publisher._private_method_later()
    publisher.retract_later(reason="spam")

    job_recorder.perform_enqueued_jobs(Publisher.RetractJob)

    assert publisher.calls == [("retract", "spam")]
    assert [entry.job for entry in job_recorder.pending()] == [Publisher.PrivateMethodJob]


def test_clear(job_recorder, publisher):
    publisher._private_method_later()
    job_recorder.clear()

    job_recorder.assert_no_enqueued_jobs()


def test_scheduled_at():
    enqueued_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
    eta = enqueued_at + timedelta(days=1)

    def entry(**options):
        return EnqueuedJob(task=None, args=[], kwargs={}, options=options, enqueued_at=enqueued_at)

    assert entry().scheduled_at is None
    assert entry(countdown=60).scheduled_at == enqueued_at + timedelta(minutes=1)
    assert entry(eta=eta).scheduled_at == eta


def test_retried_jobs_are_recorded_until_attempts_run_out(job_recorder, publisher):
    publisher.fail_with = TimeoutError("slow")
    publisher.publish_later()

    with pytest.raises(TimeoutError, match="slow"):
        job_recorder.perform_enqueued_jobs()

    original, *retries = job_recorder.enqueued(Publisher.PublishJob)
    assert len(retries) == 2
    assert [entry.options["retries"] for entry in retries] == [1, 2]
    assert [entry.options["countdown"] for entry in retries] == [5, 5]
    assert all(entry.args == original.args for entry in retries)
    assert job_recorder.pending() == []


def test_retried_job_succeeds_on_next_run(job_recorder, publisher):
    publisher.fail_with = TimeoutError("slow")
    publisher.publish_later("news")
    [entry] = job_recorder.pending()

    result = job_recorder.perform(entry)

    assert isinstance(result, Retry)
    [retried] = job_recorder.pending()
    assert retried.job is Publisher.PublishJob
    assert retried.options["retries"] == 1

    publisher.fail_with = None
    assert job_recorder.perform_enqueued_jobs() == ["published"]
    assert publisher.calls == [("publish", ("news",), False)]
