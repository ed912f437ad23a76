"""Tests for SQLAlchemy models handled by jobs."""

from datetime import datetime

import pytest

from blog import Invoice
from celery_performs.exceptions import PerformsError, RecordNotFound
from celery_performs.integrations.sqlalchemy import Record


@pytest.fixture
def invoice(db_session):
    invoice = Invoice(number="INV-1")
    invoice.save()
    return invoice


class TestRecord:
    """Session handling and the synchronous helpers."""

    def test_find(self, invoice):
        assert Invoice.find(invoice.id) is invoice
        assert Invoice.find(str(invoice.id)) is invoice

    def test_find_missing(self, db_session):
        with pytest.raises(RecordNotFound):
            Invoice.find(404)

    def test_all(self, db_session):
        for number in ("INV-1", "INV-2"):
            Invoice(number=number).save()

        assert sorted(invoice.number for invoice in Invoice.all()) == ["INV-1", "INV-2"]

    def test_touch_sets_columns_and_updated_at(self, invoice):
        time = datetime(2026, 3, 1, 12, 0)
        invoice.touch("reminded_at", time=time)

        assert invoice.reminded_at == time
        assert invoice.updated_at == time

    def test_update(self, invoice):
        invoice.update(number="INV-9")

        assert Invoice.find(invoice.id).number == "INV-9"

    def test_destroy(self, invoice):
        invoice_id = invoice.id
        invoice.destroy()

        with pytest.raises(RecordNotFound):
            Invoice.find(invoice_id)

    def test_session_must_be_configured(self):
        with pytest.raises(PerformsError):
            Record.get_session()

    def test_global_id(self, invoice):
        assert str(invoice.to_global_id()) == f"gid://performs/blog:Invoice/{invoice.id}"
        assert invoice.to_global_id().locate() is invoice


class TestRecordJobs:
    """touch_later, update_later and destroy_later on every model."""

    def test_jobs_are_shared_by_models(self):
        assert Record.TouchJob.queue == "record.touch"
        assert Record.UpdateJob.queue == "record.update"
        assert Record.DestroyJob.queue == "record.destroy"
        assert Record.TouchJob.name == "celery_performs.integrations.sqlalchemy.Record.TouchJob"

    def test_touch_later(self, job_recorder, invoice):
        invoice.touch_later("reminded_at")

        job_recorder.assert_enqueued_with(job=Record.TouchJob, args=[invoice, "reminded_at"], queue="record.touch")
        job_recorder.perform_enqueued_jobs()

        assert Invoice.find(invoice.id).reminded_at is not None

    def test_update_later(self, job_recorder, invoice):
        invoice.update_later(number="INV-2")

        job_recorder.assert_enqueued_with(job=Record.UpdateJob, args=[invoice], kwargs={"number": "INV-2"})
        job_recorder.perform_enqueued_jobs()

        assert Invoice.find(invoice.id).number == "INV-2"

    def test_destroy_later(self, job_recorder, invoice):
        invoice_id = invoice.id
        invoice.destroy_later()

        job_recorder.assert_enqueued_with(job=Record.DestroyJob, queue="record.destroy")
        job_recorder.perform_enqueued_jobs()

        with pytest.raises(RecordNotFound):
            Invoice.find(invoice_id)

    def test_model_declarations(self, job_recorder, invoice):
        invoice.deliver_reminder_later()

        job_recorder.assert_enqueued_with(job=Invoice.DeliverReminderJob, args=[invoice], queue="mailers")
        job_recorder.perform_enqueued_jobs()

        assert invoice.reminded_at is not None
        assert Invoice.DeliverReminderJob.name == "blog.Invoice.DeliverReminderJob"

    def test_bulk_defaults_to_every_record(self, job_recorder, db_session):
        invoices = [Invoice(number=f"INV-{i}") for i in range(3)]
        for invoice in invoices:
            invoice.save()

        Invoice.deliver_reminder_later_bulk()

        job_recorder.assert_enqueued_jobs(3, Invoice.DeliverReminderJob)
        job_recorder.perform_enqueued_jobs()
        assert all(invoice.reminded_at is not None for invoice in Invoice.all())

    def test_bulk_with_subset(self, job_recorder, db_session):
        invoices = [Invoice(number=f"INV-{i}") for i in range(3)]
        for invoice in invoices:
            invoice.save()

        Invoice.destroy_later_bulk(invoices[:2])
        job_recorder.perform_enqueued_jobs()

        assert [invoice.number for invoice in Invoice.all()] == ["INV-2"]
