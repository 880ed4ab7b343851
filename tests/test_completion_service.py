"""Tests for job completion."""

from unittest.mock import Mock

import pytest

from invoice_workflow.exceptions import AuthorizationError, StorageError
from invoice_workflow.models import JobStatus
from invoice_workflow.processors import JobCompletionService


@pytest.fixture
def accepted(make_job, job_repository, people):
    job_id = make_job()
    job_repository.accept_job(job_id, people["compiler"])
    return job_id


@pytest.fixture
def notifier():
    notifier = Mock()
    notifier.notify_if_linked.return_value = True
    return notifier


@pytest.fixture
def service(job_repository, storage, notifier):
    return JobCompletionService(job_repository, storage, notifier=notifier)


class TestJobCompletionService:
    """Test cases for JobCompletionService class."""

    def test_complete_for_compiler(self, service, accepted, people, job_repository, storage,
                                   extracted_payload, header_fields, line_item_fields, notifier):
        result = service.complete_for_compiler(accepted, people["compiler"], "March invoices",
                                               extracted_payload, header_fields,
                                               line_item_fields)

        assert result.filename.startswith("March_invoices_")
        assert result.csv_url.startswith("file://")
        assert result.notified is True
        assert result.redirect_path == "/dashboard"
        assert result.redirect_delay == 2.0

        job = job_repository.get_job(accepted)
        assert job.status == JobStatus.COMPLETED.value
        assert job.output_file_url == result.csv_url
        output = job_repository.get_output(accepted)
        assert output.csv_storage_id == result.csv_storage_id
        assert [f["name"] for f in output.line_item_fields] == \
            ["description", "quantity", "lineTotal"]
        assert b'"Invoice Number","INV-001"' in storage.read(result.csv_storage_id)

        job_id, title, csv, storage_id = notifier.notify_if_linked.call_args.args
        assert (job_id, title, storage_id) == (accepted, "March invoices", result.csv_storage_id)
        assert csv.filename == result.filename

    def test_other_compiler_cannot_complete(self, service, accepted, people, job_repository,
                                            extracted_payload, notifier):
        with pytest.raises(AuthorizationError):
            service.complete_for_compiler(accepted, people["other_compiler"], "March invoices",
                                          extracted_payload, [], [])
        assert job_repository.get_job(accepted).status == JobStatus.IN_PROGRESS.value
        notifier.notify_if_linked.assert_not_called()

    def test_complete_unattended_uses_auto_title(self, service, make_job, job_repository,
                                                 extracted_payload, header_fields, notifier):
        job_id = make_job()

        result = service.complete_unattended(job_id, "March invoices", extracted_payload,
                                             header_fields, [])

        assert result.filename.startswith("Auto_extracted_Invoice_")
        assert result.redirect_path is None
        assert job_repository.get_job(job_id).status == JobStatus.COMPLETED.value
        assert job_repository.get_job(job_id).compiler_id is None
        assert notifier.notify_if_linked.call_args.args[1] == "March invoices"

    def test_storage_failure_leaves_job_open(self, job_repository, accepted, people,
                                             extracted_payload):
        storage = Mock()
        storage.generate_upload_url.return_value = "upload://x"
        storage.upload.side_effect = StorageError("disk full")
        service = JobCompletionService(job_repository, storage)

        with pytest.raises(StorageError):
            service.complete_for_compiler(accepted, people["compiler"], "March invoices",
                                          extracted_payload, [], [])
        assert job_repository.get_job(accepted).status == JobStatus.IN_PROGRESS.value

    def test_without_notifier(self, job_repository, storage, make_job, extracted_payload):
        service = JobCompletionService(job_repository, storage)
        result = service.complete_unattended(make_job(), "t", extracted_payload, [], [])
        assert result.notified is False
