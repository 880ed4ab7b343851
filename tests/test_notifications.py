"""Tests for completion notices and email delivery."""

import base64
from datetime import date
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
import requests

from invoice_workflow.exceptions import NotificationError
from invoice_workflow.notifications import (
    CompletionNotifier,
    EmailMessage,
    NullEmailSender,
    PostmarkEmailSender,
    build_completion_message,
)
from invoice_workflow.output import ExportedCSV

CSV = ExportedCSV(filename="March_invoices_2024-03-15.csv", content='"Total","110"\n')


@pytest.fixture
def linked_job(make_job, inbox_repository):
    job_id = make_job()
    email_id = inbox_repository.record_inbound(
        from_address="carol@globex.test", to_address="invoices@compileflow.com",
        message_id="<m1@globex>", subject="March invoices", from_name="Carol",
    )
    inbox_repository.link_job(email_id, job_id)
    return job_id


@pytest.fixture
def sender():
    sender = Mock()
    sender.service_name = "postmark"
    sender.send.return_value = "pm-123"
    return sender


class TestBuildCompletionMessage:
    """Test cases for build_completion_message."""

    def test_reply_message(self):
        message = build_completion_message(1234567, "March invoices", CSV,
                                           to_address="carol@globex.test",
                                           from_address="noreply@compileflow.com",
                                           recipient_name="Carol",
                                           original_subject="March invoices",
                                           processed_on=date(2024, 3, 15))

        assert message.subject == "Re: March invoices"
        assert message.text_body.startswith("Hello Carol,")
        assert "- Job Title: March invoices" in message.text_body
        assert "- Processing Date: 2024-03-15" in message.text_body
        attachment = message.attachments[0]
        assert attachment.name == "invoice_data_234567.csv"
        assert attachment.content_id == "invoice-234567"
        assert attachment.content_type == "text/csv"
        assert base64.b64decode(attachment.content_base64) == CSV.data
        assert attachment.content_length == len(CSV.data)

    def test_defaults_without_subject_or_name(self):
        message = build_completion_message(7, "t", CSV, "a@b.test", "c@d.test")
        assert message.subject == "Invoice Processing Complete"
        assert message.text_body.startswith("Hello there,")


class TestCompletionNotifier:
    """Test cases for CompletionNotifier class."""

    def test_sends_reply_and_tracks_it(self, linked_job, inbox_repository, sender):
        notifier = CompletionNotifier(inbox_repository, sender, from_address="noreply@x.test")

        assert notifier.notify_if_linked(linked_job, "March invoices", CSV, "blob.csv") is True

        message = sender.send.call_args.args[0]
        assert message.to_address == "carol@globex.test"
        assert message.subject == "Re: March invoices"
        sent = inbox_repository.list_outbound(linked_job)
        assert len(sent) == 1
        assert sent[0].status == "sent"
        assert sent[0].message_id == "pm-123"
        assert sent[0].attachments[0]["storageId"] == "blob.csv"

    def test_unlinked_job_sends_nothing(self, make_job, inbox_repository, sender):
        notifier = CompletionNotifier(inbox_repository, sender)
        assert notifier.notify_if_linked(make_job(), "t", CSV) is False
        sender.send.assert_not_called()

    def test_send_failure_is_tracked_not_raised(self, linked_job, inbox_repository, sender):
        sender.send.side_effect = NotificationError("Postmark error 422: bad address")
        notifier = CompletionNotifier(inbox_repository, sender)

        assert notifier.notify_if_linked(linked_job, "t", CSV) is False

        failed = inbox_repository.list_outbound(linked_job)[0]
        assert failed.status == "failed"
        assert failed.error_message == "Postmark error 422: bad address"
        assert failed.message_id.startswith("failed-")

    def test_missing_provider_id_gets_fallback(self, linked_job, inbox_repository, sender):
        sender.send.return_value = None
        CompletionNotifier(inbox_repository, sender).notify_if_linked(linked_job, "t", CSV)
        assert inbox_repository.list_outbound(linked_job)[0].message_id == f"postmark-{linked_job}"

    def test_unexpected_send_error_is_contained(self, linked_job, inbox_repository, sender):
        sender.send.side_effect = RuntimeError("connection reset")
        notifier = CompletionNotifier(inbox_repository, sender)

        assert notifier.notify_if_linked(linked_job, "t", CSV) is False

        failed = inbox_repository.list_outbound(linked_job)[0]
        assert failed.status == "failed"
        assert failed.error_message == "connection reset"

    def test_lookup_error_is_contained(self, sender):
        inbox = Mock()
        inbox.find_linked_email.side_effect = RuntimeError("no such table")

        assert CompletionNotifier(inbox, sender).notify_if_linked(1, "t", CSV) is False

        sender.send.assert_not_called()
        inbox.record_outbound.assert_not_called()

    def test_tracking_error_does_not_fail_the_send(self, sender):
        inbox = Mock()
        inbox.find_linked_email.return_value = SimpleNamespace(
            from_address="carol@globex.test", from_name="Carol", subject="March invoices",
        )
        inbox.record_outbound.side_effect = RuntimeError("disk I/O error")

        assert CompletionNotifier(inbox, sender).notify_if_linked(1, "t", CSV) is True


class TestPostmarkEmailSender:
    """Test cases for PostmarkEmailSender class."""

    @pytest.fixture
    def message(self):
        return build_completion_message(1, "t", CSV, "carol@globex.test", "noreply@x.test")

    def _session(self, status_code=200, body=None):
        response = Mock()
        response.status_code = status_code
        response.json.return_value = body if body is not None else {"ErrorCode": 0,
                                                                     "MessageID": "pm-1"}
        response.text = "error"
        session = Mock()
        session.post.return_value = response
        return session

    def test_send_success(self, message):
        session = self._session()
        sender = PostmarkEmailSender("token-1", api_url="https://pm.test/email", session=session)

        assert sender.send(message) == "pm-1"

        kwargs = session.post.call_args.kwargs
        assert session.post.call_args.args == ("https://pm.test/email",)
        assert kwargs["headers"]["X-Postmark-Server-Token"] == "token-1"
        assert kwargs["json"]["To"] == "carol@globex.test"
        assert kwargs["json"]["Attachments"][0]["Name"] == "invoice_data_1.csv"
        assert kwargs["json"]["Attachments"][0]["ContentID"] == "invoice-1"

    @pytest.mark.parametrize("status_code, body", [
        (422, {"ErrorCode": 300, "Message": "Invalid email"}),
        (200, {"ErrorCode": 406, "Message": "Inactive recipient"}),
    ])
    def test_provider_errors_raise(self, message, status_code, body):
        sender = PostmarkEmailSender("t", session=self._session(status_code, body))
        with pytest.raises(NotificationError, match=body["Message"]):
            sender.send(message)

    @pytest.mark.parametrize("body", [None, [], "ok"])
    def test_non_object_body_is_treated_as_empty(self, message, body):
        session = self._session()
        session.post.return_value.json.return_value = body

        assert PostmarkEmailSender("t", session=session).send(message) is None

    def test_non_object_error_body_uses_response_text(self, message):
        session = self._session(status_code=500)
        session.post.return_value.json.return_value = None

        with pytest.raises(NotificationError, match="Postmark error 500: error"):
            PostmarkEmailSender("t", session=session).send(message)

    def test_network_error_raises(self, message):
        session = Mock()
        session.post.side_effect = requests.Timeout("timed out")
        with pytest.raises(NotificationError, match="Postmark request failed"):
            PostmarkEmailSender("t", session=session).send(message)

    def test_missing_token(self):
        with pytest.raises(NotificationError):
            PostmarkEmailSender("")

    def test_null_sender(self):
        message = EmailMessage("a@b.test", "c@d.test", "s", "body")
        assert NullEmailSender().send(message) is None
