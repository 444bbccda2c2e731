import pytest
from django.core import mail

from common.models import EmailLog
from common.tasks import send_email

pytestmark = pytest.mark.django_db


def test_send_email_logs_compressed_body() -> None:
    send_email(to="a@example.com", subject="Hello", body="Body text", html_body="<p>Body text</p>")

    assert len(mail.outbox) == 1
    assert mail.outbox[0].bcc == ["a@example.com"]
    assert mail.outbox[0].alternatives[0][1] == "text/html"
    log = EmailLog.objects.get()
    assert log.to == "a@example.com"
    assert log.body == "Body text"


def test_send_email_to_many() -> None:
    send_email(to=["a@example.com", "b@example.com"], subject="Hi", body="x")

    assert len(mail.outbox) == 1
    assert EmailLog.objects.count() == 2
