import json
from dataclasses import replace

import httpx
import pytest

from errors import EmailDeliveryError
from mailer import RESEND_API_URL, ReportMailer, ResendMailer
from schemas import CategorySpend, ReportOut, ReportSummary


def _report():
    return ReportOut(
        period="January 1, 2025 - January 31, 2025",
        summary=ReportSummary(
            income=1000.0,
            expenses=500.0,
            balance=500.0,
            savings_rate=50.0,
            top_categories=[
                CategorySpend(name="Food", amount=300.0, percent=60),
                CategorySpend(name="Rent & Bills", amount=200.0, percent=40),
            ],
        ),
        insights=["Keep <b>tracking</b> groceries"],
    )


def _configured(settings):
    return replace(settings, resend_api_key="re_test")


def test_resend_mailer_posts_message(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "msg-1"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    mailer = ResendMailer(_configured(settings), client=client)

    assert mailer.send("asha@example.com", "Subject", "<p>hi</p>", "hi") == {"id": "msg-1"}

    request = seen[0]
    assert str(request.url) == RESEND_API_URL
    assert request.headers["authorization"] == "Bearer re_test"
    payload = json.loads(request.content)
    assert payload == {
        "from": settings.mail_sender,
        "to": ["asha@example.com"],
        "subject": "Subject",
        "html": "<p>hi</p>",
        "text": "hi",
    }


def test_resend_mailer_wraps_http_errors(settings):
    client = httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="oops"))
    )
    mailer = ResendMailer(_configured(settings), client=client)

    with pytest.raises(EmailDeliveryError, match="500"):
        mailer.send("asha@example.com", "Subject", "", "")


def test_resend_mailer_wraps_transport_errors(settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    mailer = ResendMailer(_configured(settings), client=client)

    with pytest.raises(EmailDeliveryError, match="request failed"):
        mailer.send("asha@example.com", "Subject", "", "")


def test_resend_mailer_requires_api_key(settings):
    with pytest.raises(EmailDeliveryError, match="not configured"):
        ResendMailer(settings).send("asha@example.com", "Subject", "", "")


def test_report_mailer_renders_both_bodies(settings):
    html, text = ReportMailer(settings, mailer=None).render("Asha", _report(), "monthly")

    assert "Monthly Financial Report" in html
    assert "January 1, 2025 - January 31, 2025" in html
    assert "₹300.00" in html
    assert "Rent &amp; Bills" in html
    assert "Keep &lt;b&gt;tracking&lt;/b&gt; groceries" in html

    assert "Your Monthly Financial Report (January 1, 2025 - January 31, 2025)" in text
    assert "Income: ₹1,000.00" in text
    assert "Savings Rate: 50.00%" in text
    assert "- Rent & Bills: ₹200.00 (40%)" in text
    assert "Keep <b>tracking</b> groceries" in text


def test_report_mailer_sends_with_subject(settings):
    class Recorder:
        def __init__(self):
            self.calls = []

        def send(self, to, subject, html, text):
            self.calls.append((to, subject))
            return {"id": "msg-9"}

    recorder = Recorder()
    result = ReportMailer(settings, recorder).send_report(
        email="asha@example.com", username="Asha", report=_report(), frequency="monthly"
    )

    assert result == {"id": "msg-9"}
    assert recorder.calls == [
        ("asha@example.com", "Monthly Financial Report - January 1, 2025 - January 31, 2025")
    ]
