"""Outbound email: the Resend HTTP client and the monthly report email."""

import logging
from pathlib import Path
from typing import Protocol

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import Settings
from currency import format_currency
from errors import EmailDeliveryError
from schemas import ReportOut


logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
RESEND_API_URL = "https://api.resend.com/emails"


class Mailer(Protocol):
    def send(self, to: str, subject: str, html: str, text: str) -> dict: ...


class ResendMailer:
    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.api_key = settings.resend_api_key
        self.sender = settings.mail_sender
        self.timeout = settings.mail_timeout_secs
        self.client = client

    def send(self, to: str, subject: str, html: str, text: str) -> dict:
        """
        Deliver one message through Resend.

        Raises:
            EmailDeliveryError: On a missing API key, timeout, HTTP error or
                unreadable response
        """
        if not self.api_key:
            raise EmailDeliveryError("FINORA_RESEND_API_KEY is not configured")

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        client = self.client or httpx.Client(timeout=self.timeout)
        try:
            response = client.post(RESEND_API_URL, json=payload, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise EmailDeliveryError(f"Resend timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise EmailDeliveryError(f"Resend error: {e.response.status_code}") from e
        except (httpx.RequestError, ValueError) as e:
            raise EmailDeliveryError(f"Resend request failed: {e}") from e
        finally:
            if self.client is None:
                client.close()


def _build_environment(settings: Settings) -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
    )

    def currency(amount) -> str:
        return format_currency(amount, settings.currency_locale, settings.currency_code)

    env.filters["currency"] = currency
    return env


class ReportMailer:
    def __init__(self, settings: Settings, mailer: Mailer) -> None:
        self.mailer = mailer
        self.env = _build_environment(settings)

    def render(self, username: str, report: ReportOut, frequency: str) -> tuple[str, str]:
        context = {
            "username": username,
            "frequency": frequency.capitalize(),
            "report": report,
        }
        html = self.env.get_template("email/report.html").render(**context)
        text = self.env.get_template("email/report.txt").render(**context)
        return html, text

    def send_report(
        self, *, email: str, username: str, report: ReportOut, frequency: str
    ) -> dict:
        html, text = self.render(username, report, frequency)
        subject = f"{frequency.capitalize()} Financial Report - {report.period}"
        result = self.mailer.send(email, subject, html, text)
        logger.info(f"report_mail: sent to={email} period={report.period!r}")
        return result
