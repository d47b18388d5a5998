import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage

import certifi
import structlog
from fastapi import BackgroundTasks
from jinja2 import TemplateError

from .. import config
from .rendering import build_environment

logger = structlog.get_logger()

TLS_CONTEXT = ssl.create_default_context(cafile=certifi.where())

SUBJECTS = {
    "offer_sent": "Your Offer Letter – Review & Respond",
    "employment_form_ready": "Complete Your Employment Form",
    "revision_requested": "Changes Requested on Your Employment Form",
    "contract_sent": "Your Employment Contract – Review & Sign",
    "account_ready": "Set Up Your Employee Account",
    "document_sent": "A Document Needs Your Signature",
    "document_generated": "Your Requested Document Is Ready",
}


class Notifier(ABC):
    """notify(recipient, template_key, data); fire-and-forget."""

    @abstractmethod
    def notify(self, recipient: str, template_key: str, data: dict) -> None:
        ...


class NullNotifier(Notifier):
    def notify(self, recipient: str, template_key: str, data: dict) -> None:
        logger.info("Notification skipped (no transport)", recipient=recipient, template=template_key)


def _send_html_via_smtp(to_email: str, subject: str, html: str) -> None:
    if not to_email:
        raise ValueError("Missing recipient email")

    from_addr = config.FROM_EMAIL or config.SMTP_USER
    if not (config.SMTP_USER and config.SMTP_PASS and from_addr):
        raise RuntimeError("SMTP credentials not configured properly")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{config.FROM_NAME} <{from_addr}>"
    msg["To"] = to_email

    # plain text fallback for clients without HTML
    msg.set_content("Please view this email in HTML.")
    msg.add_alternative(html, subtype="html")

    # 465: SMTPS; 587: STARTTLS
    if config.SMTP_PORT == 465:
        with smtplib.SMTP_SSL(config.SMTP_HOST, config.SMTP_PORT, context=TLS_CONTEXT, timeout=10) as server:
            server.login(config.SMTP_USER, config.SMTP_PASS)
            server.send_message(msg)
    else:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as server:
            server.ehlo()
            server.starttls(context=TLS_CONTEXT)
            server.login(config.SMTP_USER, config.SMTP_PASS)
            server.send_message(msg)


class SmtpNotifier(Notifier):
    """Renders ``templates/emails/<template_key>.html`` and sends it over SMTP."""

    def __init__(self, templates_dir=config.TEMPLATES_DIR):
        self.env = build_environment(templates_dir)

    def notify(self, recipient: str, template_key: str, data: dict) -> None:
        context = {
            "company_name": config.COMPANY_NAME,
            "from_name": config.FROM_NAME,
            "portal_url": config.PORTAL_URL,
            **data,
        }
        try:
            html = self.env.get_template(f"emails/{template_key}.html").render(**context)
            _send_html_via_smtp(recipient, SUBJECTS.get(template_key, config.COMPANY_NAME), html)
        except (TemplateError, smtplib.SMTPException, OSError, ValueError, RuntimeError) as exc:
            logger.error("Notification failed", recipient=recipient, template=template_key, error=str(exc))
            return
        logger.info("Notification sent", recipient=recipient, template=template_key)


def default_notifier() -> Notifier:
    if config.SMTP_USER and config.SMTP_PASS:
        return SmtpNotifier()
    return NullNotifier()


class BackgroundNotifier(Notifier):
    """Queues each notification on the response's background tasks."""

    def __init__(self, inner: Notifier, background_tasks: BackgroundTasks):
        self.inner = inner
        self.background_tasks = background_tasks

    def notify(self, recipient: str, template_key: str, data: dict) -> None:
        self.background_tasks.add_task(self.inner.notify, recipient, template_key, dict(data))
