"""
Email adapter for the Bookshare backend.

Messages are rendered from Jinja2 templates in bookshare/templates and sent
over SMTP with credentials from Settings. dispatch_email() hands delivery to a
small thread pool so request handlers return without waiting on SMTP.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
import logging
import smtplib
import ssl

from jinja2 import Environment, FileSystemLoader, select_autoescape

from bookshare.domain.errors import MailDeliveryError

from .config import get_settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="mail")


def render_template(name: str, **context) -> str:
    return _env.get_template(name).render(**context)


def send_email(subject: str, to_email: str, html_body: str, text_body: str | None = None) -> bool:
    """
    Send an email with the SMTP credentials from the environment.

    Returns False without sending when SMTP is not configured. Raises
    MailDeliveryError when the SMTP exchange fails.
    """
    settings = get_settings()
    if not (
        settings.smtp_host
        and settings.smtp_user
        and settings.smtp_password
        and settings.smtp_from
        and settings.smtp_port
    ):
        logger.warning("SMTP not configured; skipping email to %s", to_email)
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from
    msg["To"] = to_email
    plain = text_body or html_body
    msg.attach(MIMEText(plain, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    port = settings.smtp_port or 465
    try:
        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(settings.smtp_host, port, context=context) as server:
                server.login(settings.smtp_user, settings.smtp_password)
                server.sendmail(settings.smtp_from, [to_email], msg.as_string())
        else:
            with smtplib.SMTP(settings.smtp_host, port) as server:
                server.ehlo()
                server.starttls(context=ssl.create_default_context())
                server.login(settings.smtp_user, settings.smtp_password)
                server.sendmail(settings.smtp_from, [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        raise MailDeliveryError() from exc
    logger.info("Email %r sent to %s", subject, to_email)
    return True


def _log_dispatch_failure(to_email: str, future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Background email to %s failed", to_email, exc_info=exc)


def dispatch_email(subject: str, to_email: str, html_body: str, text_body: str | None = None) -> None:
    """
    Deliver an email without blocking the caller.

    With MAIL_ASYNC disabled the message is sent inline and delivery errors
    propagate as MailDeliveryError.
    """
    if not get_settings().mail_async:
        send_email(subject, to_email, html_body, text_body)
        return
    future = _executor.submit(send_email, subject, to_email, html_body, text_body)
    future.add_done_callback(lambda f: _log_dispatch_failure(to_email, f))
