"""Outgoing e-mail over SMTP with aiosmtplib."""

from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from ..config import settings

_LOGGER = logging.getLogger("wala.mail")


class EmailService:
    """Async mail sender; every failure is logged and reported as `False`."""

    def __init__(self, config=settings):
        self.smtp_host = config.SMTP_HOST
        self.smtp_port = config.SMTP_PORT
        self.smtp_user = config.SMTP_USER
        self.smtp_password = config.SMTP_PASSWORD
        self.start_tls = config.SMTP_START_TLS
        self.from_email = config.MAIL_FROM

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host)

    async def send_email(self, to_email: str, subject: str, html_content: str,
                         text_content: Optional[str] = None) -> bool:
        if not self.is_configured:
            _LOGGER.warning("SMTP not configured, skipping mail to %s: %s", to_email, subject)
            return False
        message = MIMEMultipart("alternative")
        message["From"] = self.from_email
        message["To"] = to_email
        message["Subject"] = subject
        if text_content:
            message.attach(MIMEText(text_content, "plain", "utf-8"))
        message.attach(MIMEText(html_content, "html", "utf-8"))
        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user or None,
                password=self.smtp_password or None,
                start_tls=self.start_tls,
            )
        except Exception as exc:
            _LOGGER.error("failed to send mail to %s: %s", to_email, exc)
            return False
        _LOGGER.info("mail sent to %s: %s", to_email, subject)
        return True

    async def send_purchase_confirmation(self, summary: dict) -> bool:
        """Mail the buyer their purchase: greeting, products and total.

        `summary` is the dict returned by `PurchaseService.summary`.
        """
        from ..templating import render_string

        html = render_string("email/purchase_confirmation.html", purchase=summary)
        lines = [f"Hello {summary['buyer']['name']},", "", "Thank you for your purchase:"]
        lines += [f"- {item['name']}: {item['price']:.2f} €" for item in summary["items"]]
        lines += ["", f"Total: {summary['total']:.2f} €"]
        subject = f"Purchase confirmation #{summary['number']}"
        return await self.send_email(summary["buyer"]["email"], subject, html, "\n".join(lines))
