"""SMTP email provider using aiosmtplib.

Messages are multipart: a plain-text body with an HTML alternative, both
UTF-8 so Portuguese characters survive every hop.
"""

from __future__ import annotations

import re
from email.message import EmailMessage

import aiosmtplib
from clinic_service_libs.error_handling import raise_external_service_error
from clinic_service_libs.logging_utils import create_service_logger

from services.notification_service.config import Settings
from services.notification_service.protocols import EmailSenderProtocol

logger = create_service_logger("notification_service.provider_smtp")


class SMTPEmailProvider(EmailSenderProtocol):
    def __init__(self, settings: Settings):
        self.settings = settings

    def build_message(
        self, to: str, subject: str, html_content: str, text_content: str | None = None
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = f"{self.settings.DEFAULT_FROM_NAME} <{self.settings.DEFAULT_FROM_EMAIL}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text_content or self._html_to_text(html_content), charset="utf-8")
        msg.add_alternative(html_content, subtype="html", charset="utf-8")
        return msg

    async def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> None:
        msg = self.build_message(to, subject, html_content, text_content)
        try:
            async with aiosmtplib.SMTP(
                hostname=self.settings.SMTP_HOST,
                port=self.settings.SMTP_PORT,
                start_tls=self.settings.SMTP_USE_TLS,
                timeout=self.settings.SMTP_TIMEOUT,
            ) as smtp:
                if self.settings.SMTP_USERNAME and self.settings.SMTP_PASSWORD:
                    await smtp.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD)
                errors, response = await smtp.send_message(msg)
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP send failed to {to}: {e}", exc_info=True)
            raise_external_service_error(
                self.settings.SERVICE_NAME,
                "send_email",
                "smtp",
                f"Falha ao enviar email: {e}",
                smtp_host=self.settings.SMTP_HOST,
            )

        if errors:
            details = "; ".join(f"{addr}: {error}" for addr, error in errors.items())
            logger.error(f"SMTP recipient refused for {to}: {details}")
            raise_external_service_error(
                self.settings.SERVICE_NAME,
                "send_email",
                "smtp",
                f"Destinatário recusado: {details}",
            )

        logger.info(
            "Email sent via SMTP",
            to=to,
            subject=subject,
            smtp_host=self.settings.SMTP_HOST,
            smtp_response=response,
        )

    def get_provider_name(self) -> str:
        return "smtp"

    def _html_to_text(self, html: str) -> str:
        clean_text = re.sub(r"<(style|head)[^>]*>.*?</\1>", "", html, flags=re.S | re.I)
        clean_text = re.sub(r"<br\s*/?>|</p>|</div>|</li>", "\n", clean_text, flags=re.I)
        clean_text = re.sub(r"<[^>]+>", "", clean_text)
        clean_text = clean_text.replace("&nbsp;", " ").replace("&amp;", "&")
        clean_text = re.sub(r"[ \t]+", " ", clean_text)
        return re.sub(r"\n\s*\n+", "\n\n", clean_text).strip()
