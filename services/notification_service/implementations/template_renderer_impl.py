"""Jinja2 template renderer for notification emails.

Templates live in ``templates/<template_id>.html``. The subject is declared
inside the template as ``<!-- subject: ... -->`` so copy and subject change
together.
"""

from __future__ import annotations

import re
from pathlib import Path

from clinic_service_libs.error_handling import raise_validation_error
from clinic_service_libs.logging_utils import create_service_logger
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from services.notification_service.protocols import RenderedTemplate, TemplateRendererProtocol

logger = create_service_logger("notification_service.template_renderer")

SUBJECT_PATTERN = re.compile(r"<!--\s*subject:\s*(.+?)\s*-->", re.IGNORECASE)


class JinjaTemplateRenderer(TemplateRendererProtocol):
    def __init__(self, template_path: str = "templates") -> None:
        service_root = Path(__file__).parent.parent
        self.template_dir = service_root / template_path
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            enable_async=True,
        )

    async def render(self, template_id: str, variables: dict[str, str]) -> RenderedTemplate:
        """
        Render ``template_id`` with ``variables``.

        Raises:
            ClinicServiceError: VALIDATION_ERROR if the template is missing
        """
        template_filename = f"{template_id}.html"
        try:
            template = self.env.get_template(template_filename)
        except TemplateNotFound:
            logger.error(f"Template not found: {template_filename}")
            raise_validation_error(
                "notification_service",
                "render_template",
                "template_id",
                f"Template not found: {template_id}",
            )

        html_content = await template.render_async(**variables)
        match = SUBJECT_PATTERN.search(html_content)
        subject = match.group(1) if match else "Notificação da clínica"

        return RenderedTemplate(
            subject=subject,
            html_content=html_content,
            text_content=self._generate_text_content(html_content),
        )

    def _generate_text_content(self, html_content: str) -> str:
        text_content = re.sub(r"<!--.*?-->", "", html_content, flags=re.S)
        text_content = re.sub(r"<(style|head)[^>]*>.*?</\1>", "", text_content, flags=re.S | re.I)
        text_content = re.sub(r"<br\s*/?>|</p>|</div>|</li>", "\n", text_content, flags=re.I)
        text_content = re.sub(r"<[^>]+>", "", text_content)
        text_content = text_content.replace("&nbsp;", " ").replace("&amp;", "&")
        text_content = re.sub(r"[ \t]+", " ", text_content)
        text_content = re.sub(r"\n\s*\n+", "\n\n", text_content)
        return text_content.strip()
