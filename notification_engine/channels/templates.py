"""Jinja2 rendering of the e-mail wrapper around a notification message."""

import logging
from typing import Any, Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from .exceptions import MessageRenderError

logger = logging.getLogger(__name__)


class EmailTemplateRenderer:
    """Renders the subject line and HTML/plain-text bodies of notification e-mails.

    Templates live in the ``notification_engine.channels.email_templates``
    package directory and are cached by the Jinja2 environment.
    """

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "notification_subject.j2",
        html_template: str = "notification_body.html.j2",
        text_template: str = "notification_body.txt.j2",
    ):
        self.subject_template_name = subject_template
        self.html_template_name = html_template
        self.text_template_name = text_template

        self.env = Environment(
            loader=PackageLoader("notification_engine.channels", template_dir),
            autoescape=True,
            undefined=StrictUndefined,
        )

    def render(self, context: Dict[str, Any]) -> Dict[str, str]:
        """Render subject, HTML body and text body.

        Args:
            context: Must provide ``title``, ``message``, ``school_name`` and
                ``guardian_name`` (the last two may be empty strings)

        Returns:
            Dictionary with ``subject``, ``html_body`` and ``text_body``

        Raises:
            MessageRenderError: If template rendering fails
        """
        try:
            subject = (
                self.env.get_template(self.subject_template_name)
                .render(context)
                .strip()
                .replace("\n", " ")
            )
            html_body = self.env.get_template(self.html_template_name).render(context)
            text_body = self.env.get_template(self.text_template_name).render(context)

            return {
                "subject": subject,
                "html_body": html_body,
                "text_body": text_body,
            }

        except TemplateError as e:
            error_msg = f"E-mail template rendering failed: {e}"
            logger.error(error_msg, exc_info=True)
            raise MessageRenderError(error_msg, channel="email") from e
