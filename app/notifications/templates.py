"""Template rendering for email and SMS notifications using Jinja2.

Packaged templates live in ``app/notifications/message_templates`` and are
named ``<type>.subject.j2``, ``<type>.html.j2``, ``<type>.txt.j2`` and
``<type>.sms.j2``. An active NotificationTemplate row for the same
(type, channel) replaces them.
"""

import logging
from typing import Any, Dict, Optional

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from app.domain.models import Channel, NotificationTemplate, NotificationType
from app.domain.template_data import TemplateData

from .models import NotificationTemplateError, RenderedMessage

logger = logging.getLogger(__name__)

SMS_SINGLE_SEGMENT_LENGTH = 160
SMS_MULTI_SEGMENT_LENGTH = 153


def sms_segment_count(body: str) -> int:
    """Number of GSM-7 segments a message body occupies."""
    if len(body) <= SMS_SINGLE_SEGMENT_LENGTH:
        return 1
    return -(-len(body) // SMS_MULTI_SEGMENT_LENGTH)


class TemplateRenderer:
    """Renders notification content with Jinja2.

    Missing variables raise instead of rendering blank, so a template that
    references data the type does not provide fails the dispatch.
    """

    def __init__(self, business: Dict[str, Any], template_dir: str = "message_templates"):
        """
        Args:
            business: Business profile exposed to templates as ``business``
            template_dir: Directory name within the app.notifications package
        """
        self.business = dict(business)

        self.env = Environment(
            loader=PackageLoader("app.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default_for_string=False),
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )
        # Override HTML arrives as a string, so it needs its own escaping environment
        self.html_string_env = Environment(autoescape=True, undefined=StrictUndefined)

    def build_context(self, template_data: TemplateData) -> Dict[str, Any]:
        context = template_data.render_context()
        context["business"] = self.business
        return context

    def render(
        self,
        notification_type: NotificationType,
        channel: Channel,
        template_data: TemplateData,
        override: Optional[NotificationTemplate] = None,
    ) -> RenderedMessage:
        """Render content for one channel.

        Raises:
            NotificationTemplateError: If a template is missing or fails to render
        """
        context = self.build_context(template_data)
        prefix = notification_type.value

        try:
            if channel == Channel.SMS:
                if override is not None:
                    text = self.env.from_string(override.text_template).render(context)
                else:
                    text = self.env.get_template(f"{prefix}.sms.j2").render(context)
                return RenderedMessage(text=" ".join(text.split()))

            if override is not None:
                subject_source = override.subject_template or ""
                subject = self.env.from_string(subject_source).render(context)
                text = self.env.from_string(override.text_template).render(context)
                html = (
                    self.html_string_env.from_string(override.html_template).render(context)
                    if override.html_template
                    else None
                )
            else:
                subject = self.env.get_template(f"{prefix}.subject.j2").render(context)
                html = self.env.get_template(f"{prefix}.html.j2").render(context)
                text = self.env.get_template(f"{prefix}.txt.j2").render(context)

            subject = subject.strip().replace("\n", " ")
            if not subject:
                raise NotificationTemplateError(f"Email subject for {prefix} rendered empty")

            logger.debug(f"Rendered {prefix} email" + (f" from template {override.name}" if override else ""))

            return RenderedMessage(text=text.strip(), subject=subject, html=html)

        except TemplateError as e:
            error_msg = f"Template rendering failed for {prefix}/{channel.value}: {e}"
            logger.error(error_msg)
            raise NotificationTemplateError(error_msg) from e
