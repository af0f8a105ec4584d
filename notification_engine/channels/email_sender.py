"""E-mail delivery over SMTP."""

from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from ..config.environment import EnvironmentConfig
from ..config.models import EmailConfig
from ..domain.models import Channel, DeliveryReceipt
from ..logging import get_logger
from ..utils.masking import mask_address
from ..utils.timestamps import utc_now
from .base import ChannelSender
from .exceptions import InvalidAddress
from .models import RenderedMessage
from .smtp_client import SMTPClient
from .templates import EmailTemplateRenderer

logger = get_logger(__name__, component="channel.email")


class EmailSender(ChannelSender):
    """Send a notification as a multipart (text + HTML) e-mail.

    Args:
        env_config: SMTP host/port/credentials and sender identity
        email_config: TLS flag and default sender display name
        timeout: SMTP socket timeout in seconds
        smtp_client: Optional client (injected in tests)
        renderer: Optional template renderer
    """

    channel = Channel.EMAIL

    def __init__(
        self,
        env_config: EnvironmentConfig,
        email_config: Optional[EmailConfig] = None,
        timeout: float = 15,
        smtp_client: Optional[SMTPClient] = None,
        renderer: Optional[EmailTemplateRenderer] = None,
    ) -> None:
        self.env_config = env_config
        self.email_config = email_config or EmailConfig()
        self.timeout = timeout
        self.smtp_client = smtp_client or SMTPClient()
        self.renderer = renderer or EmailTemplateRenderer()

    def missing_configuration(self) -> List[str]:
        return self.env_config.missing_email_credentials()

    def build_message(self, address: str, message: RenderedMessage) -> EmailMessage:
        context = {
            "title": message.title,
            "message": message.body,
            "school_name": message.context.get("school_name") or "",
            "guardian_name": message.context.get("guardian_name") or "",
        }
        rendered = self.renderer.render(context)

        sender_name = self.env_config.email_from_name or self.email_config.sender_name
        email = EmailMessage()
        email["Subject"] = rendered["subject"]
        email["From"] = formataddr((sender_name, self.env_config.email_from_address))
        email["To"] = address
        email["Message-ID"] = make_msgid(domain=self.env_config.email_from_address.split("@")[-1])
        email.set_content(rendered["text_body"])
        email.add_alternative(rendered["html_body"], subtype="html")
        return email

    def send(self, address: str, message: RenderedMessage) -> DeliveryReceipt:
        try:
            normalized = validate_email(address, check_deliverability=False).normalized
        except EmailNotValidError as e:
            raise InvalidAddress(f"Invalid e-mail address: {e}", channel=self.name) from e

        email = self.build_message(normalized, message)
        self.smtp_client.send(
            email,
            self.env_config,
            use_tls=self.email_config.use_tls,
            timeout=self.timeout,
        )

        logger.debug(
            "E-mail handed to SMTP server",
            extra={"event": "channel.email.accepted", "address": mask_address(normalized)},
        )
        return DeliveryReceipt(
            channel=self.channel,
            address=normalized,
            provider_reference=email["Message-ID"],
            sent_at=utc_now(),
        )
