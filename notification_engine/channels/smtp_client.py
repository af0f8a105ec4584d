"""SMTP client wrapper for email delivery.

A thin wrapper around smtplib with TLS/SSL, authentication, a connection
timeout, and guaranteed connection cleanup.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, Optional

from ..config.environment import EnvironmentConfig
from .exceptions import ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)


class SMTPClient:
    """Wrapper around smtplib for sending email messages.

    Factories are injectable so tests can substitute mocks for
    ``smtplib.SMTP`` and ``smtplib.SMTP_SSL``.
    """

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(
        self,
        message: EmailMessage,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        timeout: float = 15,
    ) -> None:
        """Send an email message via SMTP.

        Port 465 uses implicit TLS; any other port uses plain SMTP upgraded
        with STARTTLS when ``use_tls`` is set.

        Raises:
            ProviderTimeout: If the connection or a command times out
            ProviderError: If message delivery fails
        """
        smtp = None
        try:
            if env_config.smtp_port == 465:
                logger.debug(f"Connecting to {env_config.smtp_host}:{env_config.smtp_port} with implicit TLS")
                smtp = self.smtp_ssl_factory(
                    env_config.smtp_host,
                    env_config.smtp_port,
                    timeout=timeout,
                    context=ssl.create_default_context(),
                )
            else:
                logger.debug(f"Connecting to {env_config.smtp_host}:{env_config.smtp_port}")
                smtp = self.smtp_factory(env_config.smtp_host, env_config.smtp_port, timeout=timeout)

                if use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if env_config.smtp_user and env_config.smtp_pass:
                smtp.login(env_config.smtp_user, env_config.smtp_pass)

            smtp.send_message(message)

        except TimeoutError as e:
            raise ProviderTimeout(
                f"SMTP timed out after {timeout}s: {e}", channel="email", timeout=timeout
            ) from e
        except smtplib.SMTPResponseException as e:
            raise ProviderError(
                f"SMTP error during message delivery: {e}", channel="email", status_code=e.smtp_code
            ) from e
        except smtplib.SMTPException as e:
            raise ProviderError(f"SMTP error during message delivery: {e}", channel="email") from e
        except OSError as e:
            raise ProviderError(f"Network error during SMTP connection: {e}", channel="email") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")
