from __future__ import annotations

import smtplib
from email.utils import make_msgid

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.mail import EmailMessage, get_connection
from django.core.validators import validate_email

from notification_engine.adapters.notifiers.base import BaseNotifier
from notification_engine.core.application.dtos.outbound_message_dto import OutboundMessageDTO
from notification_engine.core.domain.entities.delivery_result import (
    Delivered,
    DeliveryResult,
    PermanentFailure,
    TransientFailure,
)
from notification_engine.core.domain.types import NotificationChannel

logger = structlog.get_logger(__name__)

SMTP_BACKEND = "django.core.mail.backends.smtp.EmailBackend"
_SMTP_PERMANENT_CODE = 500


class SmtpEmail(BaseNotifier):
    """
    Envia e-mails texto puro pelo framework de e-mail do Django.

    Em produção o backend é SMTP; em testes/dev pode ser `locmem` ou `console`.
    """

    def __init__(  # noqa: PLR0913
        self,
        from_email: str | None,
        *,
        host: str | None = None,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        use_ssl: bool = False,
        backend: str | None = None,
        enabled: bool = True,
        rate_limit_per_minute: int | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(
            "smtp",
            NotificationChannel.EMAIL,
            enabled=enabled,
            rate_limit_per_minute=rate_limit_per_minute,
            timeout=timeout,
        )
        self._from_email = (from_email or "").strip()
        self._host = (host or "").strip()
        self._port = port
        self._username = username or ""
        self._password = password or ""
        self._use_tls = use_tls and not use_ssl
        self._use_ssl = use_ssl
        self._backend = backend or SMTP_BACKEND

    def is_configured(self) -> bool:
        if not self._from_email:
            return False
        return bool(self._host) or self._backend != SMTP_BACKEND

    def _connection(self):
        return get_connection(
            backend=self._backend,
            host=self._host,
            port=self._port,
            username=self._username,
            password=self._password,
            use_tls=self._use_tls,
            use_ssl=self._use_ssl,
            timeout=self.timeout,
            fail_silently=False,
        )

    def _deliver(self, message: OutboundMessageDTO) -> DeliveryResult:
        try:
            validate_email(message.recipient)
        except DjangoValidationError:
            return PermanentFailure(f"endereço de e-mail inválido: {message.recipient!r}")

        message_id = make_msgid(domain=self._from_email.rpartition("@")[2] or None)
        email = EmailMessage(
            subject=message.subject or "",
            body=message.body,
            from_email=self._from_email,
            to=[message.recipient],
            headers={"Message-ID": message_id},
            connection=self._connection(),
        )

        try:
            sent = email.send(fail_silently=False)
        except smtplib.SMTPRecipientsRefused as exc:
            codes = [code for code, _ in exc.recipients.values()]
            return self._refused(message.recipient, codes, f"destinatário recusado: {exc.recipients}")
        except smtplib.SMTPSenderRefused as exc:
            return self._refused(message.recipient, [exc.smtp_code], f"remetente recusado: {exc}")
        except smtplib.SMTPDataError as exc:
            if exc.smtp_code >= _SMTP_PERMANENT_CODE:
                return PermanentFailure(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}")
            return TransientFailure(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}")
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("email.transport_error", provider=self.provider, to=message.recipient, error=str(exc))
            return TransientFailure(f"falha SMTP: {exc.__class__.__name__}: {exc}")

        if not sent:
            return TransientFailure("backend de e-mail não confirmou o envio")

        logger.info("email.sent", provider=self.provider, to=message.recipient, subject=message.subject)
        return Delivered(provider_message_id=message_id, confirmed=False)

    def _refused(self, recipient: str, codes: list[int], reason: str) -> DeliveryResult:
        """Recusa 5xx é definitiva; 4xx (caixa cheia, greylisting, 450/452) tenta de novo."""
        if any(code >= _SMTP_PERMANENT_CODE for code in codes):
            logger.warning("email.rejected", provider=self.provider, to=recipient, codes=codes, error=reason)
            return PermanentFailure(reason)
        logger.info("email.deferred_by_server", provider=self.provider, to=recipient, codes=codes, error=reason)
        return TransientFailure(reason)

    def _probe(self) -> None:
        conn = self._connection()
        try:
            conn.open()
        finally:
            conn.close()
