"""
Fábrica de notifiers: devolve o adaptador correto baseado no canal.
"""
from functools import lru_cache

from django.conf import settings

from notification_engine.adapters.notifiers.base import BaseNotifier
from notification_engine.adapters.notifiers.email.smtp import SmtpEmail
from notification_engine.adapters.notifiers.whatsapp.twilio import TwilioWhatsapp
from notification_engine.core.domain.types import NotificationChannel


@lru_cache
def get_whatsapp_notifier() -> BaseNotifier:
    return TwilioWhatsapp(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_WHATSAPP_NUMBER,
        default_region=settings.PHONE_DEFAULT_REGION,
        status_callback_url=settings.TWILIO_STATUS_CALLBACK_URL or None,
        enabled=settings.WHATSAPP_ENABLED,
        rate_limit_per_minute=settings.WHATSAPP_RATE_LIMIT_PER_MINUTE or None,
        timeout=settings.NOTIFICATION_ENGINE["SEND_TIMEOUT_SECONDS"],
    )


@lru_cache
def get_email_notifier() -> BaseNotifier:
    return SmtpEmail(
        from_email=settings.DEFAULT_FROM_EMAIL,
        host=settings.EMAIL_HOST,
        port=settings.EMAIL_PORT,
        username=settings.EMAIL_HOST_USER,
        password=settings.EMAIL_HOST_PASSWORD,
        use_tls=settings.EMAIL_USE_TLS,
        use_ssl=settings.EMAIL_USE_SSL,
        backend=settings.EMAIL_BACKEND,
        enabled=settings.EMAIL_ENABLED,
        rate_limit_per_minute=settings.EMAIL_RATE_LIMIT_PER_MINUTE or None,
        timeout=settings.NOTIFICATION_ENGINE["SEND_TIMEOUT_SECONDS"],
    )


def get_notifier(channel: NotificationChannel | str) -> BaseNotifier:
    """
    Retorna o adaptador de notificação para o canal especificado.

    - 'WHATSAPP' → TwilioWhatsapp
    - 'EMAIL'    → SmtpEmail
    """
    match NotificationChannel(str(channel).upper()):
        case NotificationChannel.WHATSAPP:
            return get_whatsapp_notifier()
        case NotificationChannel.EMAIL:
            return get_email_notifier()


def build_channel_adapters() -> dict[NotificationChannel, BaseNotifier]:
    return {channel: get_notifier(channel) for channel in NotificationChannel}
