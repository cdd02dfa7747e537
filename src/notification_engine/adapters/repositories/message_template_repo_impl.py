from __future__ import annotations

from typing import Any

import structlog

from notification_engine.core.application.services.default_templates import DEFAULT_TEMPLATES
from notification_engine.core.domain.repositories.message_template_repository import (
    ClinicConfigRepository,
    ClinicInfo,
    MessageTemplateRepository,
    RenderedMessage,
)
from notification_engine.core.domain.types import NotificationChannel, NotificationType
from notification_engine.core.utils.template_utils import render_message
from plugins.django_interface.models import MessageTemplate, SystemConfig

log = structlog.get_logger(__name__)


class MessageTemplateRepoImpl(MessageTemplateRepository):
    """
    Template ativo do banco para (categoria, canal); na ausência,
    usa o padrão embutido em `DEFAULT_TEMPLATES`.
    """

    def render(
        self,
        category: NotificationType,
        channel: NotificationChannel,
        variables: dict[str, Any],
    ) -> RenderedMessage:
        row = (
            MessageTemplate.objects.filter(category=category.value, channel=channel.value, is_active=True)
            .only("subject", "body")
            .first()
        )
        if row:
            subject_tpl, body_tpl = row.subject, row.body
        else:
            default = DEFAULT_TEMPLATES[(category, channel)]
            subject_tpl, body_tpl = default["subject"], default["body"]
            log.debug("template.default_used", category=category.value, channel=channel.value)

        return RenderedMessage(
            body=render_message(body_tpl or "", variables),
            subject=render_message(subject_tpl, variables) if subject_tpl else None,
        )


class ClinicConfigRepoImpl(ClinicConfigRepository):
    DEFAULTS = {
        "CLINIC_NAME": "Clínica Dental",
        "CLINIC_ADDRESS": "Dirección no configurada",
        "CLINIC_PHONE": "Teléfono no configurado",
    }

    def get_clinic_info(self) -> ClinicInfo:
        values = dict(
            SystemConfig.objects.filter(key__in=self.DEFAULTS).values_list("key", "value")
        )
        cfg = {k: (values.get(k) or default) for k, default in self.DEFAULTS.items()}
        return ClinicInfo(
            name=cfg["CLINIC_NAME"],
            address=cfg["CLINIC_ADDRESS"],
            phone=cfg["CLINIC_PHONE"],
        )
