from __future__ import annotations

from collections.abc import Mapping
from typing import Any, assert_never

import structlog

from notification_engine.adapters.notifiers.base import BaseNotifier
from notification_engine.core.application.commands.notification_commands import (
    CleanupFailedJobsCommand,
    ResendFailedNotificationCommand,
    ScheduleAppointmentRemindersCommand,
    SendAppointmentNotificationCommand,
    SendCustomNotificationCommand,
    SendRemindersForDateCommand,
    SendTestMessageCommand,
)
from notification_engine.core.application.cqrs import CommandHandler, QueryHandler
from notification_engine.core.application.dtos.outbound_message_dto import OutboundMessageDTO
from notification_engine.core.application.queries.notification_queries import (
    ListNotificationsQuery,
    NotificationStatsQuery,
    QueueStatsQuery,
    ServiceStatusQuery,
    SystemHealthQuery,
)
from notification_engine.core.application.services.notification_service import NotificationService
from notification_engine.core.application.services.queue_engine import QueueEngine
from notification_engine.core.application.services.scheduler_service import SchedulerService
from notification_engine.core.domain.entities.delivery_result import Delivered, PermanentFailure, TransientFailure
from notification_engine.core.domain.events.exceptions import (
    PermanentNotificationError,
    SystemUnhealthy,
    TemporaryNotificationError,
    ValidationError,
)
from notification_engine.core.domain.types import NotificationChannel

logger = structlog.get_logger(__name__)


def _jobs_payload(jobs) -> dict[str, Any]:
    return {"created": len(jobs), "jobs": [job.to_public_dict() for job in jobs]}


# ──────────────────────────────────────────────────────────────────────────
# Comandos – criação de jobs
# ──────────────────────────────────────────────────────────────────────────
class SendAppointmentNotificationHandler(CommandHandler[SendAppointmentNotificationCommand]):
    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    def handle(self, cmd: SendAppointmentNotificationCommand) -> dict[str, Any]:
        jobs = self.notification_service.send_appointment_notification(
            cmd.appointment_id, cmd.type, cmd.custom_message
        )
        return _jobs_payload(jobs)


class ScheduleAppointmentRemindersHandler(CommandHandler[ScheduleAppointmentRemindersCommand]):
    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    def handle(self, cmd: ScheduleAppointmentRemindersCommand) -> dict[str, Any]:
        return _jobs_payload(self.notification_service.schedule_appointment_reminders(cmd.appointment_id))


class SendCustomNotificationHandler(CommandHandler[SendCustomNotificationCommand]):
    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    def handle(self, cmd: SendCustomNotificationCommand) -> dict[str, Any]:
        jobs = self.notification_service.send_custom_notification(cmd.patient_id, cmd.message, cmd.subject)
        return _jobs_payload(jobs)


class SendRemindersForDateHandler(CommandHandler[SendRemindersForDateCommand]):
    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    def handle(self, cmd: SendRemindersForDateCommand) -> dict[str, Any]:
        return self.notification_service.send_reminders_for_date(cmd.date)


# ──────────────────────────────────────────────────────────────────────────
# Comandos – operação
# ──────────────────────────────────────────────────────────────────────────
class ResendFailedNotificationHandler(CommandHandler[ResendFailedNotificationCommand]):
    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    def handle(self, cmd: ResendFailedNotificationCommand) -> dict[str, Any]:
        return self.notification_service.resend_failed_notification(cmd.job_id).to_public_dict()


class CleanupFailedJobsHandler(CommandHandler[CleanupFailedJobsCommand]):
    def __init__(self, queue_engine: QueueEngine):
        self.queue_engine = queue_engine

    def handle(self, cmd: CleanupFailedJobsCommand) -> dict[str, Any]:
        return {"removed": self.queue_engine.cleanup_failed_jobs(cmd.days), "days": cmd.days}


class SendTestMessageHandler(CommandHandler[SendTestMessageCommand]):
    """
    Envio síncrono direto pelo adaptador, sem passar pelo Job Store.
    Falhas sobem como `PermanentNotificationError`/`TemporaryNotificationError`.
    """

    def __init__(self, adapters: Mapping[NotificationChannel, BaseNotifier]):
        self.adapters = adapters

    def handle(self, cmd: SendTestMessageCommand) -> dict[str, Any]:
        try:
            channel = NotificationChannel(cmd.channel.upper())
        except ValueError as exc:
            raise ValidationError(f"canal inválido: {cmd.channel!r}") from exc
        if not (cmd.recipient or "").strip() or not (cmd.message or "").strip():
            raise ValidationError("recipient e message são obrigatórios")

        adapter = self.adapters[channel]
        if not adapter.is_enabled():
            raise TemporaryNotificationError(f"canal {channel.value} desabilitado ou não configurado")

        result = adapter.send(
            OutboundMessageDTO(channel=channel, recipient=cmd.recipient, body=cmd.message, subject=cmd.subject)
        )
        match result:
            case Delivered(provider_message_id=provider_message_id, confirmed=confirmed):
                logger.info("test_message.sent", channel=channel.value, provider_message_id=provider_message_id)
                return {
                    "channel": channel.value,
                    "provider": adapter.provider,
                    "provider_message_id": provider_message_id,
                    "confirmed": confirmed,
                }
            case TransientFailure(reason=reason):
                raise TemporaryNotificationError(reason)
            case PermanentFailure(reason=reason):
                raise PermanentNotificationError(reason)
            case _:
                assert_never(result)


# ──────────────────────────────────────────────────────────────────────────
# Queries
# ──────────────────────────────────────────────────────────────────────────
class ListNotificationsHandler(QueryHandler[ListNotificationsQuery, dict[str, Any]]):
    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    def handle(self, query: ListNotificationsQuery) -> dict[str, Any]:
        return self.notification_service.get_notifications(query.filtros, query.pagination)


class NotificationStatsHandler(QueryHandler[NotificationStatsQuery, dict[str, Any]]):
    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    def handle(self, query: NotificationStatsQuery) -> dict[str, Any]:
        return self.notification_service.get_notification_stats(query.since, query.until)


class QueueStatsHandler(QueryHandler[QueueStatsQuery, dict[str, Any]]):
    def __init__(self, queue_engine: QueueEngine):
        self.queue_engine = queue_engine

    def handle(self, query: QueueStatsQuery) -> dict[str, Any]:
        return self.queue_engine.get_queue_stats()


class ServiceStatusHandler(QueryHandler[ServiceStatusQuery, dict[str, Any]]):
    def __init__(self, queue_engine: QueueEngine):
        self.queue_engine = queue_engine

    def handle(self, query: ServiceStatusQuery) -> dict[str, Any]:
        return self.queue_engine.get_service_status()


class SystemHealthHandler(QueryHandler[SystemHealthQuery, dict[str, Any]]):
    """
    Visão consolidada (banco, canais, fila, agendador).
    Levanta `SystemUnhealthy` com o relatório completo quando algo essencial falha.
    """

    def __init__(self, queue_engine: QueueEngine, scheduler: SchedulerService):
        self.queue_engine = queue_engine
        self.scheduler = scheduler

    def handle(self, query: SystemHealthQuery) -> dict[str, Any]:
        service = self.queue_engine.get_service_status()
        report: dict[str, Any] = {
            "database": service["store"],
            "channels": service["channels"],
            "engine": service["engine"],
        }
        problems: list[str] = []
        if not service["store"]["connected"]:
            problems.append("banco de dados inacessível")
        else:
            report["queue"] = self.queue_engine.get_queue_stats()
            report["scheduler"] = self.scheduler.get_scheduler_stats()
            if not report["scheduler"]["shared_cache"]:
                problems.append("cache local ao processo: locks e toggles do agendador não são compartilhados")
        if not any(c["enabled"] for c in service["channels"].values()):
            problems.append("nenhum canal de envio habilitado")

        report["status"] = "unhealthy" if problems else "healthy"
        if problems:
            logger.warning("health.unhealthy", problems=problems)
            raise SystemUnhealthy(problems, report)
        return report
