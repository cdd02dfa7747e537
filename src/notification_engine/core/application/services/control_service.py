from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from notification_engine.core.application.commands.notification_commands import (
    CleanupFailedJobsCommand,
    ResendFailedNotificationCommand,
    ScheduleAppointmentRemindersCommand,
    SendAppointmentNotificationCommand,
    SendCustomNotificationCommand,
    SendRemindersForDateCommand,
    SendTestMessageCommand,
)
from notification_engine.core.application.commands.scheduler_commands import RunTaskManuallyCommand, ToggleTaskCommand
from notification_engine.core.application.cqrs import CommandBus, QueryBus
from notification_engine.core.application.dtos.notification_dto import NotificationFilterDTO, PaginationDTO
from notification_engine.core.application.queries.notification_queries import (
    ListNotificationsQuery,
    NotificationStatsQuery,
    QueueStatsQuery,
    ServiceStatusQuery,
    SystemHealthQuery,
)
from notification_engine.core.application.queries.scheduler_queries import SchedulerStatsQuery, TasksStatusQuery


class NotificationControlService:
    """
    Fachada exposta às views DRF, comandos de management e tarefas Celery.

    Tudo passa pelos buses; nenhuma regra de negócio mora aqui.
    """

    def __init__(self, command_bus: CommandBus, query_bus: QueryBus) -> None:
        self.commands = command_bus
        self.queries = query_bus

    # ------------------------------------------------ criação de jobs
    def send_appointment_notification(
        self, appointment_id: UUID, type: str, custom_message: str | None = None
    ) -> dict[str, Any]:
        return self.commands.dispatch(
            SendAppointmentNotificationCommand(appointment_id=appointment_id, type=type, custom_message=custom_message)
        )

    def schedule_appointment_reminders(self, appointment_id: UUID) -> dict[str, Any]:
        return self.commands.dispatch(ScheduleAppointmentRemindersCommand(appointment_id=appointment_id))

    def send_custom_notification(self, patient_id: UUID, message: str, subject: str | None = None) -> dict[str, Any]:
        return self.commands.dispatch(
            SendCustomNotificationCommand(patient_id=patient_id, message=message, subject=subject)
        )

    def send_reminders_for_date(self, day: date) -> dict[str, Any]:
        return self.commands.dispatch(SendRemindersForDateCommand(date=day))

    def send_test_message(
        self, channel: str, recipient: str, message: str, subject: str | None = None
    ) -> dict[str, Any]:
        return self.commands.dispatch(
            SendTestMessageCommand(channel=channel, recipient=recipient, message=message, subject=subject)
        )

    # ------------------------------------------------ operação
    def resend_failed_notification(self, job_id: UUID) -> dict[str, Any]:
        return self.commands.dispatch(ResendFailedNotificationCommand(job_id=job_id))

    def cleanup_failed_jobs(self, days: int) -> dict[str, Any]:
        return self.commands.dispatch(CleanupFailedJobsCommand(days=days))

    def toggle_task(self, name: str, enabled: bool) -> bool:
        return self.commands.dispatch(ToggleTaskCommand(name=name, enabled=enabled))

    def run_task_manually(self, name: str) -> dict[str, Any]:
        return self.commands.dispatch(RunTaskManuallyCommand(name=name))

    # ------------------------------------------------ consultas
    def get_notifications(
        self, filters: NotificationFilterDTO | None = None, pagination: PaginationDTO | None = None
    ) -> dict[str, Any]:
        return self.queries.dispatch(
            ListNotificationsQuery(
                filtros=filters or NotificationFilterDTO(),
                pagination=pagination or PaginationDTO(),
            )
        )

    def get_notification_stats(self, since: datetime | None = None, until: datetime | None = None) -> dict[str, Any]:
        return self.queries.dispatch(NotificationStatsQuery(since=since, until=until))

    def get_queue_stats(self) -> dict[str, Any]:
        return self.queries.dispatch(QueueStatsQuery())

    def get_service_status(self) -> dict[str, Any]:
        return self.queries.dispatch(ServiceStatusQuery())

    def get_system_health(self) -> dict[str, Any]:
        return self.queries.dispatch(SystemHealthQuery())

    def get_tasks_status(self) -> list[dict[str, Any]]:
        return self.queries.dispatch(TasksStatusQuery())

    def get_scheduler_stats(self) -> dict[str, Any]:
        return self.queries.dispatch(SchedulerStatsQuery())
