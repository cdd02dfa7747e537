from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

import structlog
from django.utils import timezone

from notification_engine.core.application.services.notification_service import NotificationService
from notification_engine.core.application.services.queue_engine import QueueEngine
from notification_engine.core.application.services.scheduler_service import SchedulerService
from notification_engine.core.domain.entities.delivery_result import Delivered, PermanentFailure

logger = structlog.get_logger(__name__)

APPOINTMENT_REMINDERS = "appointment-reminders"
DAILY_CLEANUP = "daily-cleanup"
HEALTH_CHECK = "health-check"
DELIVERY_STATUS_SYNC = "delivery-status-sync"


class EngineTasks:
    """Callables das tarefas embutidas do agendador."""

    def __init__(  # noqa: PLR0913
        self,
        notification_service: NotificationService,
        queue_engine: QueueEngine,
        *,
        reminder_lead: timedelta = timedelta(hours=24),
        retention_days: int = 7,
        failed_warning_threshold: int = 50,
        pending_warning_threshold: int = 100,
        status_sync_batch: int = 100,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.notification_service = notification_service
        self.queue_engine = queue_engine
        self.reminder_lead = reminder_lead
        self.retention_days = retention_days
        self.failed_warning_threshold = failed_warning_threshold
        self.pending_warning_threshold = pending_warning_threshold
        self.status_sync_batch = status_sync_batch
        self._clock = clock

    def appointment_reminders(self) -> dict[str, Any]:
        target = timezone.localtime(self._clock() + self.reminder_lead).date()
        return self.notification_service.send_reminders_for_date(target)

    def daily_cleanup(self) -> dict[str, Any]:
        removed = self.queue_engine.cleanup_failed_jobs(self.retention_days)
        return {"removed": removed, "retention_days": self.retention_days}

    def health_check(self) -> dict[str, Any]:
        channels = {
            channel.value: adapter.health_check().to_public_dict()
            for channel, adapter in self.queue_engine.adapters.items()
        }
        requeued = self.queue_engine.requeue_stale_jobs()
        stats = self.queue_engine.get_queue_stats()

        warnings: list[str] = []
        failed_total = stats["failed"] + stats["dead"]
        if failed_total > self.failed_warning_threshold:
            warnings.append(f"{failed_total} notificações com falha (FAILED/DEAD)")
        if stats["pending"] > self.pending_warning_threshold:
            warnings.append(f"{stats['pending']} notificações pendentes na fila")
        for name, status in channels.items():
            if status["enabled"] and not status["healthy"]:
                warnings.append(f"canal {name} sem resposta: {status['last_error']}")

        if warnings:
            logger.warning("health.degraded", warnings=warnings)
        else:
            logger.info("health.ok", pending=stats["pending"], failed=failed_total)
        return {"channels": channels, "requeued": requeued, "queue": stats, "warnings": warnings}

    def delivery_status_sync(self) -> dict[str, Any]:
        """Confirma no provedor o destino final dos jobs SENT."""
        summary = {"checked": 0, "delivered": 0, "failed": 0, "unchanged": 0}
        repo = self.queue_engine.job_repo
        for channel, adapter in self.queue_engine.adapters.items():
            if not adapter.is_enabled():
                continue
            for job in repo.find_sent_awaiting_confirmation(channel, self.status_sync_batch):
                summary["checked"] += 1
                match adapter.fetch_delivery_status(job.provider_message_id):
                    case Delivered(confirmed=True):
                        changed = repo.confirm_delivery(job.id, self._clock())
                        summary["delivered" if changed else "unchanged"] += 1
                    case PermanentFailure(reason=reason):
                        changed = repo.mark_provider_failure(job.id, reason)
                        summary["failed" if changed else "unchanged"] += 1
                        if changed:
                            logger.warning("job.provider_failed", job_id=str(job.id), reason=reason)
                    case _:
                        summary["unchanged"] += 1
        return summary

    def register_all(self, scheduler: SchedulerService, schedules: Mapping[str, Any]) -> None:
        builtin = {
            APPOINTMENT_REMINDERS: (self.appointment_reminders, "Lembretes dos turnos do dia alvo"),
            DAILY_CLEANUP: (self.daily_cleanup, "Remove jobs FAILED/DEAD fora da retenção"),
            HEALTH_CHECK: (self.health_check, "Saúde dos canais e recuperação de jobs presos"),
            DELIVERY_STATUS_SYNC: (self.delivery_status_sync, "Confirma entregas no provedor"),
        }
        for name, (func, description) in builtin.items():
            if name not in schedules:
                continue
            scheduler.register(name, func, schedules[name], description=description)
