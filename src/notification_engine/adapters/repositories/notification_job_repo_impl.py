from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from django.db import connection, transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from notification_engine.core.application.cqrs import PagedResult
from notification_engine.core.domain.entities.notification_job_entity import NotificationJobEntity
from notification_engine.core.domain.repositories.notification_job_repository import NotificationJobRepository
from notification_engine.core.domain.types import (
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)
from plugins.django_interface.models import NotificationJob as Job

log = structlog.get_logger(__name__)

_ACTIVE_REMINDER_STATUSES = (
    NotificationStatus.PENDING,
    NotificationStatus.PROCESSING,
    NotificationStatus.SENT,
    NotificationStatus.DELIVERED,
)


def _aware(value: datetime) -> datetime:
    return timezone.make_aware(value) if timezone.is_naive(value) else value


class NotificationJobRepoImpl(NotificationJobRepository):
    """
    Job Store sobre o ORM do Django.

    Transições usam `UPDATE ... WHERE id=? AND status=? [AND version=?]`;
    zero linhas afetadas = estado obsoleto (outro worker ou reenvio chegou antes).
    """

    # ───────────────────────── MÉTODOS DE PERSISTÊNCIA ──────────────────────────

    def create_many(self, jobs: Sequence[NotificationJobEntity]) -> list[NotificationJobEntity]:
        created: list[NotificationJobEntity] = []
        with transaction.atomic():
            for job in jobs:
                model = Job.objects.create(
                    id=job.id,
                    appointment_id=job.appointment_id,
                    patient_id=job.patient_id,
                    channel=job.channel.value,
                    type=job.type.value,
                    recipient=job.recipient,
                    subject=job.subject,
                    body=job.body,
                    status=job.status.value,
                    attempts=job.attempts,
                    max_attempts=job.max_attempts,
                    next_attempt_at=job.next_attempt_at,
                )
                created.append(NotificationJobEntity.from_model(model))
        return created

    def _transition(
        self,
        job_id: UUID,
        *,
        from_statuses: Iterable[NotificationStatus],
        expected_version: int | None = None,
        **changes: Any,
    ) -> NotificationJobEntity | None:
        qs = Job.objects.filter(id=job_id, status__in=[s.value for s in from_statuses])
        if expected_version is not None:
            qs = qs.filter(version=expected_version)
        updated = qs.update(version=F("version") + 1, updated_at=timezone.now(), **changes)
        if not updated:
            log.debug("job.transition_rejected", job_id=str(job_id), expected_version=expected_version)
            return None
        return self.find_by_id(job_id)

    def claim(self, job_id: UUID, expected_version: int) -> NotificationJobEntity | None:
        return self._transition(
            job_id,
            from_statuses=[NotificationStatus.PENDING],
            expected_version=expected_version,
            status=NotificationStatus.PROCESSING.value,
        )

    def record_delivered(
        self, job: NotificationJobEntity, *, provider_message_id: str | None, confirmed: bool, now: datetime
    ) -> NotificationJobEntity | None:
        status = NotificationStatus.DELIVERED if confirmed else NotificationStatus.SENT
        return self._transition(
            job.id,
            from_statuses=[NotificationStatus.PROCESSING],
            expected_version=job.version,
            status=status.value,
            provider_message_id=provider_message_id,
            sent_at=now,
            delivered_at=now if confirmed else None,
            last_error=None,
        )

    def record_retry(
        self, job: NotificationJobEntity, *, attempts: int, next_attempt_at: datetime, error: str
    ) -> NotificationJobEntity | None:
        return self._transition(
            job.id,
            from_statuses=[NotificationStatus.PROCESSING],
            expected_version=job.version,
            status=NotificationStatus.PENDING.value,
            attempts=attempts,
            next_attempt_at=next_attempt_at,
            last_error=error,
        )

    def record_terminal_failure(
        self, job: NotificationJobEntity, *, status: str, attempts: int, error: str
    ) -> NotificationJobEntity | None:
        terminal = NotificationStatus(status)
        if terminal not in NotificationStatus.terminal_failures():
            raise ValueError(f"status terminal inválido: {status}")
        return self._transition(
            job.id,
            from_statuses=[NotificationStatus.PROCESSING],
            expected_version=job.version,
            status=terminal.value,
            attempts=attempts,
            last_error=error,
        )

    def release(self, job: NotificationJobEntity, *, next_attempt_at: datetime) -> NotificationJobEntity | None:
        return self._transition(
            job.id,
            from_statuses=[NotificationStatus.PROCESSING],
            expected_version=job.version,
            status=NotificationStatus.PENDING.value,
            next_attempt_at=next_attempt_at,
        )

    def reset_for_resend(self, job_id: UUID, now: datetime) -> bool:
        job = self._transition(
            job_id,
            from_statuses=NotificationStatus.resendable(),
            status=NotificationStatus.PENDING.value,
            attempts=0,
            next_attempt_at=now,
            last_error=None,
        )
        return job is not None

    def confirm_delivery(self, job_id: UUID, delivered_at: datetime) -> bool:
        job = self._transition(
            job_id,
            from_statuses=[NotificationStatus.SENT],
            status=NotificationStatus.DELIVERED.value,
            delivered_at=delivered_at,
        )
        return job is not None

    def mark_provider_failure(self, job_id: UUID, error: str) -> bool:
        job = self._transition(
            job_id,
            from_statuses=[NotificationStatus.SENT],
            status=NotificationStatus.FAILED.value,
            last_error=error,
        )
        return job is not None

    def delete_terminal_older_than(self, cutoff: datetime) -> int:
        qs = Job.objects.filter(
            status__in=[s.value for s in NotificationStatus.terminal_failures()],
            updated_at__lt=cutoff,
        )
        _, per_model = qs.delete()
        return per_model.get(Job._meta.label, 0)

    def requeue_stale_processing(self, older_than: datetime) -> int:
        return Job.objects.filter(
            status=NotificationStatus.PROCESSING.value,
            updated_at__lt=older_than,
        ).update(
            status=NotificationStatus.PENDING.value,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )

    def supersede_pending(self, appointment_id: UUID, notification_type: NotificationType, reason: str) -> int:
        return Job.objects.filter(
            appointment_id=appointment_id,
            type=notification_type.value,
            status=NotificationStatus.PENDING.value,
        ).update(
            status=NotificationStatus.FAILED.value,
            last_error=reason,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )

    # ───────────────────────── MÉTODOS DE CONSULTA ──────────────────────────

    def find_by_id(self, job_id: UUID) -> NotificationJobEntity | None:
        model = Job.objects.filter(id=job_id).first()
        return NotificationJobEntity.from_model(model) if model else None

    def find_due(self, now: datetime, limit: int) -> list[NotificationJobEntity]:
        qs = Job.objects.filter(
            status=NotificationStatus.PENDING.value,
            next_attempt_at__lte=now,
        ).order_by("next_attempt_at", "created_at")[:limit]
        return [NotificationJobEntity.from_model(m) for m in qs]

    def find_sent_awaiting_confirmation(
        self, channel: NotificationChannel, limit: int
    ) -> list[NotificationJobEntity]:
        qs = (
            Job.objects.filter(status=NotificationStatus.SENT.value, channel=channel.value)
            .exclude(Q(provider_message_id__isnull=True) | Q(provider_message_id=""))
            .order_by("sent_at")[:limit]
        )
        return [NotificationJobEntity.from_model(m) for m in qs]

    def has_active_reminder(self, appointment_id: UUID) -> bool:
        return Job.objects.filter(
            appointment_id=appointment_id,
            type=NotificationType.REMINDER.value,
            status__in=[s.value for s in _ACTIVE_REMINDER_STATUSES],
        ).exists()

    def list(
        self,
        filtros: dict[str, Any],
        *,
        page: int,
        page_size: int,
        order_by: str,
        descending: bool,
    ) -> PagedResult[NotificationJobEntity]:
        q = Q()
        for key in ("status", "type", "channel", "patient_id", "appointment_id"):
            if filtros.get(key) is not None:
                q &= Q(**{key: filtros[key]})
        if filtros.get("start_date"):
            q &= Q(created_at__gte=_aware(filtros["start_date"]))
        if filtros.get("end_date"):
            q &= Q(created_at__lte=_aware(filtros["end_date"]))

        prefix = "-" if descending else ""
        qs = Job.objects.filter(q).order_by(f"{prefix}{order_by}", f"{prefix}id")
        total = qs.count()
        offset = (page - 1) * page_size
        items = [NotificationJobEntity.from_model(m) for m in qs[offset : offset + page_size]]
        return PagedResult(items=items, total=total, page=page, page_size=page_size)

    def aggregate(self, since: datetime | None = None, until: datetime | None = None) -> dict[str, dict[str, int]]:
        qs = Job.objects.all()
        if since:
            qs = qs.filter(created_at__gte=_aware(since))
        if until:
            qs = qs.filter(created_at__lte=_aware(until))

        def _count_by(field: str, keys: Iterable[str]) -> dict[str, int]:
            counts = dict.fromkeys(keys, 0)
            for row in qs.values(field).annotate(n=Count("id")).order_by():
                counts[row[field]] = row["n"]
            return counts

        return {
            "by_status": _count_by("status", (s.value for s in NotificationStatus)),
            "by_channel": _count_by("channel", (c.value for c in NotificationChannel)),
            "by_type": _count_by("type", (t.value for t in NotificationType)),
        }

    def count_sent_since(self, since: datetime) -> int:
        return Job.objects.filter(
            status__in=[NotificationStatus.SENT.value, NotificationStatus.DELIVERED.value],
            sent_at__gte=since,
        ).count()

    def ping(self) -> bool:
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
        except Exception as exc:
            log.error("job_store.ping_failed", error=str(exc))
            return False
        return True
