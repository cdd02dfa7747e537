from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import Any, assert_never
from uuid import UUID

import structlog
from django.utils import timezone

from notification_engine.core.application.dtos.notification_dto import NotificationFilterDTO, PaginationDTO
from notification_engine.core.application.services.default_templates import WEEKDAYS_ES
from notification_engine.core.domain.entities.appointment_entity import AppointmentEntity, PatientContactEntity
from notification_engine.core.domain.entities.notification_job_entity import NotificationJobEntity
from notification_engine.core.domain.events.events import NotificationQueuedEvent, NotificationResentEvent
from notification_engine.core.domain.events.exceptions import (
    AppointmentNotFound,
    InvalidNotificationStatus,
    NotificationNotFound,
    PatientNotFound,
    ValidationError,
)
from notification_engine.core.domain.repositories.appointment_repository import AppointmentRepository
from notification_engine.core.domain.repositories.message_template_repository import (
    ClinicConfigRepository,
    MessageTemplateRepository,
)
from notification_engine.core.domain.repositories.notification_job_repository import NotificationJobRepository
from notification_engine.core.domain.services.event_dispatcher import EventDispatcher
from notification_engine.core.domain.types import (
    AppointmentStatus,
    ChannelPolicy,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)
from notification_engine.core.utils.phone_utils import normalize_phone

logger = structlog.get_logger(__name__)

REMINDER_ELIGIBLE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)


def format_date_es(value: datetime) -> str:
    """`lunes, 10/03/2025` no fuso local configurado."""
    local = timezone.localtime(value)
    return f"{WEEKDAYS_ES[local.weekday()]}, {local:%d/%m/%Y}"


def format_time(value: datetime) -> str:
    return f"{timezone.localtime(value):%H:%M}"


class NotificationService:
    """
    Orquestrador: transforma eventos de turno em jobs PENDING no Job Store.

    Não envia nada diretamente; o envio é responsabilidade do `QueueEngine`.
    """

    def __init__(  # noqa: PLR0913
        self,
        job_repo: NotificationJobRepository,
        appointment_repo: AppointmentRepository,
        template_repo: MessageTemplateRepository,
        clinic_repo: ClinicConfigRepository,
        dispatcher: EventDispatcher,
        *,
        channel_policy: ChannelPolicy | str = ChannelPolicy.ALL,
        max_attempts: int = 3,
        reminder_lead: timedelta = timedelta(hours=24),
        phone_region: str = "AR",
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.job_repo = job_repo
        self.appointment_repo = appointment_repo
        self.template_repo = template_repo
        self.clinic_repo = clinic_repo
        self.dispatcher = dispatcher
        self.channel_policy = ChannelPolicy(channel_policy)
        self.max_attempts = max_attempts
        self.reminder_lead = reminder_lead
        self.phone_region = phone_region
        self._clock = clock

    # ───────────────────────── criação de jobs ─────────────────────────

    def send_appointment_notification(
        self,
        appointment_id: UUID,
        notification_type: NotificationType | str,
        custom_message: str | None = None,
    ) -> list[NotificationJobEntity]:
        ntype = self._parse_type(notification_type)
        appt = self._get_appointment(appointment_id)
        if ntype == NotificationType.CUSTOM and not (custom_message or "").strip():
            raise ValidationError("custom_message é obrigatório para notificações CUSTOM")
        if ntype == NotificationType.CANCELLATION:
            self._supersede_reminders(appt.id, "turno cancelado")

        return self._enqueue(
            patient=appt.patient,
            ntype=ntype,
            variables=self._appointment_variables(appt, custom_message),
            appointment_id=appt.id,
            next_attempt_at=self._clock(),
        )

    def schedule_appointment_reminders(self, appointment_id: UUID) -> list[NotificationJobEntity]:
        appt = self._get_appointment(appointment_id)
        now = self._clock()
        # no máximo um lembrete pendente por turno, sempre com a data atual
        self._supersede_reminders(appt.id, "substituído por novo lembrete")
        next_attempt_at = max(appt.start_time - self.reminder_lead, now)
        return self._enqueue(
            patient=appt.patient,
            ntype=NotificationType.REMINDER,
            variables=self._appointment_variables(appt, None),
            appointment_id=appt.id,
            next_attempt_at=next_attempt_at,
        )

    def _supersede_reminders(self, appointment_id: UUID, reason: str) -> int:
        superseded = self.job_repo.supersede_pending(
            appointment_id, NotificationType.REMINDER, f"lembrete obsoleto: {reason}"
        )
        if superseded:
            logger.info("reminder.superseded", appointment_id=str(appointment_id), count=superseded, reason=reason)
        return superseded

    def send_custom_notification(
        self, patient_id: UUID, message: str, subject: str | None = None
    ) -> list[NotificationJobEntity]:
        if not (message or "").strip():
            raise ValidationError("message não pode ser vazio")
        patient = self.appointment_repo.find_patient(patient_id)
        if patient is None:
            raise PatientNotFound(patient_id)

        clinic = self.clinic_repo.get_clinic_info()
        variables = {
            "patientName": patient.full_name,
            "clinicName": clinic.name,
            "clinicAddress": clinic.address,
            "clinicPhone": clinic.phone,
            "message": message,
            "subject": subject or f"Mensaje de {clinic.name}",
        }
        return self._enqueue(
            patient=patient,
            ntype=NotificationType.CUSTOM,
            variables=variables,
            appointment_id=None,
            next_attempt_at=self._clock(),
        )

    def send_reminders_for_date(self, day: date) -> dict[str, Any]:
        """
        Varredura de lembretes para os turnos de `day` (fuso local).

        Falhas individuais entram no resumo e não interrompem a varredura.
        """
        tz = timezone.get_current_timezone()
        start = timezone.make_aware(datetime.combine(day, time.min), tz)
        end = timezone.make_aware(datetime.combine(day + timedelta(days=1), time.min), tz)
        appointments = self.appointment_repo.list_for_reminder_window(start, end, REMINDER_ELIGIBLE_STATUSES)

        summary: dict[str, Any] = {
            "date": day.isoformat(),
            "total_appointments": len(appointments),
            "reminders_sent": 0,
            "skipped": 0,
            "errors": [],
        }
        for appt in appointments:
            if not appt.patient.has_contact_method():
                summary["skipped"] += 1
                continue
            try:
                if self.job_repo.has_active_reminder(appt.id):
                    summary["skipped"] += 1
                    continue
                jobs = self.send_appointment_notification(appt.id, NotificationType.REMINDER)
            except Exception as exc:
                logger.warning("reminders.appointment_failed", appointment_id=str(appt.id), error=str(exc))
                summary["errors"].append({"appointment_id": str(appt.id), "error": str(exc)})
                continue
            if jobs:
                summary["reminders_sent"] += 1
            else:
                summary["skipped"] += 1

        logger.info(
            "reminders.scan_done",
            date=summary["date"],
            total=summary["total_appointments"],
            sent=summary["reminders_sent"],
            skipped=summary["skipped"],
            errors=len(summary["errors"]),
        )
        return summary

    # ───────────────────────── controle ─────────────────────────

    def resend_failed_notification(self, job_id: UUID) -> NotificationJobEntity:
        job = self.job_repo.find_by_id(job_id)
        if job is None:
            raise NotificationNotFound(job_id)
        if not job.is_resendable():
            raise InvalidNotificationStatus(job_id, job.status)

        if not self.job_repo.reset_for_resend(job_id, self._clock()):
            # outro reenvio (ou a limpeza) chegou antes
            current = self.job_repo.find_by_id(job_id)
            if current is None:
                raise NotificationNotFound(job_id)
            raise InvalidNotificationStatus(job_id, current.status)

        refreshed = self.job_repo.find_by_id(job_id)
        self.dispatcher.dispatch(NotificationResentEvent(job_id=job_id, previous_status=job.status.value))
        logger.info("job.resent", job_id=str(job_id), previous_status=job.status.value)
        return refreshed

    # ───────────────────────── consulta ─────────────────────────

    def get_notifications(self, filters: NotificationFilterDTO, pagination: PaginationDTO) -> dict[str, Any]:
        result = self.job_repo.list(
            filters.as_filters(),
            page=pagination.page,
            page_size=pagination.limit,
            order_by=pagination.sort_by,
            descending=pagination.sort_order == "desc",
        )
        return {
            "data": [job.to_public_dict() for job in result.items],
            "pagination": result.pagination(),
        }

    def get_notification_stats(self, since: datetime | None = None, until: datetime | None = None) -> dict[str, Any]:
        agg = self.job_repo.aggregate(since, until)
        return {
            "total": sum(agg["by_status"].values()),
            **agg,
        }

    # ───────────────────────── internos ─────────────────────────

    @staticmethod
    def _parse_type(value: NotificationType | str) -> NotificationType:
        try:
            return NotificationType(str(value).upper())
        except ValueError as exc:
            raise ValidationError(f"tipo de notificação inválido: {value!r}") from exc

    def _get_appointment(self, appointment_id: UUID) -> AppointmentEntity:
        appt = self.appointment_repo.find_by_id(appointment_id)
        if appt is None:
            raise AppointmentNotFound(appointment_id)
        return appt

    def _appointment_variables(self, appt: AppointmentEntity, custom_message: str | None) -> dict[str, Any]:
        clinic = self.clinic_repo.get_clinic_info()
        return {
            "patientName": appt.patient.full_name,
            "date": format_date_es(appt.start_time),
            "time": format_time(appt.start_time),
            "professional": appt.professional_name,
            "treatment": appt.treatment_name,
            "clinicName": clinic.name,
            "clinicAddress": clinic.address,
            "clinicPhone": clinic.phone,
            "message": custom_message or "",
            "subject": f"Mensaje de {clinic.name}",
        }

    def select_channels(self, patient: PatientContactEntity) -> list[tuple[NotificationChannel, str]]:
        """
        Canais (e destinatário) para o paciente segundo a política configurada.

        Telefone que não normaliza segue bruto: o adaptador o rejeita como
        falha permanente e o job fica visível como FAILED.
        """
        phone = (patient.phone or "").strip()
        email = (patient.email or "").strip()
        targets: list[tuple[NotificationChannel, str]] = []
        if phone:
            targets.append((NotificationChannel.WHATSAPP, normalize_phone(phone, self.phone_region) or phone))
        if email:
            targets.append((NotificationChannel.EMAIL, email))

        match self.channel_policy:
            case ChannelPolicy.ALL:
                return targets
            case ChannelPolicy.PREFER_WHATSAPP:
                return targets[:1]
            case _:
                assert_never(self.channel_policy)

    def _enqueue(
        self,
        *,
        patient: PatientContactEntity,
        ntype: NotificationType,
        variables: dict[str, Any],
        appointment_id: UUID | None,
        next_attempt_at: datetime,
    ) -> list[NotificationJobEntity]:
        targets = self.select_channels(patient)
        if not targets:
            logger.warning(
                "notification.no_contact_method",
                patient_id=str(patient.id),
                appointment_id=str(appointment_id) if appointment_id else None,
                type=ntype.value,
            )
            return []

        jobs = []
        for channel, recipient in targets:
            rendered = self.template_repo.render(ntype, channel, variables)
            jobs.append(
                NotificationJobEntity(
                    id=uuid.uuid4(),
                    appointment_id=appointment_id,
                    patient_id=patient.id,
                    channel=channel,
                    type=ntype,
                    recipient=recipient,
                    subject=rendered.subject if channel == NotificationChannel.EMAIL else None,
                    body=rendered.body,
                    status=NotificationStatus.PENDING,
                    attempts=0,
                    max_attempts=self.max_attempts,
                    next_attempt_at=next_attempt_at,
                )
            )

        created = self.job_repo.create_many(jobs)
        for job in created:
            self.dispatcher.dispatch(
                NotificationQueuedEvent(
                    job_id=job.id,
                    channel=job.channel.value,
                    type=job.type.value,
                    next_attempt_at=job.next_attempt_at,
                )
            )
            logger.info(
                "job.queued",
                job_id=str(job.id),
                channel=job.channel.value,
                type=job.type.value,
                next_attempt_at=job.next_attempt_at.isoformat(),
            )
        return created
