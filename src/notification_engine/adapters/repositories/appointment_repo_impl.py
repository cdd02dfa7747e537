from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from notification_engine.core.domain.entities.appointment_entity import AppointmentEntity, PatientContactEntity
from notification_engine.core.domain.repositories.appointment_repository import AppointmentRepository
from notification_engine.core.domain.types import AppointmentStatus
from plugins.django_interface.models import Appointment, Patient


def _to_entity(model: Appointment) -> AppointmentEntity:
    return AppointmentEntity(
        id=model.id,
        patient=PatientContactEntity.from_model(model.patient),
        professional_name=str(model.professional),
        treatment_name=model.treatment_type.name,
        start_time=model.start_time,
        status=model.status,
    )


class AppointmentRepoImpl(AppointmentRepository):
    def _base_qs(self):
        return Appointment.objects.select_related("patient", "professional", "treatment_type")

    def find_by_id(self, appointment_id: UUID) -> AppointmentEntity | None:
        model = self._base_qs().filter(id=appointment_id).first()
        return _to_entity(model) if model else None

    def list_for_reminder_window(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[AppointmentStatus],
    ) -> list[AppointmentEntity]:
        qs = self._base_qs().filter(
            start_time__gte=start,
            start_time__lt=end,
            status__in=[AppointmentStatus(s).value for s in statuses],
        ).order_by("start_time")
        return [_to_entity(m) for m in qs]

    def find_patient(self, patient_id: UUID) -> PatientContactEntity | None:
        model = Patient.objects.filter(id=patient_id).first()
        return PatientContactEntity.from_model(model) if model else None
