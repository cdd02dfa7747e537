from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from django.utils import timezone

from notification_engine.core.domain.types import NotificationStatus
from plugins.django_interface.models import (
    Appointment,
    NotificationJob,
    Patient,
    Professional,
    TreatmentType,
)


def make_patient(*, phone: str | None = "+5491155551234", email: str | None = "maria@example.com", **kw) -> Patient:
    return Patient.objects.create(
        first_name=kw.pop("first_name", "María"),
        last_name=kw.pop("last_name", "Pérez"),
        phone=phone,
        email=email,
        **kw,
    )


def make_appointment(
    patient: Patient | None = None,
    *,
    start_time: datetime | None = None,
    status: str = Appointment.Status.SCHEDULED,
) -> Appointment:
    start_time = start_time or timezone.now() + timedelta(days=3)
    professional, _ = Professional.objects.get_or_create(
        first_name="Laura", last_name="Gómez", defaults={"specialty": "Ortodoncia"}
    )
    treatment, _ = TreatmentType.objects.get_or_create(name="Limpieza", defaults={"duration_minutes": 30})
    return Appointment.objects.create(
        patient=patient or make_patient(),
        professional=professional,
        treatment_type=treatment,
        start_time=start_time,
        end_time=start_time + timedelta(minutes=30),
        status=status,
    )


def make_job(patient: Patient | None = None, **kw) -> NotificationJob:
    patient = patient or make_patient()
    defaults = {
        "id": uuid.uuid4(),
        "channel": "WHATSAPP",
        "type": "CONFIRMATION",
        "recipient": patient.phone or "+5491155551234",
        "body": "Hola",
        "status": NotificationStatus.PENDING.value,
        "next_attempt_at": timezone.now(),
    }
    defaults.update(kw)
    return NotificationJob.objects.create(patient=patient, **defaults)
