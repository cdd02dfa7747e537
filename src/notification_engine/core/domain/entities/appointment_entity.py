from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from notification_engine.core.domain.entities._base import EntityMixin
from notification_engine.core.domain.types import AppointmentStatus


@dataclass(slots=True)
class PatientContactEntity(EntityMixin):
    id: uuid.UUID
    first_name: str
    last_name: str
    phone: str | None = None
    email: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def has_contact_method(self) -> bool:
        return bool(self.phone or self.email)


@dataclass(slots=True)
class AppointmentEntity(EntityMixin):
    """Visão somente-leitura de um turno, com os dados usados nas mensagens."""

    id: uuid.UUID
    patient: PatientContactEntity
    professional_name: str
    treatment_name: str
    start_time: datetime
    status: AppointmentStatus

    def __post_init__(self) -> None:
        self.status = AppointmentStatus(self.status)
