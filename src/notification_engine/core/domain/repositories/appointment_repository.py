from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from notification_engine.core.domain.entities.appointment_entity import AppointmentEntity, PatientContactEntity
from notification_engine.core.domain.types import AppointmentStatus


class AppointmentRepository(ABC):
    """Leitura de turnos e pacientes (dados pertencem ao módulo de agenda)."""

    @abstractmethod
    def find_by_id(self, appointment_id: UUID) -> AppointmentEntity | None:
        """Recupera um turno com paciente, profissional e tratamento."""
        ...

    @abstractmethod
    def list_for_reminder_window(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[AppointmentStatus],
    ) -> list[AppointmentEntity]:
        """Turnos com início em [start, end) nos status informados."""
        ...

    @abstractmethod
    def find_patient(self, patient_id: UUID) -> PatientContactEntity | None:
        """Recupera os dados de contato de um paciente."""
        ...
