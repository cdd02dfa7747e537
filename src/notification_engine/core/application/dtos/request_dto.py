"""
Corpos de requisição da superfície de controle (validados com pydantic).
"""
from __future__ import annotations

from datetime import date
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notification_engine.core.domain.types import NotificationChannel, NotificationType


class _RequestDTO(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class SendAppointmentNotificationDTO(_RequestDTO):
    appointment_id: UUID
    type: NotificationType
    custom_message: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, v):
        return v.upper() if isinstance(v, str) else v


class ScheduleRemindersDTO(_RequestDTO):
    appointment_id: UUID


class SendCustomNotificationDTO(_RequestDTO):
    patient_id: UUID
    message: str = Field(min_length=1)
    subject: str | None = None


class SendTestMessageDTO(_RequestDTO):
    channel: NotificationChannel
    recipient: str = Field(min_length=1)
    message: str = Field(min_length=1)
    subject: str | None = None

    @field_validator("channel", mode="before")
    @classmethod
    def _upper_channel(cls, v):
        return v.upper() if isinstance(v, str) else v


class CleanupDTO(_RequestDTO):
    days: int = Field(7, ge=0)


class ToggleTaskDTO(_RequestDTO):
    enabled: bool


class SendRemindersForDateDTO(_RequestDTO):
    day: date = Field(validation_alias="date")
