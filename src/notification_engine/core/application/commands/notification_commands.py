from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date

from notification_engine.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class SendAppointmentNotificationCommand(CommandDTO):
    appointment_id: uuid.UUID
    type: str
    custom_message: str | None = None

@dataclass(frozen=True)
class ScheduleAppointmentRemindersCommand(CommandDTO):
    appointment_id: uuid.UUID

@dataclass(frozen=True)
class ResendFailedNotificationCommand(CommandDTO):
    job_id: uuid.UUID

@dataclass(frozen=True)
class SendCustomNotificationCommand(CommandDTO):
    patient_id: uuid.UUID
    message: str
    subject: str | None = None

@dataclass(frozen=True)
class SendRemindersForDateCommand(CommandDTO):
    date: date

@dataclass(frozen=True)
class CleanupFailedJobsCommand(CommandDTO):
    days: int

@dataclass(frozen=True)
class SendTestMessageCommand(CommandDTO):
    channel: str
    recipient: str
    message: str
    subject: str | None = None
