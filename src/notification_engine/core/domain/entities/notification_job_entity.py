from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from notification_engine.core.domain.entities._base import EntityMixin
from notification_engine.core.domain.types import (
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)


@dataclass(slots=True)
class NotificationJobEntity(EntityMixin):
    """Uma mensagem a ser enviada em um único canal."""

    id: uuid.UUID
    patient_id: uuid.UUID
    channel: NotificationChannel
    type: NotificationType
    recipient: str
    body: str
    status: NotificationStatus
    next_attempt_at: datetime
    appointment_id: uuid.UUID | None = None
    subject: str | None = None
    attempts: int = 0
    max_attempts: int = 3
    last_error: str | None = None
    provider_message_id: str | None = None
    version: int = 0
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.channel = NotificationChannel(self.channel)
        self.type = NotificationType(self.type)
        self.status = NotificationStatus(self.status)

    def is_due(self, now: datetime) -> bool:
        return self.status == NotificationStatus.PENDING and self.next_attempt_at <= now

    def is_resendable(self) -> bool:
        return self.status in NotificationStatus.resendable()

    def to_public_dict(self) -> dict[str, Any]:
        """Representação serializável (JSON) exposta à camada de controle."""
        return {
            "id": str(self.id),
            "appointment_id": str(self.appointment_id) if self.appointment_id else None,
            "patient_id": str(self.patient_id),
            "channel": self.channel.value,
            "type": self.type.value,
            "recipient": self.recipient,
            "subject": self.subject,
            "body": self.body,
            "status": self.status.value,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "next_attempt_at": _iso(self.next_attempt_at),
            "last_error": self.last_error,
            "provider_message_id": self.provider_message_id,
            "sent_at": _iso(self.sent_at),
            "delivered_at": _iso(self.delivered_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
