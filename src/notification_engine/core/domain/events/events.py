from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime


# ───────────────────────────────────────────────
# Event Base e Domain Events
# ───────────────────────────────────────────────
@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

# ╭──────────────────────────────────────────────╮
# │ 1. Ciclo de vida do job                      │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class NotificationQueuedEvent(DomainEvent):
    job_id: uuid.UUID
    channel: str
    type: str
    next_attempt_at: datetime

@dataclass(frozen=True, kw_only=True)
class NotificationSentEvent(DomainEvent):
    job_id: uuid.UUID
    channel: str
    provider_message_id: str | None
    confirmed: bool

@dataclass(frozen=True, kw_only=True)
class NotificationRetryScheduledEvent(DomainEvent):
    job_id: uuid.UUID
    channel: str
    attempts: int
    next_attempt_at: datetime
    reason: str

@dataclass(frozen=True, kw_only=True)
class NotificationFailedEvent(DomainEvent):
    """Falha terminal: `status` é FAILED (permanente) ou DEAD (tentativas esgotadas)."""
    job_id: uuid.UUID
    channel: str
    status: str
    reason: str

@dataclass(frozen=True, kw_only=True)
class NotificationResentEvent(DomainEvent):
    job_id: uuid.UUID
    previous_status: str

# ╭──────────────────────────────────────────────╮
# │ 2. Agendador                                 │
# ╰──────────────────────────────────────────────╯
@dataclass(frozen=True, kw_only=True)
class ScheduledTaskFinishedEvent(DomainEvent):
    task_name: str
    status: str
    duration_seconds: float
