from __future__ import annotations

from enum import StrEnum


# ───────────────────────────────────────────────
# Tipos fechados do motor de notificações
# ───────────────────────────────────────────────
class NotificationChannel(StrEnum):
    WHATSAPP = "WHATSAPP"
    EMAIL = "EMAIL"


class NotificationType(StrEnum):
    CONFIRMATION = "CONFIRMATION"
    REMINDER = "REMINDER"
    CANCELLATION = "CANCELLATION"
    RESCHEDULED = "RESCHEDULED"
    CUSTOM = "CUSTOM"


class NotificationStatus(StrEnum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    DEAD = "DEAD"

    @classmethod
    def resendable(cls) -> frozenset[NotificationStatus]:
        """Status a partir dos quais o reenvio manual é permitido."""
        return frozenset({cls.FAILED, cls.DEAD})

    @classmethod
    def terminal_failures(cls) -> frozenset[NotificationStatus]:
        return frozenset({cls.FAILED, cls.DEAD})


class AppointmentStatus(StrEnum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class TaskRunStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    SKIPPED = "skipped"


class ChannelPolicy(StrEnum):
    """
    Política de seleção de canais quando o paciente possui telefone e e-mail.

    - ALL: envia em todos os canais disponíveis (padrão).
    - PREFER_WHATSAPP: WhatsApp se houver telefone, senão e-mail.
    """
    ALL = "all"
    PREFER_WHATSAPP = "prefer_whatsapp"
