from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from notification_engine.core.application.cqrs import PagedResult
from notification_engine.core.domain.entities.notification_job_entity import NotificationJobEntity
from notification_engine.core.domain.types import NotificationChannel, NotificationType


class NotificationJobRepository(ABC):
    """
    Job Store: persistência durável dos jobs de notificação.

    Toda transição de estado feita por workers é condicional
    (status + version); um retorno `None` indica rejeição por estado obsoleto.
    """

    # ───────────────────────── escrita ─────────────────────────
    @abstractmethod
    def create_many(self, jobs: Sequence[NotificationJobEntity]) -> list[NotificationJobEntity]:
        """Persiste novos jobs (atômico: todos ou nenhum)."""
        ...

    @abstractmethod
    def claim(self, job_id: UUID, expected_version: int) -> NotificationJobEntity | None:
        """
        Compare-and-set PENDING → PROCESSING.
        Retorna o job reivindicado ou None se outro worker chegou antes.
        """
        ...

    @abstractmethod
    def record_delivered(
        self, job: NotificationJobEntity, *, provider_message_id: str | None, confirmed: bool, now: datetime
    ) -> NotificationJobEntity | None:
        """PROCESSING → SENT (ou DELIVERED quando confirmado pelo provedor)."""
        ...

    @abstractmethod
    def record_retry(
        self, job: NotificationJobEntity, *, attempts: int, next_attempt_at: datetime, error: str
    ) -> NotificationJobEntity | None:
        """PROCESSING → PENDING com nova tentativa agendada."""
        ...

    @abstractmethod
    def record_terminal_failure(
        self, job: NotificationJobEntity, *, status: str, attempts: int, error: str
    ) -> NotificationJobEntity | None:
        """PROCESSING → FAILED/DEAD."""
        ...

    @abstractmethod
    def release(self, job: NotificationJobEntity, *, next_attempt_at: datetime) -> NotificationJobEntity | None:
        """PROCESSING → PENDING sem contar tentativa (limite de taxa)."""
        ...

    @abstractmethod
    def reset_for_resend(self, job_id: UUID, now: datetime) -> bool:
        """
        FAILED/DEAD → PENDING com attempts=0 e next_attempt_at=now.
        Retorna False se o job não estava em um status reenviável.
        """
        ...

    @abstractmethod
    def confirm_delivery(self, job_id: UUID, delivered_at: datetime) -> bool:
        """SENT → DELIVERED a partir do status informado pelo provedor."""
        ...

    @abstractmethod
    def mark_provider_failure(self, job_id: UUID, error: str) -> bool:
        """SENT → FAILED quando o provedor reporta falha posterior ao aceite."""
        ...

    @abstractmethod
    def delete_terminal_older_than(self, cutoff: datetime) -> int:
        """Remove jobs FAILED/DEAD com updated_at < cutoff. Retorna a quantidade."""
        ...

    @abstractmethod
    def requeue_stale_processing(self, older_than: datetime) -> int:
        """Devolve a PENDING jobs presos em PROCESSING (worker interrompido)."""
        ...

    @abstractmethod
    def supersede_pending(self, appointment_id: UUID, notification_type: NotificationType, reason: str) -> int:
        """
        Encerra como FAILED os jobs PENDING do turno para o tipo dado
        (conteúdo renderizado ficou obsoleto). Retorna a quantidade.
        """
        ...

    # ───────────────────────── leitura ─────────────────────────
    @abstractmethod
    def find_by_id(self, job_id: UUID) -> NotificationJobEntity | None:
        ...

    @abstractmethod
    def find_due(self, now: datetime, limit: int) -> list[NotificationJobEntity]:
        """Jobs PENDING com next_attempt_at <= now, do mais antigo ao mais novo."""
        ...

    @abstractmethod
    def find_sent_awaiting_confirmation(
        self, channel: NotificationChannel, limit: int
    ) -> list[NotificationJobEntity]:
        ...

    @abstractmethod
    def has_active_reminder(self, appointment_id: UUID) -> bool:
        """Já existe lembrete PENDING/PROCESSING/SENT/DELIVERED para o turno?"""
        ...

    @abstractmethod
    def list(
        self,
        filtros: dict[str, Any],
        *,
        page: int,
        page_size: int,
        order_by: str,
        descending: bool,
    ) -> PagedResult[NotificationJobEntity]:
        ...

    @abstractmethod
    def aggregate(self, since: datetime | None = None, until: datetime | None = None) -> dict[str, dict[str, int]]:
        """Contagens por status, canal e tipo (`created_at` dentro da janela)."""
        ...

    @abstractmethod
    def count_sent_since(self, since: datetime) -> int:
        ...

    @abstractmethod
    def ping(self) -> bool:
        """Verifica conectividade com o banco."""
        ...
