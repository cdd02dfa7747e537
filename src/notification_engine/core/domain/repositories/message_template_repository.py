from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from notification_engine.core.domain.types import NotificationChannel, NotificationType


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    body: str
    subject: str | None = None


@dataclass(frozen=True, slots=True)
class ClinicInfo:
    name: str
    address: str
    phone: str


class MessageTemplateRepository(ABC):
    @abstractmethod
    def render(
        self,
        category: NotificationType,
        channel: NotificationChannel,
        variables: dict[str, Any],
    ) -> RenderedMessage:
        """Busca o template da categoria/canal e substitui as variáveis."""
        ...


class ClinicConfigRepository(ABC):
    @abstractmethod
    def get_clinic_info(self) -> ClinicInfo:
        """Nome, endereço e telefone da clínica usados nas mensagens."""
        ...
