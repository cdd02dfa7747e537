from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from notification_engine.core.application.cqrs import QueryDTO
from notification_engine.core.application.dtos.notification_dto import NotificationFilterDTO, PaginationDTO


@dataclass(frozen=True)
class ListNotificationsQuery(QueryDTO):
    filtros: NotificationFilterDTO = field(default_factory=NotificationFilterDTO)
    pagination: PaginationDTO = field(default_factory=PaginationDTO)

@dataclass(frozen=True)
class NotificationStatsQuery(QueryDTO):
    since: datetime | None = None
    until: datetime | None = None

@dataclass(frozen=True)
class QueueStatsQuery(QueryDTO):
    pass

@dataclass(frozen=True)
class ServiceStatusQuery(QueryDTO):
    pass

@dataclass(frozen=True)
class SystemHealthQuery(QueryDTO):
    pass
