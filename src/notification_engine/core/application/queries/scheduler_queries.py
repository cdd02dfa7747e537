from __future__ import annotations

from dataclasses import dataclass

from notification_engine.core.application.cqrs import QueryDTO


@dataclass(frozen=True)
class TasksStatusQuery(QueryDTO):
    pass

@dataclass(frozen=True)
class SchedulerStatsQuery(QueryDTO):
    pass
