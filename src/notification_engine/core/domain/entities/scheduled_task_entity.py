from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from notification_engine.core.domain.types import TaskRunStatus

TaskCallable = Callable[[], dict[str, Any] | None]


@dataclass
class ScheduledTaskEntity:
    """
    Tarefa periódica registrada no agendador.

    `func`, `schedule` e `description` vêm do código; os demais campos
    espelham o estado persistido (ver `apply_state` / `state_fields`).
    `schedule` aceita um `celery.schedules.crontab`, um
    `celery.schedules.schedule` ou um `timedelta` simples.
    """

    name: str
    func: TaskCallable
    schedule: Any
    description: str = ""
    enabled: bool = True
    last_run_at: datetime | None = None
    last_run_status: TaskRunStatus | None = None
    last_error: str | None = None
    last_run_summary: dict[str, Any] | None = None
    last_duration_seconds: float | None = None
    next_run_at: datetime | None = None
    run_count: int = 0
    running: bool = False
    default_enabled: bool = field(init=False)

    def __post_init__(self) -> None:
        self.default_enabled = self.enabled

    def is_due(self, now: datetime) -> bool:
        return self.next_run_at is not None and self.next_run_at <= now

    def schedule_description(self) -> str:
        if isinstance(self.schedule, timedelta):
            return f"every {int(self.schedule.total_seconds())}s"
        return str(self.schedule)

    def apply_state(self, state: dict[str, Any]) -> None:
        for key, value in state.items():
            if key == "last_run_status" and value:
                value = TaskRunStatus(value)
            setattr(self, key, value)

    def state_fields(self, *names: str) -> dict[str, Any]:
        out = {name: getattr(self, name) for name in names}
        if isinstance(out.get("last_run_status"), TaskRunStatus):
            out["last_run_status"] = out["last_run_status"].value
        return out

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "schedule": self.schedule_description(),
            "enabled": self.enabled,
            "running": self.running,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_run_status": self.last_run_status.value if self.last_run_status else None,
            "last_error": self.last_error,
            "last_run_summary": self.last_run_summary,
            "last_duration_seconds": self.last_duration_seconds,
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "run_count": self.run_count,
        }
