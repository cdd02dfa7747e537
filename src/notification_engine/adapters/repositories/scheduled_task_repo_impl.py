from __future__ import annotations

from typing import Any

from notification_engine.core.domain.repositories.scheduled_task_repository import ScheduledTaskStateRepository
from plugins.django_interface.models import ScheduledTaskState

_STATE_FIELDS = (
    "enabled",
    "next_run_at",
    "last_run_at",
    "last_run_status",
    "last_error",
    "last_run_summary",
    "last_duration_seconds",
    "run_count",
)


def _to_dict(model: ScheduledTaskState) -> dict[str, Any]:
    return {field: getattr(model, field) for field in _STATE_FIELDS}


class ScheduledTaskStateRepoImpl(ScheduledTaskStateRepository):
    def load(self, name: str, *, default_enabled: bool = True) -> dict[str, Any]:
        model, _ = ScheduledTaskState.objects.get_or_create(name=name, defaults={"enabled": default_enabled})
        return _to_dict(model)

    def load_many(self, names: list[str]) -> dict[str, dict[str, Any]]:
        return {m.name: _to_dict(m) for m in ScheduledTaskState.objects.filter(name__in=names)}

    def save(self, name: str, **fields: Any) -> None:
        unknown = set(fields) - set(_STATE_FIELDS)
        if unknown:
            raise ValueError(f"campos desconhecidos: {sorted(unknown)}")
        ScheduledTaskState.objects.update_or_create(name=name, defaults=fields)
