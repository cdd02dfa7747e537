from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from notification_engine.core.domain.types import (
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)

# ───────────────────────────────────────────────
# DTOs de consulta (filtros / paginação)
# ───────────────────────────────────────────────
SortField = Literal["created_at", "updated_at", "next_attempt_at", "status", "attempts"]


class NotificationFilterDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: NotificationStatus | None = None
    type: NotificationType | None = None
    channel: NotificationChannel | None = None
    patient_id: UUID | None = None
    appointment_id: UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    @model_validator(mode="after")
    def _check_range(self) -> NotificationFilterDTO:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date deve ser anterior ou igual a end_date")
        return self

    def as_filters(self) -> dict:
        return self.model_dump(exclude_none=True)


class PaginationDTO(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    sort_by: SortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class StatsWindowDTO(BaseModel):
    since: datetime | None = None
    until: datetime | None = None

    @model_validator(mode="after")
    def _check_range(self) -> StatsWindowDTO:
        if self.since and self.until and self.since > self.until:
            raise ValueError("since deve ser anterior ou igual a until")
        return self
