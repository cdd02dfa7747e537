from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from notification_engine.core.domain.entities._base import EntityMixin
from notification_engine.core.domain.types import NotificationChannel


@dataclass(slots=True)
class ChannelStatusEntity(EntityMixin):
    """Estado derivado de um canal (não persistido)."""

    channel: NotificationChannel
    provider: str
    enabled: bool
    configured: bool
    healthy: bool = False
    last_health_check_at: datetime | None = None
    last_error: str | None = None
    rate_limit_per_minute: int | None = None

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel.value,
            "provider": self.provider,
            "enabled": self.enabled,
            "configured": self.configured,
            "healthy": self.healthy,
            "last_health_check_at": (
                self.last_health_check_at.isoformat() if self.last_health_check_at else None
            ),
            "last_error": self.last_error,
            "rate_limit_per_minute": self.rate_limit_per_minute,
        }
