from __future__ import annotations

from dataclasses import dataclass

from notification_engine.core.application.cqrs import CommandDTO


@dataclass(frozen=True)
class ToggleTaskCommand(CommandDTO):
    name: str
    enabled: bool

@dataclass(frozen=True)
class RunTaskManuallyCommand(CommandDTO):
    name: str
