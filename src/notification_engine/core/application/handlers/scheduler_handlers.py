from __future__ import annotations

from typing import Any

from notification_engine.core.application.commands.scheduler_commands import RunTaskManuallyCommand, ToggleTaskCommand
from notification_engine.core.application.cqrs import CommandHandler, QueryHandler
from notification_engine.core.application.queries.scheduler_queries import SchedulerStatsQuery, TasksStatusQuery
from notification_engine.core.application.services.scheduler_service import SchedulerService


class ToggleTaskHandler(CommandHandler[ToggleTaskCommand]):
    def __init__(self, scheduler: SchedulerService):
        self.scheduler = scheduler

    def handle(self, cmd: ToggleTaskCommand) -> bool:
        return self.scheduler.toggle_task(cmd.name, cmd.enabled)


class RunTaskManuallyHandler(CommandHandler[RunTaskManuallyCommand]):
    def __init__(self, scheduler: SchedulerService):
        self.scheduler = scheduler

    def handle(self, cmd: RunTaskManuallyCommand) -> dict[str, Any]:
        return self.scheduler.run_task_manually(cmd.name)


class TasksStatusHandler(QueryHandler[TasksStatusQuery, list[dict[str, Any]]]):
    def __init__(self, scheduler: SchedulerService):
        self.scheduler = scheduler

    def handle(self, query: TasksStatusQuery) -> list[dict[str, Any]]:
        return self.scheduler.get_tasks_status()


class SchedulerStatsHandler(QueryHandler[SchedulerStatsQuery, dict[str, Any]]):
    def __init__(self, scheduler: SchedulerService):
        self.scheduler = scheduler

    def handle(self, query: SchedulerStatsQuery) -> dict[str, Any]:
        return self.scheduler.get_scheduler_stats()
