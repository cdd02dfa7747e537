# ╭────────────────────────────────────────────────────────────────────────────╮
# │  Agendador – estado, toggle e execução manual de tarefas                  │
# ╰────────────────────────────────────────────────────────────────────────────╯
from __future__ import annotations

from rest_framework.response import Response

from notification_engine.core.application.dtos.request_dto import SendRemindersForDateDTO, ToggleTaskDTO
from notification_engine.core.domain.events.exceptions import TaskNotFound

from .base import EngineAPIView, parse_body


class TasksStatusView(EngineAPIView):
    def get(self, request):
        return Response({"tasks": self.service.get_tasks_status()})


class ToggleTaskView(EngineAPIView):
    def post(self, request, name):
        dto = parse_body(ToggleTaskDTO, request.data)
        if not self.service.toggle_task(name, dto.enabled):
            raise TaskNotFound(name)
        return Response({"name": name, "enabled": dto.enabled})


class RunTaskView(EngineAPIView):
    def post(self, request, name):
        return Response(self.service.run_task_manually(name))


class SchedulerStatsView(EngineAPIView):
    def get(self, request):
        return Response(self.service.get_scheduler_stats())


class SendRemindersForDateView(EngineAPIView):
    def post(self, request):
        dto = parse_body(SendRemindersForDateDTO, request.data)
        return Response(self.service.send_reminders_for_date(dto.day))
