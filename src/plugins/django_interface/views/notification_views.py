# ╭────────────────────────────────────────────────────────────────────────────╮
# │  Notificações – criação de jobs, consulta, estatísticas e operação        │
# ╰────────────────────────────────────────────────────────────────────────────╯
from __future__ import annotations

from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from notification_engine.core.application.dtos.notification_dto import (
    NotificationFilterDTO,
    PaginationDTO,
    StatsWindowDTO,
)
from notification_engine.core.application.dtos.request_dto import (
    CleanupDTO,
    ScheduleRemindersDTO,
    SendAppointmentNotificationDTO,
    SendCustomNotificationDTO,
    SendTestMessageDTO,
)

from .base import EngineAPIView, parse_body


# ─── Criação ────────────────────────────────────────────────────────────────
class SendAppointmentNotificationView(EngineAPIView):
    def post(self, request):
        dto = parse_body(SendAppointmentNotificationDTO, request.data)
        res = self.service.send_appointment_notification(dto.appointment_id, dto.type, dto.custom_message)
        return Response(res, status=status.HTTP_201_CREATED)


class ScheduleRemindersView(EngineAPIView):
    def post(self, request):
        dto = parse_body(ScheduleRemindersDTO, request.data)
        res = self.service.schedule_appointment_reminders(dto.appointment_id)
        return Response(res, status=status.HTTP_201_CREATED)


class SendCustomNotificationView(EngineAPIView):
    def post(self, request):
        dto = parse_body(SendCustomNotificationDTO, request.data)
        res = self.service.send_custom_notification(dto.patient_id, dto.message, dto.subject)
        return Response(res, status=status.HTTP_201_CREATED)


class SendTestMessageView(EngineAPIView):
    """Envio síncrono direto pelo adaptador (não cria job)."""

    def post(self, request):
        dto = parse_body(SendTestMessageDTO, request.data)
        res = self.service.send_test_message(dto.channel, dto.recipient, dto.message, dto.subject)
        return Response(res, status=status.HTTP_200_OK)


# ─── Operação ───────────────────────────────────────────────────────────────
class ResendNotificationView(EngineAPIView):
    def post(self, request, job_id):
        return Response(self.service.resend_failed_notification(job_id))


class CleanupFailedJobsView(EngineAPIView):
    def post(self, request):
        dto = parse_body(CleanupDTO, request.data)
        return Response(self.service.cleanup_failed_jobs(dto.days))


# ─── Consulta ───────────────────────────────────────────────────────────────
class NotificationListView(EngineAPIView):
    def get(self, request):
        params = request.query_params
        filters = parse_body(NotificationFilterDTO, params.dict())
        pagination = parse_body(PaginationDTO, params.dict())
        return Response(self.service.get_notifications(filters, pagination))


class NotificationStatsView(EngineAPIView):
    def get(self, request):
        window = parse_body(StatsWindowDTO, request.query_params.dict())
        return Response(self.service.get_notification_stats(window.since, window.until))


class QueueStatsView(EngineAPIView):
    def get(self, request):
        return Response(self.service.get_queue_stats())


class ServiceStatusView(EngineAPIView):
    def get(self, request):
        return Response(self.service.get_service_status())


class SystemHealthView(EngineAPIView):
    """
    Rota GET /api/notifications/health/: 200 com o relatório ou 503
    quando banco/canais estão indisponíveis.
    """

    def get(self, request):
        return Response(self.service.get_system_health())


class LivenessView(APIView):
    """
    Rota GET /api/healthz/: retorna status 200 se a API estiver viva.
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({"status": "ok"}, status=status.HTTP_200_OK)
