from django.urls import path

from .views.notification_views import (
    CleanupFailedJobsView,
    LivenessView,
    NotificationListView,
    NotificationStatsView,
    QueueStatsView,
    ResendNotificationView,
    ScheduleRemindersView,
    SendAppointmentNotificationView,
    SendCustomNotificationView,
    SendTestMessageView,
    ServiceStatusView,
    SystemHealthView,
)
from .views.scheduler_views import (
    RunTaskView,
    SchedulerStatsView,
    SendRemindersForDateView,
    TasksStatusView,
    ToggleTaskView,
)

urlpatterns = [
    path("healthz/", LivenessView.as_view(), name="healthz"),

    # notificações
    path("notifications/", NotificationListView.as_view(), name="notification-list"),
    path("notifications/send/", SendAppointmentNotificationView.as_view(), name="notification-send"),
    path("notifications/schedule-reminders/", ScheduleRemindersView.as_view(), name="notification-schedule-reminders"),
    path("notifications/custom/", SendCustomNotificationView.as_view(), name="notification-custom"),
    path("notifications/test/", SendTestMessageView.as_view(), name="notification-test"),
    path("notifications/<uuid:job_id>/resend/", ResendNotificationView.as_view(), name="notification-resend"),
    path("notifications/cleanup/", CleanupFailedJobsView.as_view(), name="notification-cleanup"),
    path("notifications/stats/", NotificationStatsView.as_view(), name="notification-stats"),
    path("notifications/queue-stats/", QueueStatsView.as_view(), name="notification-queue-stats"),
    path("notifications/status/", ServiceStatusView.as_view(), name="notification-status"),
    path("notifications/health/", SystemHealthView.as_view(), name="notification-health"),

    # agendador
    path("scheduler/tasks/", TasksStatusView.as_view(), name="scheduler-tasks"),
    path("scheduler/tasks/<str:name>/toggle/", ToggleTaskView.as_view(), name="scheduler-task-toggle"),
    path("scheduler/tasks/<str:name>/run/", RunTaskView.as_view(), name="scheduler-task-run"),
    path("scheduler/stats/", SchedulerStatsView.as_view(), name="scheduler-stats"),
    path("scheduler/send-reminders/", SendRemindersForDateView.as_view(), name="scheduler-send-reminders"),
]
