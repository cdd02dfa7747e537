from .notification_handlers import ( # noqa
  CleanupFailedJobsHandler,
  ListNotificationsHandler,
  NotificationStatsHandler,
  QueueStatsHandler,
  ResendFailedNotificationHandler,
  ScheduleAppointmentRemindersHandler,
  SendAppointmentNotificationHandler,
  SendCustomNotificationHandler,
  SendRemindersForDateHandler,
  SendTestMessageHandler,
  ServiceStatusHandler,
  SystemHealthHandler,
)
from .scheduler_handlers import ( # noqa
  RunTaskManuallyHandler,
  SchedulerStatsHandler,
  TasksStatusHandler,
  ToggleTaskHandler,
)
