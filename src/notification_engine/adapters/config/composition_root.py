from dependency_injector import containers, providers

container = None


def build_container(settings, adapters=None):  # noqa: PLR0915
    """
    Monta um container novo e registra os handlers nos buses.

    `adapters` permite injetar adaptadores de canal alternativos
    (ex.: fakes nos testes); por padrão usa o registry de notifiers.
    """
    from datetime import timedelta

    import structlog

    # Notificadores e observabilidade
    from notification_engine.adapters.notifiers.registry import build_channel_adapters
    from notification_engine.adapters.observability.event_listeners import register_metrics_listeners

    # Repositórios concretos (Django ORM)
    from notification_engine.adapters.repositories.appointment_repo_impl import AppointmentRepoImpl
    from notification_engine.adapters.repositories.message_template_repo_impl import (
        ClinicConfigRepoImpl,
        MessageTemplateRepoImpl,
    )
    from notification_engine.adapters.repositories.notification_job_repo_impl import NotificationJobRepoImpl
    from notification_engine.adapters.repositories.scheduled_task_repo_impl import ScheduledTaskStateRepoImpl

    # Commands / Queries
    from notification_engine.core.application.commands.notification_commands import (
        CleanupFailedJobsCommand,
        ResendFailedNotificationCommand,
        ScheduleAppointmentRemindersCommand,
        SendAppointmentNotificationCommand,
        SendCustomNotificationCommand,
        SendRemindersForDateCommand,
        SendTestMessageCommand,
    )
    from notification_engine.core.application.commands.scheduler_commands import (
        RunTaskManuallyCommand,
        ToggleTaskCommand,
    )

    # CQRS
    from notification_engine.core.application.cqrs import CommandBusImpl, QueryBusImpl

    # Handlers
    from notification_engine.core.application.handlers import (
        CleanupFailedJobsHandler,
        ListNotificationsHandler,
        NotificationStatsHandler,
        QueueStatsHandler,
        ResendFailedNotificationHandler,
        RunTaskManuallyHandler,
        ScheduleAppointmentRemindersHandler,
        SchedulerStatsHandler,
        SendAppointmentNotificationHandler,
        SendCustomNotificationHandler,
        SendRemindersForDateHandler,
        SendTestMessageHandler,
        ServiceStatusHandler,
        SystemHealthHandler,
        TasksStatusHandler,
        ToggleTaskHandler,
    )
    from notification_engine.core.application.queries.notification_queries import (
        ListNotificationsQuery,
        NotificationStatsQuery,
        QueueStatsQuery,
        ServiceStatusQuery,
        SystemHealthQuery,
    )
    from notification_engine.core.application.queries.scheduler_queries import (
        SchedulerStatsQuery,
        TasksStatusQuery,
    )

    # Serviços de aplicação
    from notification_engine.core.application.services.control_service import NotificationControlService
    from notification_engine.core.application.services.engine_tasks import EngineTasks
    from notification_engine.core.application.services.notification_service import NotificationService
    from notification_engine.core.application.services.queue_engine import QueueEngine
    from notification_engine.core.application.services.scheduler_service import SchedulerService

    # Event Dispatcher
    from notification_engine.core.domain.services.event_dispatcher import EventDispatcher

    engine_cfg = settings.NOTIFICATION_ENGINE

    # ------- DECLARAÇÃO DO CONTAINER -------
    class Container(containers.DeclarativeContainer):
        config = providers.Configuration()

        logger = providers.Singleton(structlog.get_logger)
        event_dispatcher = providers.Singleton(EventDispatcher)

        # CQRS
        command_bus = providers.Singleton(CommandBusImpl)
        query_bus = providers.Singleton(QueryBusImpl)

        # Adaptadores de canal
        channel_adapters = (
            providers.Object(adapters) if adapters is not None else providers.Singleton(build_channel_adapters)
        )

        # Implementações de Repositórios (Ports → Adapters)
        job_repo = providers.Singleton(NotificationJobRepoImpl)
        appointment_repo = providers.Singleton(AppointmentRepoImpl)
        template_repo = providers.Singleton(MessageTemplateRepoImpl)
        clinic_repo = providers.Singleton(ClinicConfigRepoImpl)
        scheduled_task_repo = providers.Singleton(ScheduledTaskStateRepoImpl)

        # Parâmetros temporais
        reminder_lead = providers.Singleton(timedelta, hours=config.reminder_lead_hours)
        stale_after = providers.Singleton(timedelta, minutes=config.stale_processing_minutes)

        # Serviços de negócio
        notification_service = providers.Singleton(
            NotificationService,
            job_repo=job_repo,
            appointment_repo=appointment_repo,
            template_repo=template_repo,
            clinic_repo=clinic_repo,
            dispatcher=event_dispatcher,
            channel_policy=config.channel_policy,
            max_attempts=config.max_attempts,
            reminder_lead=reminder_lead,
            phone_region=config.phone_region,
        )
        queue_engine = providers.Singleton(
            QueueEngine,
            job_repo=job_repo,
            adapters=channel_adapters,
            dispatcher=event_dispatcher,
            batch_size=config.batch_size,
            pool_size=config.worker_pool_size,
            send_timeout=config.send_timeout_seconds,
            backoff_base=config.backoff_base_seconds,
            backoff_cap=config.backoff_cap_seconds,
            poll_interval=config.poll_interval_seconds,
            stale_after=stale_after,
        )
        scheduler = providers.Singleton(
            SchedulerService,
            dispatcher=event_dispatcher,
            state_repo=scheduled_task_repo,
            tick_interval=config.scheduler_tick_seconds,
            lock_ttl=config.task_lock_ttl_seconds,
            require_shared_cache=config.require_shared_cache,
        )
        engine_tasks = providers.Singleton(
            EngineTasks,
            notification_service=notification_service,
            queue_engine=queue_engine,
            reminder_lead=reminder_lead,
            retention_days=config.retention_days,
            failed_warning_threshold=config.failed_warning_threshold,
            pending_warning_threshold=config.pending_warning_threshold,
        )

        # Facade exposto aos controllers/CLI
        control_service = providers.Singleton(
            NotificationControlService,
            command_bus=command_bus,
            query_bus=query_bus,
        )

        # Handlers de comandos
        send_appointment_notification_handler = providers.Factory(
            SendAppointmentNotificationHandler, notification_service=notification_service
        )
        schedule_appointment_reminders_handler = providers.Factory(
            ScheduleAppointmentRemindersHandler, notification_service=notification_service
        )
        send_custom_notification_handler = providers.Factory(
            SendCustomNotificationHandler, notification_service=notification_service
        )
        send_reminders_for_date_handler = providers.Factory(
            SendRemindersForDateHandler, notification_service=notification_service
        )
        resend_failed_notification_handler = providers.Factory(
            ResendFailedNotificationHandler, notification_service=notification_service
        )
        cleanup_failed_jobs_handler = providers.Factory(CleanupFailedJobsHandler, queue_engine=queue_engine)
        send_test_message_handler = providers.Factory(SendTestMessageHandler, adapters=channel_adapters)
        toggle_task_handler = providers.Factory(ToggleTaskHandler, scheduler=scheduler)
        run_task_manually_handler = providers.Factory(RunTaskManuallyHandler, scheduler=scheduler)

        # Handlers de queries
        list_notifications_handler = providers.Factory(
            ListNotificationsHandler, notification_service=notification_service
        )
        notification_stats_handler = providers.Factory(
            NotificationStatsHandler, notification_service=notification_service
        )
        queue_stats_handler = providers.Factory(QueueStatsHandler, queue_engine=queue_engine)
        service_status_handler = providers.Factory(ServiceStatusHandler, queue_engine=queue_engine)
        system_health_handler = providers.Factory(
            SystemHealthHandler, queue_engine=queue_engine, scheduler=scheduler
        )
        tasks_status_handler = providers.Factory(TasksStatusHandler, scheduler=scheduler)
        scheduler_stats_handler = providers.Factory(SchedulerStatsHandler, scheduler=scheduler)

        def init(self):
            # Registrar comandos no CommandBus
            bus = self.command_bus()
            bus.register(SendAppointmentNotificationCommand, self.send_appointment_notification_handler())
            bus.register(ScheduleAppointmentRemindersCommand, self.schedule_appointment_reminders_handler())
            bus.register(SendCustomNotificationCommand, self.send_custom_notification_handler())
            bus.register(SendRemindersForDateCommand, self.send_reminders_for_date_handler())
            bus.register(ResendFailedNotificationCommand, self.resend_failed_notification_handler())
            bus.register(CleanupFailedJobsCommand, self.cleanup_failed_jobs_handler())
            bus.register(SendTestMessageCommand, self.send_test_message_handler())
            bus.register(ToggleTaskCommand, self.toggle_task_handler())
            bus.register(RunTaskManuallyCommand, self.run_task_manually_handler())

            # Registrar queries no QueryBus
            qb = self.query_bus()
            qb.register(ListNotificationsQuery, self.list_notifications_handler())
            qb.register(NotificationStatsQuery, self.notification_stats_handler())
            qb.register(QueueStatsQuery, self.queue_stats_handler())
            qb.register(ServiceStatusQuery, self.service_status_handler())
            qb.register(SystemHealthQuery, self.system_health_handler())
            qb.register(TasksStatusQuery, self.tasks_status_handler())
            qb.register(SchedulerStatsQuery, self.scheduler_stats_handler())

            # Métricas derivadas de eventos de domínio
            register_metrics_listeners(self.event_dispatcher())

            # Tarefas embutidas do agendador
            self.engine_tasks().register_all(self.scheduler(), engine_cfg["TASK_SCHEDULES"])

    # ------- INSTANCIAÇÃO E CONFIG -------
    built = Container()
    built.config.from_dict({
        "channel_policy": engine_cfg["CHANNEL_POLICY"],
        "max_attempts": engine_cfg["MAX_ATTEMPTS"],
        "backoff_base_seconds": engine_cfg["BACKOFF_BASE_SECONDS"],
        "backoff_cap_seconds": engine_cfg["BACKOFF_CAP_SECONDS"],
        "reminder_lead_hours": engine_cfg["REMINDER_LEAD_HOURS"],
        "retention_days": engine_cfg["RETENTION_DAYS"],
        "batch_size": engine_cfg["BATCH_SIZE"],
        "worker_pool_size": engine_cfg["WORKER_POOL_SIZE"],
        "send_timeout_seconds": engine_cfg["SEND_TIMEOUT_SECONDS"],
        "poll_interval_seconds": engine_cfg["POLL_INTERVAL_SECONDS"],
        "stale_processing_minutes": engine_cfg["STALE_PROCESSING_MINUTES"],
        "scheduler_tick_seconds": engine_cfg["SCHEDULER_TICK_SECONDS"],
        "task_lock_ttl_seconds": engine_cfg["TASK_LOCK_TTL_SECONDS"],
        "require_shared_cache": engine_cfg["REQUIRE_SHARED_CACHE"],
        "failed_warning_threshold": engine_cfg["FAILED_WARNING_THRESHOLD"],
        "pending_warning_threshold": engine_cfg["PENDING_WARNING_THRESHOLD"],
        "phone_region": settings.PHONE_DEFAULT_REGION,
    })

    # Inicializa os buses com todos os handlers
    Container.init(built)
    return built


def setup_di_container_from_settings(settings):
    """Inicializa o DI container global após o Django já estar com settings carregados."""
    global container  # noqa: PLW0603
    if container is not None:
        import structlog
        structlog.get_logger().debug("DI container já inicializado.")
        return container

    container = build_container(settings)
    return container


def get_control_service():
    from django.conf import settings

    return setup_di_container_from_settings(settings).control_service()


def shutdown_container(built) -> None:
    """Para motor e agendador e fecha clientes HTTP dos adaptadores."""
    built.queue_engine().shutdown()
    built.scheduler().shutdown()
    for adapter in built.channel_adapters().values():
        close = getattr(adapter, "close", None)
        if close:
            close()
