from __future__ import annotations

from datetime import UTC, datetime

from django.core.cache import cache
from django.test import TestCase, override_settings

from notification_engine.adapters.repositories.appointment_repo_impl import AppointmentRepoImpl
from notification_engine.adapters.repositories.message_template_repo_impl import (
    ClinicConfigRepoImpl,
    MessageTemplateRepoImpl,
)
from notification_engine.adapters.repositories.notification_job_repo_impl import NotificationJobRepoImpl
from notification_engine.core.application.services.notification_service import NotificationService
from notification_engine.core.application.services.queue_engine import QueueEngine
from notification_engine.core.domain.services.event_dispatcher import EventDispatcher

NOW = datetime(2025, 3, 10, 15, 0, tzinfo=UTC)


class Clock:
    """Relógio controlável para os serviços."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> datetime:
        self.now += delta
        return self.now


@override_settings(NOTIFICATION_AUTO_DISPATCH=False)
class EngineTestCase(TestCase):
    """Base: repositórios reais (ORM), adaptadores falsos e relógio fixo."""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.clock = Clock()
        self.dispatcher = EventDispatcher()
        self.job_repo = NotificationJobRepoImpl()
        self.appointment_repo = AppointmentRepoImpl()

    def build_notification_service(self, **kw) -> NotificationService:
        return NotificationService(
            self.job_repo,
            self.appointment_repo,
            MessageTemplateRepoImpl(),
            ClinicConfigRepoImpl(),
            self.dispatcher,
            clock=self.clock,
            **kw,
        )

    def build_queue_engine(self, adapters, **kw) -> QueueEngine:
        kw.setdefault("send_timeout", 2.0)
        engine = QueueEngine(self.job_repo, adapters, self.dispatcher, clock=self.clock, **kw)
        self.addCleanup(engine.shutdown)
        return engine
