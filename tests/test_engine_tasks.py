from __future__ import annotations

from datetime import timedelta

from notification_engine.adapters.repositories.scheduled_task_repo_impl import ScheduledTaskStateRepoImpl
from notification_engine.core.application.services.engine_tasks import (
    APPOINTMENT_REMINDERS,
    DAILY_CLEANUP,
    DELIVERY_STATUS_SYNC,
    HEALTH_CHECK,
    EngineTasks,
)
from notification_engine.core.application.services.scheduler_service import SchedulerService
from notification_engine.core.domain.entities.delivery_result import Delivered, PermanentFailure
from notification_engine.core.domain.types import NotificationChannel, NotificationStatus
from plugins.django_interface.models import NotificationJob
from tests.helpers.base import NOW, EngineTestCase
from tests.helpers.factories import make_appointment, make_job, make_patient
from tests.helpers.fakes import fake_adapters


class EngineTasksTests(EngineTestCase):
    def setUp(self):
        super().setUp()
        self.adapters = fake_adapters()
        self.engine = self.build_queue_engine(self.adapters)
        self.tasks = EngineTasks(
            self.build_notification_service(),
            self.engine,
            reminder_lead=timedelta(hours=24),
            retention_days=7,
            failed_warning_threshold=1,
            pending_warning_threshold=100,
            clock=self.clock,
        )

    def test_appointment_reminders_targets_lead_day(self):
        tomorrow = make_appointment(start_time=NOW + timedelta(days=1))
        make_appointment(start_time=NOW + timedelta(days=2))

        summary = self.tasks.appointment_reminders()

        self.assertEqual(summary["date"], "2025-03-11")
        self.assertEqual(summary["reminders_sent"], 1)
        self.assertTrue(NotificationJob.objects.filter(appointment=tomorrow, type="REMINDER").exists())

    def test_daily_cleanup(self):
        job = make_job(status=NotificationStatus.DEAD.value)
        NotificationJob.objects.filter(id=job.id).update(updated_at=NOW - timedelta(days=8))
        self.assertEqual(self.tasks.daily_cleanup(), {"removed": 1, "retention_days": 7})

    def test_health_check_reports_warnings(self):
        patient = make_patient()
        make_job(patient, status=NotificationStatus.FAILED.value)
        make_job(patient, status=NotificationStatus.DEAD.value)
        stale = make_job(patient, status=NotificationStatus.PROCESSING.value)
        NotificationJob.objects.filter(id=stale.id).update(updated_at=NOW - timedelta(hours=1))
        self.adapters[NotificationChannel.EMAIL].reachable = False

        report = self.tasks.health_check()

        self.assertEqual(report["requeued"], 1)
        self.assertTrue(report["channels"]["WHATSAPP"]["healthy"])
        self.assertFalse(report["channels"]["EMAIL"]["healthy"])
        self.assertEqual(len(report["warnings"]), 2)
        self.assertIn("FAILED/DEAD", report["warnings"][0])
        self.assertIn("EMAIL", report["warnings"][1])

    def test_delivery_status_sync(self):
        patient = make_patient()
        delivered = make_job(patient, status="SENT", provider_message_id="SM1")
        failed = make_job(patient, status="SENT", provider_message_id="SM2")
        pending = make_job(patient, status="SENT", provider_message_id="SM3")
        wa = self.adapters[NotificationChannel.WHATSAPP]
        wa.delivery_statuses = {
            "SM1": Delivered(provider_message_id="SM1", confirmed=True),
            "SM2": PermanentFailure("undelivered"),
        }

        summary = self.tasks.delivery_status_sync()

        self.assertEqual(summary, {"checked": 3, "delivered": 1, "failed": 1, "unchanged": 1})
        for job, expected in ((delivered, "DELIVERED"), (failed, "FAILED"), (pending, "SENT")):
            job.refresh_from_db()
            self.assertEqual(job.status, expected)

    def test_register_all_only_configured(self):
        scheduler = SchedulerService(self.dispatcher, ScheduledTaskStateRepoImpl(), clock=self.clock)
        self.tasks.register_all(scheduler, {APPOINTMENT_REMINDERS: timedelta(hours=1), HEALTH_CHECK: timedelta(minutes=5)})

        names = [t["name"] for t in scheduler.get_tasks_status()]
        self.assertEqual(names, [APPOINTMENT_REMINDERS, HEALTH_CHECK])
        self.assertNotIn(DAILY_CLEANUP, names)
        self.assertNotIn(DELIVERY_STATUS_SYNC, names)
