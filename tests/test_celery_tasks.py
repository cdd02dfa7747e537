from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone

from agenda_dental_api import tasks
from notification_engine.adapters.config import composition_root
from plugins.django_interface.models import NotificationJob
from tests.helpers.factories import make_job
from tests.helpers.fakes import fake_adapters


@override_settings(NOTIFICATION_AUTO_DISPATCH=False)
class CeleryTasksTests(TestCase):
    def setUp(self):
        cache.clear()
        previous = composition_root.container
        composition_root.container = composition_root.build_container(settings, adapters=fake_adapters())
        self.addCleanup(setattr, composition_root, "container", previous)
        self.addCleanup(composition_root.shutdown_container, composition_root.container)

    def test_process_due_notifications_runs_one_sweep(self):
        job = make_job(next_attempt_at=timezone.now() - timedelta(seconds=1))
        summary = tasks.process_due_notifications()
        self.assertEqual(summary["sent"], 1)
        self.assertEqual(NotificationJob.objects.get(id=job.id).status, "SENT")

    def test_sweep_skipped_when_lock_held(self):
        cache.add("locks:celery:process_due_notifications", "other", 60)
        make_job(next_attempt_at=timezone.now() - timedelta(seconds=1))
        self.assertIsNone(tasks.process_due_notifications())

    def test_scheduler_tick_initializes(self):
        self.assertEqual(tasks.scheduler_tick(), {})
        self.assertTrue(composition_root.container.scheduler().initialized)
