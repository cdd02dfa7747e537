"""
Superfície HTTP (DRF): mapeamento fachada → JSON e erros de domínio → status.
"""
from __future__ import annotations

import uuid

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import override_settings
from rest_framework.test import APIClient, APITestCase

from notification_engine.adapters.config import composition_root
from notification_engine.core.application.services.engine_tasks import HEALTH_CHECK
from notification_engine.core.application.services.scheduler_service import SchedulerService
from notification_engine.core.domain.entities.delivery_result import PermanentFailure, TransientFailure
from notification_engine.core.domain.types import NotificationChannel
from tests.helpers.factories import make_appointment, make_job
from tests.helpers.fakes import fake_adapters


@override_settings(NOTIFICATION_AUTO_DISPATCH=False)
class EngineAPITestCase(APITestCase):
    adapter_kwargs: dict = {}

    def setUp(self):
        cache.clear()
        self.adapters = fake_adapters(**self.adapter_kwargs)
        previous = composition_root.container
        composition_root.container = composition_root.build_container(settings, adapters=self.adapters)
        self.addCleanup(setattr, composition_root, "container", previous)

        self.user = get_user_model().objects.create_user("operador", password="x")
        self.client = APIClient()
        self.client.force_authenticate(self.user)


class NotificationEndpointsTests(EngineAPITestCase):
    def test_requires_authentication(self):
        response = APIClient().get("/api/notifications/")
        self.assertIn(response.status_code, (401, 403))

    def test_liveness_is_public(self):
        self.assertEqual(APIClient().get("/api/healthz/").status_code, 200)

    def test_send_notification(self):
        appt = make_appointment()
        response = self.client.post(
            "/api/notifications/send/", {"appointment_id": str(appt.id), "type": "confirmation"}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["created"], 2)

    def test_send_errors(self):
        response = self.client.post(
            "/api/notifications/send/", {"appointment_id": str(uuid.uuid4()), "type": "CONFIRMATION"}, format="json"
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "AppointmentNotFound")

        response = self.client.post(
            "/api/notifications/send/", {"appointment_id": "x", "type": "CONFIRMATION"}, format="json"
        )
        self.assertEqual(response.status_code, 400)

    def test_list_and_pagination_limits(self):
        for _ in range(3):
            make_job()
        response = self.client.get("/api/notifications/", {"limit": 2, "status": "PENDING"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["data"]), 2)
        self.assertEqual(body["pagination"]["total"], 3)
        self.assertTrue(body["pagination"]["hasNext"])

        self.assertEqual(self.client.get("/api/notifications/", {"limit": 500}).status_code, 400)
        self.assertEqual(self.client.get("/api/notifications/", {"sort_by": "recipient"}).status_code, 400)

    def test_resend_conflict_and_not_found(self):
        job = make_job(status="SENT")
        self.assertEqual(self.client.post(f"/api/notifications/{job.id}/resend/").status_code, 409)
        self.assertEqual(self.client.post(f"/api/notifications/{uuid.uuid4()}/resend/").status_code, 404)

    def test_resend_failed(self):
        job = make_job(status="FAILED", attempts=1)
        response = self.client.post(f"/api/notifications/{job.id}/resend/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "PENDING")

    def test_stats_and_queue_stats(self):
        make_job(status="DEAD")
        stats = self.client.get("/api/notifications/stats/").json()
        self.assertEqual(stats["total"], 1)
        self.assertEqual(stats["by_status"]["DEAD"], 1)

        queue = self.client.get("/api/notifications/queue-stats/").json()
        self.assertEqual(queue["dead"], 1)
        self.assertIn("throughput", queue)

    def test_cleanup_validation(self):
        self.assertEqual(self.client.post("/api/notifications/cleanup/", {"days": -1}, format="json").status_code, 400)
        response = self.client.post("/api/notifications/cleanup/", {"days": 7}, format="json")
        self.assertEqual(response.json(), {"removed": 0, "days": 7})

    def test_health_ok(self):
        response = self.client.get("/api/notifications/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")


class TestMessageEndpointTests(EngineAPITestCase):
    def post(self, **payload):
        body = {"channel": "whatsapp", "recipient": "+5491155551234", "message": "ping", **payload}
        return self.client.post("/api/notifications/test/", body, format="json")

    def test_success(self):
        response = self.post()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["channel"], "WHATSAPP")
        self.assertEqual(len(self.adapters[NotificationChannel.WHATSAPP].sent), 1)

    def test_failures_map_to_status(self):
        wa = self.adapters[NotificationChannel.WHATSAPP]
        wa.results.extend([PermanentFailure("inválido"), TransientFailure("503")])
        self.assertEqual(self.post().status_code, 422)
        self.assertEqual(self.post().status_code, 502)
        self.assertEqual(self.post(channel="sms").status_code, 400)


class UnhealthyTests(EngineAPITestCase):
    adapter_kwargs = {"enabled": False}

    def test_no_enabled_channel_is_503(self):
        response = self.client.get("/api/notifications/health/")
        self.assertEqual(response.status_code, 503)
        body = response.json()
        self.assertEqual(body["status"], "unhealthy")
        self.assertEqual(body["problems"], ["nenhum canal de envio habilitado"])


class SchedulerEndpointsTests(EngineAPITestCase):
    def test_tasks_and_stats(self):
        tasks = self.client.get("/api/scheduler/tasks/").json()["tasks"]
        self.assertIn(HEALTH_CHECK, [t["name"] for t in tasks])
        stats = self.client.get("/api/scheduler/stats/").json()
        self.assertEqual(stats["total_tasks"], len(tasks))

    def test_toggle(self):
        response = self.client.post(f"/api/scheduler/tasks/{HEALTH_CHECK}/toggle/", {"enabled": False}, format="json")
        self.assertEqual(response.json(), {"name": HEALTH_CHECK, "enabled": False})
        self.assertEqual(
            self.client.post("/api/scheduler/tasks/nope/toggle/", {"enabled": True}, format="json").status_code, 404
        )

    def test_run_task(self):
        response = self.client.post(f"/api/scheduler/tasks/{HEALTH_CHECK}/run/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["last_run_status"], "ok")

    def test_run_busy_task_conflicts(self):
        cache.add(f"{SchedulerService.LOCK_NAMESPACE}:{HEALTH_CHECK}", "tick", 60)
        response = self.client.post(f"/api/scheduler/tasks/{HEALTH_CHECK}/run/")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.client.post("/api/scheduler/tasks/nope/run/").status_code, 404)

    @override_settings(CACHES={"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}})
    def test_run_with_process_local_cache_is_503(self):
        response = self.client.post(f"/api/scheduler/tasks/{HEALTH_CHECK}/run/")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error"], "SchedulerUnavailable")

    def test_send_reminders_for_date(self):
        response = self.client.post("/api/scheduler/send-reminders/", {"date": "2025-03-11"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["date"], "2025-03-11")
        self.assertEqual(
            self.client.post("/api/scheduler/send-reminders/", {"date": "amanhã"}, format="json").status_code, 400
        )
