"""
Notificações automáticas disparadas pelo ciclo de vida do turno.
"""
from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.test import TestCase, override_settings

from notification_engine.adapters.config import composition_root
from notification_engine.core.application.services.notification_service import format_date_es
from plugins.django_interface.models import Appointment, NotificationJob
from tests.helpers.factories import make_appointment, make_patient
from tests.helpers.fakes import fake_adapters


@override_settings(NOTIFICATION_AUTO_DISPATCH=True)
class AppointmentSignalTests(TestCase):
    def setUp(self):
        previous = composition_root.container
        composition_root.container = composition_root.build_container(settings, adapters=fake_adapters())
        self.addCleanup(setattr, composition_root, "container", previous)
        self.addCleanup(composition_root.shutdown_container, composition_root.container)
        self.patient = make_patient(email=None)

    def types_for(self, appt) -> list[str]:
        return sorted(NotificationJob.objects.filter(appointment=appt).values_list("type", flat=True))

    def test_new_appointment_gets_confirmation_and_reminder(self):
        with self.captureOnCommitCallbacks(execute=True):
            appt = make_appointment(self.patient)
        self.assertEqual(self.types_for(appt), ["CONFIRMATION", "REMINDER"])

    def reminders_for(self, appt):
        return NotificationJob.objects.filter(appointment=appt, type="REMINDER").order_by("created_at")

    def test_cancellation_supersedes_pending_reminder(self):
        with self.captureOnCommitCallbacks(execute=True):
            appt = make_appointment(self.patient)
        with self.captureOnCommitCallbacks(execute=True):
            appt.status = Appointment.Status.CANCELLED
            appt.save()

        self.assertIn("CANCELLATION", self.types_for(appt))
        reminder = self.reminders_for(appt).get()
        self.assertEqual(reminder.status, "FAILED")
        self.assertIn("turno cancelado", reminder.last_error)

        # na janela do lembrete nada mais sai para esse turno
        engine = composition_root.container.queue_engine()
        summary = engine.run_once(appt.start_time - timedelta(hours=23))
        self.assertEqual(self.reminders_for(appt).get().status, "FAILED")
        self.assertEqual(summary["sent"], 2)  # CONFIRMATION + CANCELLATION

    def test_reschedule_keeps_a_single_reminder_with_the_new_date(self):
        with self.captureOnCommitCallbacks(execute=True):
            appt = make_appointment(self.patient)
        new_start = appt.start_time + timedelta(days=1)
        with self.captureOnCommitCallbacks(execute=True):
            appt.start_time = new_start
            appt.save()

        self.assertIn("RESCHEDULED", self.types_for(appt))
        old, new = self.reminders_for(appt)
        self.assertEqual(old.status, "FAILED")
        self.assertEqual(new.status, "PENDING")
        self.assertEqual(new.next_attempt_at, new_start - timedelta(hours=24))
        self.assertIn(format_date_es(new_start), new.body)

    def test_unrelated_update_sends_nothing(self):
        with self.captureOnCommitCallbacks(execute=True):
            appt = make_appointment(self.patient)
        with self.captureOnCommitCallbacks(execute=True):
            appt.notes = "trae radiografía"
            appt.save()
        self.assertEqual(len(self.types_for(appt)), 2)

    @override_settings(NOTIFICATION_AUTO_DISPATCH=False)
    def test_disabled(self):
        with self.captureOnCommitCallbacks(execute=True):
            appt = make_appointment(self.patient)
        self.assertEqual(self.types_for(appt), [])
