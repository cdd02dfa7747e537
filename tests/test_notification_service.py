"""
Orquestrador: seleção de canais, renderização, antecedência do lembrete,
reenvio e varredura diária.
"""
from __future__ import annotations

from datetime import date, timedelta

from notification_engine.core.domain.events.events import NotificationQueuedEvent, NotificationResentEvent
from notification_engine.core.domain.events.exceptions import (
    AppointmentNotFound,
    InvalidNotificationStatus,
    NotificationNotFound,
    PatientNotFound,
    ValidationError,
)
from notification_engine.core.domain.types import NotificationChannel, NotificationStatus, NotificationType
from plugins.django_interface.models import Appointment, MessageTemplate, NotificationJob, SystemConfig
from tests.helpers.base import NOW, EngineTestCase
from tests.helpers.factories import make_appointment, make_job, make_patient


class SendAppointmentNotificationTests(EngineTestCase):
    def setUp(self):
        super().setUp()
        self.service = self.build_notification_service()

    def test_phone_only_patient_gets_single_whatsapp_job(self):
        appt = make_appointment(make_patient(phone="+54 9 11 5555-1234", email=None))

        jobs = self.service.send_appointment_notification(appt.id, "confirmation")

        self.assertEqual(len(jobs), 1)
        job = jobs[0]
        self.assertEqual(job.channel, NotificationChannel.WHATSAPP)
        self.assertEqual(job.status, NotificationStatus.PENDING)
        self.assertEqual(job.recipient, "+5491155551234")
        self.assertEqual(job.next_attempt_at, NOW)
        self.assertEqual(job.attempts, 0)
        self.assertIsNone(job.subject)
        self.assertIn("María Pérez", job.body)
        self.assertEqual(NotificationJob.objects.count(), 1)

    def test_all_policy_creates_one_job_per_channel(self):
        appt = make_appointment()
        jobs = self.service.send_appointment_notification(appt.id, NotificationType.CONFIRMATION)

        self.assertEqual({j.channel for j in jobs}, {NotificationChannel.WHATSAPP, NotificationChannel.EMAIL})
        email = next(j for j in jobs if j.channel == NotificationChannel.EMAIL)
        self.assertEqual(email.recipient, "maria@example.com")
        self.assertIn("Clínica Dental", email.subject)

    def test_prefer_whatsapp_policy(self):
        service = self.build_notification_service(channel_policy="prefer_whatsapp")
        both = service.send_appointment_notification(make_appointment().id, "CONFIRMATION")
        email_only = service.send_appointment_notification(
            make_appointment(make_patient(phone=None)).id, "CONFIRMATION"
        )

        self.assertEqual([j.channel for j in both], [NotificationChannel.WHATSAPP])
        self.assertEqual([j.channel for j in email_only], [NotificationChannel.EMAIL])

    def test_patient_without_contact_creates_nothing(self):
        appt = make_appointment(make_patient(phone=None, email=None))
        self.assertEqual(self.service.send_appointment_notification(appt.id, "CONFIRMATION"), [])
        self.assertEqual(NotificationJob.objects.count(), 0)

    def test_unknown_appointment(self):
        import uuid

        with self.assertRaises(AppointmentNotFound):
            self.service.send_appointment_notification(uuid.uuid4(), "CONFIRMATION")

    def test_invalid_type_and_custom_without_message(self):
        appt = make_appointment()
        with self.assertRaises(ValidationError):
            self.service.send_appointment_notification(appt.id, "birthday")
        with self.assertRaises(ValidationError):
            self.service.send_appointment_notification(appt.id, "CUSTOM", "  ")

    def test_unparseable_phone_is_kept_raw(self):
        appt = make_appointment(make_patient(phone="abc", email=None))
        jobs = self.service.send_appointment_notification(appt.id, "CONFIRMATION")
        self.assertEqual(jobs[0].recipient, "abc")

    def test_rendered_variables_use_local_time_and_clinic_config(self):
        SystemConfig.objects.create(key="CLINIC_NAME", value="Sonrisas")
        # 2025-03-10 15:00 UTC = lunes 12:00 em Buenos Aires
        appt = make_appointment(start_time=NOW)
        jobs = self.service.send_appointment_notification(appt.id, "CONFIRMATION")
        body = jobs[0].body
        self.assertIn("lunes, 10/03/2025", body)
        self.assertIn("12:00", body)
        self.assertIn("Sonrisas", body)
        self.assertIn("Laura Gómez", body)

    def test_active_db_template_overrides_default(self):
        MessageTemplate.objects.create(
            category="CANCELLATION", channel="WHATSAPP", body="Cancelado: {{ patientName }}", is_active=True
        )
        appt = make_appointment(make_patient(email=None))
        jobs = self.service.send_appointment_notification(appt.id, "CANCELLATION")
        self.assertEqual(jobs[0].body, "Cancelado: María Pérez")

    def test_queued_event_dispatched_per_job(self):
        seen = []
        self.dispatcher.subscribe(NotificationQueuedEvent, seen.append)
        self.service.send_appointment_notification(make_appointment().id, "CONFIRMATION")
        self.assertEqual(len(seen), 2)


class ReminderLeadTests(EngineTestCase):
    def setUp(self):
        super().setUp()
        self.service = self.build_notification_service(reminder_lead=timedelta(hours=24))

    def test_reminder_scheduled_lead_before_start(self):
        appt = make_appointment(make_patient(email=None), start_time=NOW + timedelta(days=3))
        jobs = self.service.schedule_appointment_reminders(appt.id)
        self.assertEqual(jobs[0].type, NotificationType.REMINDER)
        self.assertEqual(jobs[0].next_attempt_at, NOW + timedelta(days=2))

    def test_reminder_in_the_past_is_due_now(self):
        appt = make_appointment(make_patient(email=None), start_time=NOW + timedelta(hours=2))
        jobs = self.service.schedule_appointment_reminders(appt.id)
        self.assertEqual(jobs[0].next_attempt_at, NOW)

    def test_rescheduling_supersedes_previous_pending_reminder(self):
        appt = make_appointment(make_patient(email=None), start_time=NOW + timedelta(days=3))
        first = self.service.schedule_appointment_reminders(appt.id)[0]
        second = self.service.schedule_appointment_reminders(appt.id)[0]

        self.assertEqual(NotificationJob.objects.get(id=first.id).status, "FAILED")
        self.assertEqual(NotificationJob.objects.get(id=second.id).status, "PENDING")

    def test_cancellation_supersedes_pending_reminder_only(self):
        appt = make_appointment(make_patient(email=None), start_time=NOW + timedelta(days=3))
        reminder = self.service.schedule_appointment_reminders(appt.id)[0]
        sent = make_job(appt.patient, appointment=appt, type="REMINDER", status=NotificationStatus.SENT.value)

        self.service.send_appointment_notification(appt.id, "CANCELLATION")

        superseded = NotificationJob.objects.get(id=reminder.id)
        self.assertEqual(superseded.status, "FAILED")
        self.assertEqual(superseded.last_error, "lembrete obsoleto: turno cancelado")
        self.assertEqual(NotificationJob.objects.get(id=sent.id).status, "SENT")


class CustomNotificationTests(EngineTestCase):
    def test_custom_notification_without_appointment(self):
        service = self.build_notification_service()
        patient = make_patient()
        jobs = service.send_custom_notification(patient.id, "Traé tus estudios", subject="Aviso")

        self.assertEqual(len(jobs), 2)
        self.assertTrue(all(j.appointment_id is None for j in jobs))
        email = next(j for j in jobs if j.channel == NotificationChannel.EMAIL)
        self.assertEqual(email.subject, "Aviso")
        self.assertIn("Traé tus estudios", email.body)

    def test_custom_notification_validation(self):
        import uuid

        service = self.build_notification_service()
        with self.assertRaises(ValidationError):
            service.send_custom_notification(make_patient().id, "")
        with self.assertRaises(PatientNotFound):
            service.send_custom_notification(uuid.uuid4(), "hola")


class ResendTests(EngineTestCase):
    def setUp(self):
        super().setUp()
        self.service = self.build_notification_service()

    def test_resend_dead_job(self):
        job = make_job(status=NotificationStatus.DEAD.value, attempts=3, last_error="timeout")
        events = []
        self.dispatcher.subscribe(NotificationResentEvent, events.append)

        refreshed = self.service.resend_failed_notification(job.id)

        self.assertEqual(refreshed.status, NotificationStatus.PENDING)
        self.assertEqual(refreshed.attempts, 0)
        self.assertEqual(refreshed.next_attempt_at, NOW)
        self.assertIsNone(refreshed.last_error)
        self.assertEqual(events[0].previous_status, "DEAD")

    def test_resend_rejects_non_failed_jobs(self):
        job = make_job(status=NotificationStatus.SENT.value)
        with self.assertRaises(InvalidNotificationStatus):
            self.service.resend_failed_notification(job.id)

    def test_second_resend_sees_invalid_status(self):
        job = make_job(status=NotificationStatus.FAILED.value, attempts=1)
        self.service.resend_failed_notification(job.id)
        with self.assertRaises(InvalidNotificationStatus):
            self.service.resend_failed_notification(job.id)
        self.assertEqual(NotificationJob.objects.get(id=job.id).status, NotificationStatus.PENDING)

    def test_resend_unknown_job(self):
        import uuid

        with self.assertRaises(NotificationNotFound):
            self.service.resend_failed_notification(uuid.uuid4())


class ReminderScanTests(EngineTestCase):
    def test_scan_skips_ineligible_and_already_reminded(self):
        service = self.build_notification_service()
        day = date(2025, 3, 11)
        start = NOW + timedelta(days=1)  # 11/03 12:00 local

        eligible = make_appointment(start_time=start)
        confirmed = make_appointment(start_time=start + timedelta(hours=1), status=Appointment.Status.CONFIRMED)
        make_appointment(start_time=start, status=Appointment.Status.CANCELLED)
        make_appointment(make_patient(phone=None, email=None), start_time=start)
        already = make_appointment(start_time=start)
        make_job(already.patient, appointment=already, type="REMINDER")
        make_appointment(start_time=start + timedelta(days=1))

        summary = service.send_reminders_for_date(day)

        self.assertEqual(summary["date"], "2025-03-11")
        self.assertEqual(summary["total_appointments"], 4)
        self.assertEqual(summary["reminders_sent"], 2)
        self.assertEqual(summary["skipped"], 2)
        self.assertEqual(summary["errors"], [])
        for appt in (eligible, confirmed):
            self.assertTrue(NotificationJob.objects.filter(appointment=appt, type="REMINDER").exists())

    def test_failed_reminder_is_retriggered(self):
        service = self.build_notification_service()
        appt = make_appointment(start_time=NOW + timedelta(days=1))
        make_job(appt.patient, appointment=appt, type="REMINDER", status=NotificationStatus.FAILED.value)

        summary = service.send_reminders_for_date(date(2025, 3, 11))
        self.assertEqual(summary["reminders_sent"], 1)


class StatsTests(EngineTestCase):
    def test_total_matches_sum_of_statuses(self):
        service = self.build_notification_service()
        patient = make_patient()
        for status in ("PENDING", "SENT", "FAILED", "DEAD", "DEAD"):
            make_job(patient, status=status)

        stats = service.get_notification_stats()

        self.assertEqual(stats["total"], 5)
        self.assertEqual(stats["total"], sum(stats["by_status"].values()))
        self.assertEqual(stats["by_status"]["DEAD"], 2)
        self.assertEqual(stats["by_status"]["DELIVERED"], 0)
