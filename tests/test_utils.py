from datetime import UTC, datetime

from django.test import SimpleTestCase

from notification_engine.core.application.services.notification_service import format_date_es, format_time
from notification_engine.core.utils.phone_utils import normalize_phone
from notification_engine.core.utils.template_utils import render_message


class PhoneUtilsTests(SimpleTestCase):
    def test_normalizes_to_e164(self):
        self.assertEqual(normalize_phone("+54 9 11 5555-1234"), "+5491155551234")
        self.assertEqual(normalize_phone("011 5555-1234"), "+541155551234")
        self.assertEqual(normalize_phone("0054 9 11 5555 1234"), "+5491155551234")
        self.assertEqual(normalize_phone("(11) 98765-4321", default_region="BR"), "+5511987654321")

    def test_invalid_numbers(self):
        for raw in (None, "", "   ", "abc", "12"):
            with self.subTest(raw=raw):
                self.assertIsNone(normalize_phone(raw))


class TemplateUtilsTests(SimpleTestCase):
    def test_render_without_html_escaping(self):
        out = render_message("Hola {{ patientName }} & {{ clinicName }}", {"patientName": "O'Brien", "clinicName": "A&B"})
        self.assertEqual(out, "Hola O'Brien & A&B")

    def test_missing_variable_renders_empty(self):
        self.assertEqual(render_message("[{{ nada }}]", {}), "[]")


class DateFormatTests(SimpleTestCase):
    def test_spanish_weekday_in_local_time(self):
        value = datetime(2025, 3, 10, 2, 30, tzinfo=UTC)  # domingo 23:30 em Buenos Aires
        self.assertEqual(format_date_es(value), "domingo, 09/03/2025")
        self.assertEqual(format_time(value), "23:30")
