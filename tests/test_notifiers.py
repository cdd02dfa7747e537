"""
Adaptadores de canal: classificação de resultados (Twilio via
httpx.MockTransport, SMTP via backend locmem) e limite de taxa.
"""
from __future__ import annotations

import smtplib
from unittest.mock import patch

import httpx
from django.core import mail
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase

from notification_engine.adapters.notifiers.email.smtp import SmtpEmail
from notification_engine.adapters.notifiers.rate_limiter import SlidingWindowRateLimiter
from notification_engine.adapters.notifiers.whatsapp.twilio import TwilioWhatsapp
from notification_engine.core.application.dtos.outbound_message_dto import OutboundMessageDTO
from notification_engine.core.domain.entities.delivery_result import Delivered, PermanentFailure, TransientFailure
from notification_engine.core.domain.types import NotificationChannel

LOCMEM = "django.core.mail.backends.locmem.EmailBackend"


def whatsapp_message(recipient: str = "+5491155551234") -> OutboundMessageDTO:
    return OutboundMessageDTO(channel=NotificationChannel.WHATSAPP, recipient=recipient, body="Hola")


class TwilioWhatsappTests(SimpleTestCase):
    def build(self, handler, **kw) -> TwilioWhatsapp:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        notifier = TwilioWhatsapp("AC123", "token", "+14155238886", transport=httpx.MockTransport(_record), **kw)
        self.addCleanup(notifier.close)
        return notifier

    def test_send_success(self):
        notifier = self.build(lambda r: httpx.Response(201, json={"sid": "SM1", "status": "queued"}))

        result = notifier.send(whatsapp_message("011 5555-1234"))

        self.assertEqual(result, Delivered(provider_message_id="SM1", confirmed=False))
        request = self.requests[0]
        self.assertEqual(request.url.path, "/2010-04-01/Accounts/AC123/Messages.json")
        body = request.content.decode()
        self.assertIn("To=whatsapp%3A%2B541155551234", body)
        self.assertIn("From=whatsapp%3A%2B14155238886", body)

    def test_client_error_is_permanent(self):
        notifier = self.build(
            lambda r: httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})
        )
        result = notifier.send(whatsapp_message())
        self.assertIsInstance(result, PermanentFailure)
        self.assertIn("21211", result.reason)

    def test_server_error_and_throttling_are_transient(self):
        for code in (503, 429, 408):
            with self.subTest(code=code):
                notifier = self.build(lambda r, code=code: httpx.Response(code, text="busy"))
                self.assertIsInstance(notifier.send(whatsapp_message()), TransientFailure)

    def test_network_error_is_transient(self):
        def _boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        notifier = self.build(_boom)
        self.assertIsInstance(notifier.send(whatsapp_message()), TransientFailure)
        # backoff tenta de novo uma vez em falha de transporte
        self.assertEqual(len(self.requests), 2)

    def test_read_timeout_on_send_is_not_repeated(self):
        # a mensagem pode ter sido aceita: repetir o POST duplicaria o envio
        def _slow(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        notifier = self.build(_slow)
        result = notifier.send(whatsapp_message())

        self.assertIsInstance(result, TransientFailure)
        self.assertIn("ReadTimeout", result.reason)
        self.assertEqual(len(self.requests), 1)

    def test_status_lookup_repeats_after_read_timeout(self):
        def _flaky(request):
            if len(self.requests) == 1:
                raise httpx.ReadTimeout("read timed out", request=request)
            return httpx.Response(200, json={"status": "delivered"})

        notifier = self.build(_flaky)

        self.assertEqual(notifier.fetch_delivery_status("SM1"), Delivered(provider_message_id="SM1", confirmed=True))
        self.assertEqual(len(self.requests), 2)

    def test_non_json_client_error_is_still_permanent(self):
        notifier = self.build(
            lambda r: httpx.Response(
                400, content=b"<html>Bad Request</html>", headers={"content-type": "application/json"}
            )
        )
        result = notifier.send(whatsapp_message())
        self.assertIsInstance(result, PermanentFailure)
        self.assertIn("Bad Request", result.reason)

    def test_non_json_success_is_delivered_without_sid(self):
        notifier = self.build(lambda r: httpx.Response(201, text="Created"))
        self.assertEqual(notifier.send(whatsapp_message()), Delivered(provider_message_id=None, confirmed=False))

    def test_non_json_status_lookup_is_unknown(self):
        notifier = self.build(lambda r: httpx.Response(200, text="<html>maintenance</html>"))
        self.assertIsNone(notifier.fetch_delivery_status("SM1"))

    def test_invalid_phone_is_permanent_without_request(self):
        notifier = self.build(lambda r: httpx.Response(201, json={"sid": "SM1"}))
        self.assertIsInstance(notifier.send(whatsapp_message("12")), PermanentFailure)
        self.assertEqual(self.requests, [])

    def test_unconfigured_is_disabled(self):
        notifier = TwilioWhatsapp("", "", "")
        self.addCleanup(notifier.close)
        self.assertFalse(notifier.is_enabled())
        status = notifier.health_check()
        self.assertFalse(status.healthy)
        self.assertEqual(status.last_error, "canal não configurado")

    def test_health_check_probe(self):
        notifier = self.build(lambda r: httpx.Response(200, json={"status": "active"}))
        self.assertTrue(notifier.health_check().healthy)
        self.assertEqual(self.requests[0].url.path, "/2010-04-01/Accounts/AC123.json")

    def test_fetch_delivery_status(self):
        statuses = {"SM1": "read", "SM2": "undelivered", "SM3": "sent"}
        notifier = self.build(
            lambda r: httpx.Response(200, json={"status": statuses[r.url.path.rsplit("/", 1)[-1][:-5]]})
        )
        self.assertEqual(notifier.fetch_delivery_status("SM1"), Delivered(provider_message_id="SM1", confirmed=True))
        self.assertIsInstance(notifier.fetch_delivery_status("SM2"), PermanentFailure)
        self.assertIsNone(notifier.fetch_delivery_status("SM3"))


class SmtpEmailTests(SimpleTestCase):
    def build(self, **kw) -> SmtpEmail:
        return SmtpEmail("turnos@clinica.com", backend=LOCMEM, **kw)

    def message(self, recipient="maria@example.com") -> OutboundMessageDTO:
        return OutboundMessageDTO(
            channel=NotificationChannel.EMAIL, recipient=recipient, body="Tu turno", subject="Confirmación"
        )

    def test_send_via_locmem(self):
        result = self.build().send(self.message())

        self.assertIsInstance(result, Delivered)
        self.assertFalse(result.confirmed)
        self.assertEqual(len(mail.outbox), 1)
        sent = mail.outbox[0]
        self.assertEqual(sent.to, ["maria@example.com"])
        self.assertEqual(sent.subject, "Confirmación")
        self.assertEqual(sent.extra_headers["Message-ID"], result.provider_message_id)

    def test_malformed_address_is_permanent(self):
        self.assertIsInstance(self.build().send(self.message("no-es-email")), PermanentFailure)
        self.assertEqual(mail.outbox, [])

    def test_smtp_errors_are_classified(self):
        cases = [
            (smtplib.SMTPRecipientsRefused({"maria@example.com": (550, b"no such user")}), PermanentFailure),
            (smtplib.SMTPRecipientsRefused({"maria@example.com": (452, b"mailbox full")}), TransientFailure),
            (smtplib.SMTPRecipientsRefused({"maria@example.com": (450, b"greylisted")}), TransientFailure),
            (smtplib.SMTPSenderRefused(451, b"try later", "turnos@clinica.com"), TransientFailure),
            (smtplib.SMTPSenderRefused(553, b"not allowed", "turnos@clinica.com"), PermanentFailure),
            (smtplib.SMTPDataError(554, b"rejected"), PermanentFailure),
            (smtplib.SMTPDataError(451, b"try later"), TransientFailure),
            (smtplib.SMTPServerDisconnected("gone"), TransientFailure),
            (TimeoutError("timed out"), TransientFailure),
        ]
        for exc, expected in cases:
            with self.subTest(exc=type(exc).__name__), patch(
                "django.core.mail.EmailMessage.send", side_effect=exc
            ):
                self.assertIsInstance(self.build().send(self.message()), expected)

    def test_configuration(self):
        self.assertTrue(self.build().is_configured())
        self.assertFalse(SmtpEmail("turnos@clinica.com").is_configured())
        self.assertFalse(self.build(enabled=False).is_enabled())


class RateLimiterTests(TestCase):
    def setUp(self):
        cache.clear()
        # início exato de uma janela de 60s
        self.now = [600.0]

    def build(self, key="twilio:whatsapp", max_requests=2) -> SlidingWindowRateLimiter:
        return SlidingWindowRateLimiter(key, max_requests, 60.0, clock=lambda: self.now[0])

    def test_sliding_window(self):
        limiter = self.build()

        self.assertTrue(limiter.try_acquire())
        self.now[0] = 610.0
        self.assertTrue(limiter.try_acquire())
        self.assertFalse(limiter.try_acquire())
        self.assertEqual(limiter.retry_after(), 50.0)

        # janela seguinte: os 2 envios anteriores ainda pesam por inteiro
        self.now[0] = 660.0
        self.assertFalse(limiter.try_acquire())

        # metade da janela anterior já saiu da conta
        self.now[0] = 690.0
        self.assertTrue(limiter.try_acquire())
        self.assertEqual(limiter.current_count, 2)
        self.assertFalse(limiter.try_acquire())

    def test_cap_is_shared_between_instances(self):
        # web, worker e motor montam cada um seu adaptador; o teto é um só
        first, second = self.build(), self.build()

        self.assertTrue(first.try_acquire())
        self.assertTrue(second.try_acquire())
        self.assertFalse(first.try_acquire())
        self.assertFalse(second.try_acquire())
        self.assertEqual(second.current_count, 2)

    def test_keys_are_isolated_per_provider(self):
        whatsapp, email = self.build(max_requests=1), self.build("smtp:email", max_requests=1)

        self.assertTrue(whatsapp.try_acquire())
        self.assertTrue(email.try_acquire())
        self.assertFalse(whatsapp.try_acquire())

    def test_invalid_capacity(self):
        with self.assertRaises(ValueError):
            SlidingWindowRateLimiter("twilio:whatsapp", 0)
