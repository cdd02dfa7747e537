from __future__ import annotations

from typing import Final

import httpx
import structlog

from notification_engine.adapters.notifiers.base import HttpNotifier, classify_http_error
from notification_engine.core.application.dtos.outbound_message_dto import OutboundMessageDTO
from notification_engine.core.domain.entities.delivery_result import (
    Delivered,
    DeliveryResult,
    PermanentFailure,
    TransientFailure,
)
from notification_engine.core.domain.types import NotificationChannel
from notification_engine.core.utils.phone_utils import normalize_phone

log = structlog.get_logger(__name__)


class TwilioWhatsapp(HttpNotifier):
    """
    Adapter para envio de mensagens WhatsApp via Twilio Messages API.

    POST {base}/Accounts/{sid}/Messages.json (form-encoded, basic auth)
    com `From`/`To` no formato `whatsapp:+E164`.
    """

    API_BASE: Final[str] = "https://api.twilio.com/2010-04-01"
    CONFIRMED_STATUSES: Final[frozenset[str]] = frozenset({"delivered", "read"})
    FAILED_STATUSES: Final[frozenset[str]] = frozenset({"failed", "undelivered"})

    def __init__(  # noqa: PLR0913
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        *,
        default_region: str = "AR",
        api_base: str | None = None,
        status_callback_url: str | None = None,
        enabled: bool = True,
        rate_limit_per_minute: int | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(
            "twilio",
            NotificationChannel.WHATSAPP,
            enabled=enabled,
            rate_limit_per_minute=rate_limit_per_minute,
            timeout=timeout,
            transport=transport,
        )
        self._account_sid = (account_sid or "").strip()
        self._auth_token = (auth_token or "").strip()
        self._from_number = (from_number or "").strip()
        self._default_region = default_region
        self._api_base = (api_base or self.API_BASE).rstrip("/")
        self._status_callback_url = status_callback_url

    # ------------------------------------------------------------------
    # implementação da PORTA
    # ------------------------------------------------------------------
    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._from_number)

    def _deliver(self, message: OutboundMessageDTO) -> DeliveryResult:
        to = normalize_phone(message.recipient, self._default_region)
        if not to:
            return PermanentFailure(f"número de telefone inválido: {message.recipient!r}")

        payload = {
            "From": self._whatsapp_address(self._from_number),
            "To": self._whatsapp_address(to),
            "Body": message.body,
        }
        if self._status_callback_url:
            payload["StatusCallback"] = self._status_callback_url

        try:
            resp = self._request(
                "POST",
                f"{self._api_base}/Accounts/{self._account_sid}/Messages.json",
                data=payload,
                auth=(self._account_sid, self._auth_token),
            )
        except httpx.HTTPStatusError as exc:
            result = classify_http_error(exc, self._error_detail(exc.response))
            log.warning("whatsapp.rejected", provider=self.provider, to=to, reason=result.reason)
            return result
        except httpx.TransportError as exc:
            log.warning("whatsapp.transport_error", provider=self.provider, to=to, error=str(exc))
            return TransientFailure(f"falha de rede: {exc.__class__.__name__}: {exc}")

        body = self._json(resp)
        sid = body.get("sid")
        if sid is None:
            log.warning("whatsapp.unparseable_response", provider=self.provider, to=to, status_code=resp.status_code)
        status = (body.get("status") or "").lower()
        log.info("whatsapp.sent", provider=self.provider, to=to, sid=sid, status=status)
        return Delivered(provider_message_id=sid, confirmed=status in self.CONFIRMED_STATUSES)

    def _probe(self) -> None:
        self._request(
            "GET",
            f"{self._api_base}/Accounts/{self._account_sid}.json",
            auth=(self._account_sid, self._auth_token),
        )

    def fetch_delivery_status(self, provider_message_id: str) -> DeliveryResult | None:
        try:
            resp = self._request(
                "GET",
                f"{self._api_base}/Accounts/{self._account_sid}/Messages/{provider_message_id}.json",
                auth=(self._account_sid, self._auth_token),
            )
        except httpx.HTTPError as exc:
            log.warning("whatsapp.status_lookup_failed", sid=provider_message_id, error=str(exc))
            return None

        body = self._json(resp)
        status = (body.get("status") or "").lower()
        if status in self.CONFIRMED_STATUSES:
            return Delivered(provider_message_id=provider_message_id, confirmed=True)
        if status in self.FAILED_STATUSES:
            code = body.get("error_code")
            return PermanentFailure(f"provedor reportou '{status}' (código {code}): {body.get('error_message') or ''}".strip())
        return None

    # ------------------------------------------------------------------
    # utilitário interno
    # ------------------------------------------------------------------
    @staticmethod
    def _whatsapp_address(number: str) -> str:
        return number if number.startswith("whatsapp:") else f"whatsapp:{number}"

    @staticmethod
    def _json(resp: httpx.Response) -> dict:
        """Corpo JSON como dict; {} quando o provedor devolve outra coisa."""
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @classmethod
    def _error_detail(cls, resp: httpx.Response) -> str:
        body = cls._json(resp)
        if body:
            return f"{body.get('code')} {body.get('message')}"
        return resp.text[:300]
