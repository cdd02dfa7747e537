from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import assert_never

import backoff
import httpx
import structlog
from django.utils import timezone

from notification_engine.adapters.notifiers.rate_limiter import SlidingWindowRateLimiter
from notification_engine.adapters.observability.metrics import SEND_LATENCY, SEND_OUTCOME
from notification_engine.core.application.dtos.outbound_message_dto import OutboundMessageDTO
from notification_engine.core.domain.entities.channel_status_entity import ChannelStatusEntity
from notification_engine.core.domain.entities.delivery_result import (
    Delivered,
    DeliveryResult,
    PermanentFailure,
    TransientFailure,
)
from notification_engine.core.domain.types import NotificationChannel

logger = structlog.get_logger(__name__)

# 408/429 vêm como 4xx mas são recuperáveis
_RETRYABLE_CLIENT_STATUSES = {HTTPStatus.REQUEST_TIMEOUT, HTTPStatus.TOO_MANY_REQUESTS}


def classify_http_error(exc: httpx.HTTPStatusError, detail: str | None = None) -> DeliveryResult:
    """4xx → permanente (exceto 408/429); 5xx e demais → transitório."""
    code = exc.response.status_code
    reason = f"HTTP {code}: {detail or exc.response.text[:300]}"
    if HTTPStatus.BAD_REQUEST <= code < HTTPStatus.INTERNAL_SERVER_ERROR and code not in _RETRYABLE_CLIENT_STATUSES:
        return PermanentFailure(reason)
    return TransientFailure(reason)


class BaseNotifier(ABC):
    """
    Adaptador de canal.

    Subclasses implementam `_deliver` (envio de fato) e `_probe`
    (verificação leve de conectividade). `send` nunca levanta exceção:
    todo resultado é classificado em `Delivered`, `TransientFailure`
    ou `PermanentFailure`.
    """
    DEFAULT_TIMEOUT = 10

    def __init__(
        self,
        provider: str,
        channel: NotificationChannel,
        *,
        enabled: bool = True,
        rate_limit_per_minute: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.provider = provider
        self.channel  = channel
        self.timeout  = timeout or self.DEFAULT_TIMEOUT
        self._enabled = enabled
        self.rate_limit_per_minute = rate_limit_per_minute
        self.rate_limiter = (
            SlidingWindowRateLimiter(f"{provider}:{channel.value}", rate_limit_per_minute, 60.0)
            if rate_limit_per_minute
            else None
        )
        self._state_lock = threading.Lock()
        self._healthy = False
        self._last_health_check_at = None
        self._last_error: str | None = None

    # ------------------------------------------------------------------
    # Porta
    # ------------------------------------------------------------------
    @abstractmethod
    def is_configured(self) -> bool:
        """Credenciais mínimas presentes?"""
        ...

    def is_enabled(self) -> bool:
        return self._enabled and self.is_configured()

    def send(self, message: OutboundMessageDTO) -> DeliveryResult:
        start = time.perf_counter()
        try:
            result = self._deliver(message)
        except Exception as exc:
            logger.exception("notifier.unexpected_error", provider=self.provider, channel=self.channel.value)
            result = TransientFailure(f"erro inesperado no adaptador: {exc}")
        finally:
            SEND_LATENCY.labels(self.provider, self.channel.value).observe(time.perf_counter() - start)

        match result:
            case Delivered():
                outcome = "delivered"
            case TransientFailure(reason=reason):
                outcome = "transient"
                self._remember_error(reason)
            case PermanentFailure():
                outcome = "permanent"
            case _:
                assert_never(result)
        SEND_OUTCOME.labels(self.provider, self.channel.value, outcome).inc()
        return result

    def health_check(self) -> ChannelStatusEntity:
        """Probe com timeout limitado; nunca propaga exceção."""
        healthy, error = False, None
        if not self.is_configured():
            error = "canal não configurado"
        elif not self._enabled:
            error = "canal desabilitado"
        else:
            try:
                self._probe()
                healthy = True
            except Exception as exc:
                error = str(exc) or exc.__class__.__name__
                logger.warning("notifier.health_check_failed", provider=self.provider, error=error)

        with self._state_lock:
            self._healthy = healthy
            self._last_health_check_at = timezone.now()
            self._last_error = error
        return self.status()

    def status(self) -> ChannelStatusEntity:
        """Último estado conhecido, sem novo probe."""
        with self._state_lock:
            return ChannelStatusEntity(
                channel=self.channel,
                provider=self.provider,
                enabled=self.is_enabled(),
                configured=self.is_configured(),
                healthy=self._healthy,
                last_health_check_at=self._last_health_check_at,
                last_error=self._last_error,
                rate_limit_per_minute=self.rate_limit_per_minute,
            )

    def fetch_delivery_status(self, provider_message_id: str) -> DeliveryResult | None:
        """
        Consulta o status real da mensagem no provedor.
        None = ainda sem confirmação (ou canal sem rastreio).
        """
        return None

    # ------------------------------------------------------------------
    # Implementação por provedor
    # ------------------------------------------------------------------
    @abstractmethod
    def _deliver(self, message: OutboundMessageDTO) -> DeliveryResult:
        ...

    @abstractmethod
    def _probe(self) -> None:
        ...

    # ------------------------------------------------------------------
    # utilitários
    # ------------------------------------------------------------------
    def _remember_error(self, error: str) -> None:
        with self._state_lock:
            self._last_error = error


def _unsafe_to_repeat(exc: httpx.TransportError) -> bool:
    """Só GET é repetido após falha de transporte; demais métodos apenas se a conexão nem abriu."""
    return exc.request.method != "GET" and not isinstance(exc, httpx.ConnectError)


class HttpNotifier(BaseNotifier):
    """Base para provedores HTTP (httpx com retry curto em falhas de transporte)."""

    def __init__(self, *args, transport: httpx.BaseTransport | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._client = httpx.Client(timeout=self.timeout, transport=transport)

    @backoff.on_exception(backoff.expo, httpx.TransportError, max_tries=2, jitter=None, giveup=_unsafe_to_repeat)
    def _request(self, method: str, url: str, **kw) -> httpx.Response:
        resp = self._client.request(method, url, **kw)
        if resp.status_code >= HTTPStatus.BAD_REQUEST:
            raise httpx.HTTPStatusError("Bad status", request=resp.request, response=resp)
        return resp

    def close(self) -> None:
        self._client.close()
