"""
Adaptadores de canal falsos com resultados roteirizados.
"""
from __future__ import annotations

import threading
import time
from collections import deque

from notification_engine.adapters.notifiers.base import BaseNotifier
from notification_engine.core.domain.entities.delivery_result import Delivered, DeliveryResult
from notification_engine.core.domain.types import NotificationChannel


class FakeNotifier(BaseNotifier):
    """
    Devolve os resultados de `results` em ordem; quando a lista acaba,
    entrega com sucesso. `block` segura o envio até ser liberado; `delay`
    simula a latência do provedor.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        results: list[DeliveryResult] | None = None,
        *,
        enabled: bool = True,
        rate_limit_per_minute: int | None = None,
        block: threading.Event | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__("fake", channel, enabled=enabled, rate_limit_per_minute=rate_limit_per_minute)
        self.results: deque[DeliveryResult] = deque(results or [])
        self.sent = []
        self.block = block
        self.delay = delay
        self.reachable = True
        self.delivery_statuses: dict[str, DeliveryResult] = {}

    def is_configured(self) -> bool:
        return True

    def _deliver(self, message) -> DeliveryResult:
        if self.block is not None:
            self.block.wait(5)
        if self.delay:
            time.sleep(self.delay)
        self.sent.append(message)
        if self.results:
            return self.results.popleft()
        return Delivered(provider_message_id=f"fake-{len(self.sent)}", confirmed=False)

    def _probe(self) -> None:
        if not self.reachable:
            raise ConnectionError("provedor fake fora do ar")

    def fetch_delivery_status(self, provider_message_id: str) -> DeliveryResult | None:
        return self.delivery_statuses.get(provider_message_id)


def fake_adapters(**kwargs) -> dict[NotificationChannel, FakeNotifier]:
    return {
        NotificationChannel.WHATSAPP: FakeNotifier(NotificationChannel.WHATSAPP, **kwargs),
        NotificationChannel.EMAIL: FakeNotifier(NotificationChannel.EMAIL, **kwargs),
    }
