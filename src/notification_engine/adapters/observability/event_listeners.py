"""
Listeners de eventos de domínio que alimentam as métricas Prometheus.
"""
from notification_engine.adapters.observability.metrics import JOB_TRANSITIONS
from notification_engine.core.domain.events.events import (
    NotificationFailedEvent,
    NotificationQueuedEvent,
    NotificationResentEvent,
    NotificationRetryScheduledEvent,
    NotificationSentEvent,
)
from notification_engine.core.domain.services.event_dispatcher import EventDispatcher
from notification_engine.core.domain.types import NotificationStatus


def on_queued(event: NotificationQueuedEvent) -> None:
    JOB_TRANSITIONS.labels(event.channel, NotificationStatus.PENDING.value).inc()


def on_sent(event: NotificationSentEvent) -> None:
    status = NotificationStatus.DELIVERED if event.confirmed else NotificationStatus.SENT
    JOB_TRANSITIONS.labels(event.channel, status.value).inc()


def on_retry(event: NotificationRetryScheduledEvent) -> None:
    JOB_TRANSITIONS.labels(event.channel, "RETRY").inc()


def on_failed(event: NotificationFailedEvent) -> None:
    JOB_TRANSITIONS.labels(event.channel, event.status).inc()


def on_resent(event: NotificationResentEvent) -> None:
    JOB_TRANSITIONS.labels("any", "RESENT").inc()


def register_metrics_listeners(dispatcher: EventDispatcher) -> None:
    dispatcher.subscribe(NotificationQueuedEvent, on_queued)
    dispatcher.subscribe(NotificationSentEvent, on_sent)
    dispatcher.subscribe(NotificationRetryScheduledEvent, on_retry)
    dispatcher.subscribe(NotificationFailedEvent, on_failed)
    dispatcher.subscribe(NotificationResentEvent, on_resent)
