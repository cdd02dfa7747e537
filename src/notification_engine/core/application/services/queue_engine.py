from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, timedelta
from typing import Any, assert_never

import structlog
from django.db import close_old_connections
from django.utils import timezone

from notification_engine.adapters.notifiers.base import BaseNotifier
from notification_engine.adapters.observability.metrics import (
    JOBS_RATE_LIMITED,
    QUEUE_DEPTH,
    QUEUE_RUN_DURATION,
)
from notification_engine.core.application.dtos.outbound_message_dto import OutboundMessageDTO
from notification_engine.core.domain.entities.delivery_result import (
    Delivered,
    DeliveryResult,
    PermanentFailure,
    TransientFailure,
)
from notification_engine.core.domain.entities.notification_job_entity import NotificationJobEntity
from notification_engine.core.domain.events.events import (
    DomainEvent,
    NotificationFailedEvent,
    NotificationRetryScheduledEvent,
    NotificationSentEvent,
)
from notification_engine.core.domain.events.exceptions import ValidationError
from notification_engine.core.domain.repositories.notification_job_repository import NotificationJobRepository
from notification_engine.core.domain.services.event_dispatcher import EventDispatcher
from notification_engine.core.domain.types import NotificationChannel, NotificationStatus

logger = structlog.get_logger(__name__)

_MIN_RATE_LIMIT_NUDGE = 1.0


class _TimedSend:
    """Envio submetido ao pool; registra quando um worker de fato o inicia."""

    def __init__(self, adapter: BaseNotifier, message: OutboundMessageDTO) -> None:
        self.adapter = adapter
        self.message = message
        self.started = threading.Event()
        self.started_at: float | None = None

    def __call__(self) -> DeliveryResult:
        self.started_at = time.monotonic()
        self.started.set()
        return self.adapter.send(self.message)


class QueueEngine:
    """
    Fila atrasada sobre o Job Store, ordenada por `next_attempt_at`.

    Fluxo de `run_once`:
        find_due → claim (CAS status+version) → limite de taxa
        → envio no pool → registro do resultado.

    Somente `adapter.send` roda nas threads do pool; toda escrita no
    banco acontece na thread que chamou `run_once`.
    """

    def __init__(  # noqa: PLR0913
        self,
        job_repo: NotificationJobRepository,
        adapters: Mapping[NotificationChannel, BaseNotifier],
        dispatcher: EventDispatcher,
        *,
        batch_size: int = 50,
        pool_size: int = 4,
        send_timeout: float = 15.0,
        backoff_base: float = 30.0,
        backoff_cap: float = 3600.0,
        poll_interval: float = 5.0,
        stale_after: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.job_repo = job_repo
        self.adapters = dict(adapters)
        self.dispatcher = dispatcher
        self.batch_size = batch_size
        self.pool_size = pool_size
        self.send_timeout = send_timeout
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.poll_interval = poll_interval
        self.stale_after = stale_after
        self._clock = clock

        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ───────────────────────── política de retry ─────────────────────────

    def backoff_delay(self, attempts: int) -> timedelta:
        """min(base · 2^attempts, cap), com `attempts` já incrementado."""
        return timedelta(seconds=min(self.backoff_base * (2 ** attempts), self.backoff_cap))

    # ───────────────────────── varredura ─────────────────────────

    def _pool(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.pool_size, thread_name_prefix="notif-send")
            return self._executor

    def run_once(self, now: datetime | None = None) -> dict[str, int]:
        now = now or self._clock()
        summary = dict.fromkeys(
            ("due", "claimed", "sent", "retried", "failed", "dead", "rate_limited", "deferred", "stale"), 0
        )
        start = time.perf_counter()

        due = self.job_repo.find_due(now, self.batch_size)
        summary["due"] = len(due)
        in_flight: list[tuple[NotificationJobEntity, _TimedSend, Future]] = []

        for job in due:
            claimed = self.job_repo.claim(job.id, job.version)
            if claimed is None:
                summary["stale"] += 1
                continue
            summary["claimed"] += 1
            logger.debug("job.claimed", job_id=str(claimed.id), channel=claimed.channel.value)

            adapter = self.adapters.get(claimed.channel)
            if adapter is None or not adapter.is_enabled():
                self._tally(summary, self._record(claimed, TransientFailure("canal desabilitado"), now))
                continue

            limiter = adapter.rate_limiter
            if limiter is not None and not limiter.try_acquire():
                nudge = max(limiter.retry_after(), _MIN_RATE_LIMIT_NUDGE)
                released = self.job_repo.release(claimed, next_attempt_at=now + timedelta(seconds=nudge))
                if released is None:
                    logger.warning("job.release_rejected", job_id=str(claimed.id))
                summary["rate_limited"] += 1
                JOBS_RATE_LIMITED.labels(claimed.channel.value).inc()
                logger.info("job.rate_limited", job_id=str(claimed.id), channel=claimed.channel.value, retry_in=nudge)
                continue

            message = OutboundMessageDTO(
                channel=claimed.channel,
                recipient=claimed.recipient,
                body=claimed.body,
                subject=claimed.subject,
                job_id=claimed.id,
            )
            send = _TimedSend(adapter, message)
            in_flight.append((claimed, send, self._pool().submit(send)))

        for claimed, send, future in in_flight:
            result = self._await(send, future)
            if result is None:
                # nenhum worker livre a tempo: volta à fila sem contar tentativa
                if self.job_repo.release(claimed, next_attempt_at=self._clock()) is None:
                    logger.warning("job.release_rejected", job_id=str(claimed.id))
                summary["deferred"] += 1
                logger.info("job.send_deferred", job_id=str(claimed.id), channel=claimed.channel.value)
                continue
            self._tally(summary, self._record(claimed, result, self._clock()))

        QUEUE_RUN_DURATION.observe(time.perf_counter() - start)
        if summary["due"]:
            logger.info("queue.run_done", **summary)
        return summary

    def _await(self, send: _TimedSend, future: Future) -> DeliveryResult | None:
        """
        Resultado do envio com prazo de `send_timeout` contado a partir do
        início no worker (tempo na fila do pool não conta). None quando o
        envio nem chegou a começar e foi cancelado.
        """
        if not send.started.wait(self.send_timeout):
            if future.cancel():
                return None
            # cancel falhou: o worker acabou de pegar o envio
            send.started.wait()
        try:
            return future.result(timeout=max(0.0, send.started_at + self.send_timeout - time.monotonic()))
        except FutureTimeout:
            # já em andamento no provedor: não há como interromper
            return TransientFailure(f"timeout de envio após {self.send_timeout}s")
        except Exception as exc:
            return TransientFailure(f"erro no worker de envio: {exc}")

    @staticmethod
    def _tally(summary: dict[str, int], outcome: NotificationStatus | None) -> None:
        match outcome:
            case NotificationStatus.SENT | NotificationStatus.DELIVERED:
                summary["sent"] += 1
            case NotificationStatus.PENDING:
                summary["retried"] += 1
            case NotificationStatus.FAILED:
                summary["failed"] += 1
            case NotificationStatus.DEAD:
                summary["dead"] += 1
            case _:
                summary["stale"] += 1

    def _record(self, job: NotificationJobEntity, result: DeliveryResult, now: datetime) -> NotificationStatus | None:
        """Aplica o resultado do envio ao job reivindicado. Retorna o novo status."""
        event: DomainEvent
        match result:
            case Delivered(provider_message_id=provider_message_id, confirmed=confirmed):
                updated = self.job_repo.record_delivered(
                    job, provider_message_id=provider_message_id, confirmed=confirmed, now=now
                )
                event = NotificationSentEvent(
                    job_id=job.id,
                    channel=job.channel.value,
                    provider_message_id=provider_message_id,
                    confirmed=confirmed,
                )
            case TransientFailure(reason=reason):
                attempts = job.attempts + 1
                if attempts < job.max_attempts:
                    next_attempt_at = now + self.backoff_delay(attempts)
                    updated = self.job_repo.record_retry(
                        job, attempts=attempts, next_attempt_at=next_attempt_at, error=reason
                    )
                    event = NotificationRetryScheduledEvent(
                        job_id=job.id,
                        channel=job.channel.value,
                        attempts=attempts,
                        next_attempt_at=next_attempt_at,
                        reason=reason,
                    )
                else:
                    updated = self.job_repo.record_terminal_failure(
                        job, status=NotificationStatus.DEAD, attempts=job.max_attempts, error=reason
                    )
                    event = NotificationFailedEvent(
                        job_id=job.id, channel=job.channel.value, status=NotificationStatus.DEAD.value, reason=reason
                    )
            case PermanentFailure(reason=reason):
                updated = self.job_repo.record_terminal_failure(
                    job,
                    status=NotificationStatus.FAILED,
                    attempts=min(job.attempts + 1, job.max_attempts),
                    error=reason,
                )
                event = NotificationFailedEvent(
                    job_id=job.id, channel=job.channel.value, status=NotificationStatus.FAILED.value, reason=reason
                )
            case _:
                assert_never(result)

        if updated is None:
            logger.warning("job.outcome_discarded", job_id=str(job.id), result=type(result).__name__)
            return None

        log = logger.bind(job_id=str(job.id), channel=job.channel.value, attempts=updated.attempts)
        match updated.status:
            case NotificationStatus.DEAD:
                log.error("job.dead", error=updated.last_error)
            case NotificationStatus.FAILED:
                log.warning("job.failed", error=updated.last_error)
            case NotificationStatus.PENDING:
                log.info("job.retry_scheduled", next_attempt_at=updated.next_attempt_at.isoformat())
            case _:
                log.info("job.sent", status=updated.status.value, provider_message_id=updated.provider_message_id)

        self.dispatcher.dispatch(event)
        return updated.status

    # ───────────────────────── operacional ─────────────────────────

    def get_queue_stats(self) -> dict[str, Any]:
        now = self._clock()
        by_status = self.job_repo.aggregate()["by_status"]
        for status, count in by_status.items():
            QUEUE_DEPTH.labels(status).set(count)
        return {
            **{status.lower(): count for status, count in by_status.items()},
            "total": sum(by_status.values()),
            "throughput": {
                "sent_last_hour": self.job_repo.count_sent_since(now - timedelta(hours=1)),
                "sent_last_24h": self.job_repo.count_sent_since(now - timedelta(hours=24)),
            },
        }

    def get_service_status(self) -> dict[str, Any]:
        store_ok = self.job_repo.ping()
        channels = {channel.value: adapter.status().to_public_dict() for channel, adapter in self.adapters.items()}
        any_enabled = any(c["enabled"] for c in channels.values())
        return {
            "healthy": store_ok and any_enabled,
            "store": {"connected": store_ok},
            "engine": {
                "running": self.is_running,
                "batch_size": self.batch_size,
                "pool_size": self.pool_size,
            },
            "channels": channels,
        }

    def cleanup_failed_jobs(self, days: int) -> int:
        if days < 0:
            raise ValidationError("days deve ser >= 0")
        cutoff = self._clock() - timedelta(days=days)
        removed = self.job_repo.delete_terminal_older_than(cutoff)
        logger.info("queue.cleanup_done", days=days, cutoff=cutoff.isoformat(), removed=removed)
        return removed

    def requeue_stale_jobs(self, older_than: timedelta | None = None) -> int:
        threshold = self._clock() - (older_than or self.stale_after)
        requeued = self.job_repo.requeue_stale_processing(threshold)
        if requeued:
            logger.warning("queue.stale_jobs_requeued", count=requeued, older_than=threshold.isoformat())
        return requeued

    # ───────────────────────── ciclo de vida ─────────────────────────

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self.requeue_stale_jobs()
        self._thread = threading.Thread(target=self._loop, name="notification-queue", daemon=True)
        self._thread.start()
        logger.info("queue.started", poll_interval=self.poll_interval, batch_size=self.batch_size)

    def _loop(self) -> None:
        while not self._stop.is_set():
            close_old_connections()
            try:
                self.run_once()
            except Exception:
                logger.exception("queue.run_failed")
            finally:
                close_old_connections()
            self._stop.wait(self.poll_interval)

    def shutdown(self, wait: bool = True) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.send_timeout + self.poll_interval if wait else 0)
            self._thread = None
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None
        logger.info("queue.stopped")
