from __future__ import annotations

import threading
import time as _time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any

import structlog
from celery.schedules import crontab
from celery.schedules import schedule as interval_schedule
from django.core.cache import caches
from django.core.cache.backends.dummy import DummyCache
from django.core.cache.backends.locmem import LocMemCache
from django.db import close_old_connections
from django.utils import timezone

from notification_engine.adapters.observability.metrics import SCHEDULER_RUN_DURATION, SCHEDULER_RUNS
from notification_engine.core.domain.entities.scheduled_task_entity import ScheduledTaskEntity, TaskCallable
from notification_engine.core.domain.events.events import ScheduledTaskFinishedEvent
from notification_engine.core.domain.events.exceptions import (
    SchedulerTaskError,
    SchedulerUnavailable,
    TaskAlreadyRunningError,
    TaskNotFound,
    ValidationError,
)
from notification_engine.core.domain.repositories.scheduled_task_repository import ScheduledTaskStateRepository
from notification_engine.core.domain.services.event_dispatcher import EventDispatcher
from notification_engine.core.domain.types import TaskRunStatus

logger = structlog.get_logger(__name__)

_PROCESS_LOCAL_CACHES = (LocMemCache, DummyCache)


def next_fire_time(spec: Any, after: datetime) -> datetime:
    """
    Próximo instante estritamente posterior a `after` para o agendamento.

    Aceita `crontab` (avaliado no fuso local), `celery.schedules.schedule`
    ou `timedelta`.
    """
    if isinstance(spec, timedelta):
        return after + spec
    if isinstance(spec, crontab):
        # campos do crontab valem na hora local; "agora" do crontab = `after`
        local_after = timezone.localtime(after)
        cls, args, kwargs = spec.__reduce__()
        bound = cls(*args, **{**kwargs, "nowfun": lambda: local_after})
        start, delta, _ = bound.remaining_delta(local_after)
        return start + delta
    if isinstance(spec, interval_schedule):
        return after + spec.run_every
    raise ValidationError(f"agendamento não suportado: {spec!r}")


def is_process_local(cache) -> bool:
    return isinstance(cache, _PROCESS_LOCAL_CACHES)


class SchedulerService:
    """
    Registro de tarefas periódicas.

    Callable e agendamento vêm do código (iguais em todo processo); toggle,
    próximo disparo e histórico ficam no `state_repo`, de modo que web,
    worker Celery e `run_notification_engine` enxergam o mesmo estado.

    Exclusão mútua por tarefa via `cache.add` no cache compartilhado:
    uma execução manual com a tarefa em andamento é rejeitada com
    `TaskAlreadyRunningError`; um tick que encontra o lock ocupado
    simplesmente pula a tarefa até o próximo tick.
    """

    LOCK_NAMESPACE = "locks:scheduler:task"
    HEARTBEAT_KEY = "scheduler:heartbeat"

    def __init__(  # noqa: PLR0913
        self,
        dispatcher: EventDispatcher,
        state_repo: ScheduledTaskStateRepository,
        *,
        tick_interval: float = 30.0,
        lock_ttl: int = 3600,
        cache=None,
        require_shared_cache: bool = False,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.dispatcher = dispatcher
        self.state_repo = state_repo
        self.tick_interval = tick_interval
        self.lock_ttl = lock_ttl
        self.require_shared_cache = require_shared_cache
        self._cache_override = cache
        self._clock = clock
        self._tasks: dict[str, ScheduledTaskEntity] = {}
        self._registry_lock = threading.RLock()
        self._initialized = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def _cache(self):
        return self._cache_override if self._cache_override is not None else caches["default"]

    def _ensure_shared_cache(self) -> None:
        if self.require_shared_cache and is_process_local(self._cache):
            raise SchedulerUnavailable(
                f"cache '{type(self._cache).__name__}' é local ao processo; configure REDIS_URL ou o cache em banco"
            )

    # ───────────────────────── registro ─────────────────────────

    def register(
        self,
        name: str,
        func: TaskCallable,
        schedule: Any,
        *,
        description: str = "",
        enabled: bool = True,
    ) -> ScheduledTaskEntity:
        task = ScheduledTaskEntity(
            name=name, func=func, schedule=schedule, description=description, enabled=enabled
        )
        with self._registry_lock:
            if name in self._tasks:
                raise ValidationError(f"tarefa já registrada: {name}")
            self._tasks[name] = task
        logger.debug("scheduler.task_registered", task=name, schedule=task.schedule_description())
        return task

    def _registered(self) -> list[ScheduledTaskEntity]:
        with self._registry_lock:
            return list(self._tasks.values())

    def get_task(self, name: str) -> ScheduledTaskEntity:
        with self._registry_lock:
            task = self._tasks.get(name)
        if task is None:
            raise TaskNotFound(name)
        self._sync(task)
        return task

    # ───────────────────────── estado compartilhado ─────────────────────────

    def _lock_key(self, name: str) -> str:
        return f"{self.LOCK_NAMESPACE}:{name}"

    def _sync(self, task: ScheduledTaskEntity, state: dict[str, Any] | None = None) -> None:
        if state is None:
            state = self.state_repo.load(task.name, default_enabled=task.default_enabled)
        task.apply_state(state)
        task.running = self._cache.get(self._lock_key(task.name)) is not None

    def _persist(self, task: ScheduledTaskEntity, *fields: str) -> None:
        self.state_repo.save(task.name, **task.state_fields(*fields))

    def _beat(self, now: datetime) -> None:
        self._cache.set(self.HEARTBEAT_KEY, now.isoformat(), int(self.tick_interval * 3) + 1)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, now: datetime | None = None) -> None:
        """
        Agenda o primeiro disparo das tarefas ainda sem `next_run_at`.
        Um `next_run_at` já persistido é mantido (reinício do processo).
        """
        now = now or self._clock()
        for task in self._registered():
            self._sync(task)
            if task.next_run_at is None:
                task.next_run_at = next_fire_time(task.schedule, now)
                self._persist(task, "next_run_at")
        with self._registry_lock:
            self._initialized = True
        self._beat(now)
        logger.info("scheduler.initialized", tasks=list(self._tasks))

    # ───────────────────────── execução ─────────────────────────

    @contextmanager
    def _task_lock(self, name: str) -> Iterator[bool]:
        key = self._lock_key(name)
        acquired = self._cache.add(key, str(_time.time()), self.lock_ttl)
        try:
            yield acquired
        finally:
            if acquired:
                self._cache.delete(key)

    def tick(self, now: datetime | None = None) -> dict[str, str]:
        """
        Uma passada pelo registro. Retorna `{tarefa: resultado}` apenas
        para as tarefas tocadas neste tick.
        """
        now = now or self._clock()
        self._ensure_shared_cache()
        if not self._initialized:
            self.initialize(now)
        self._beat(now)

        results: dict[str, str] = {}
        for task in self._registered():
            self._sync(task)
            if not task.enabled:
                task.last_run_status = TaskRunStatus.SKIPPED
                if task.is_due(now):
                    task.next_run_at = next_fire_time(task.schedule, now)
                self._persist(task, "last_run_status", "next_run_at")
                results[task.name] = TaskRunStatus.SKIPPED.value
                continue
            if not task.is_due(now):
                continue

            with self._task_lock(task.name) as acquired:
                if not acquired:
                    logger.info("scheduler.task_busy", task=task.name)
                    results[task.name] = "busy"
                    continue
                # outro processo pode ter rodado a tarefa entre a leitura e o lock
                self._sync(task)
                if not (task.enabled and task.is_due(now)):
                    continue
                task.next_run_at = next_fire_time(task.schedule, now)
                status = self._run(task, now, trigger="tick")
            results[task.name] = status.value
        return results

    def run_task_manually(self, name: str) -> dict[str, Any]:
        self._ensure_shared_cache()
        task = self.get_task(name)
        with self._task_lock(name) as acquired:
            if not acquired:
                raise TaskAlreadyRunningError(name)
            self._sync(task)
            self._run(task, self._clock(), trigger="manual")
        task.running = False
        return task.to_public_dict()

    def _run(self, task: ScheduledTaskEntity, now: datetime, *, trigger: str) -> TaskRunStatus:
        """Executa a tarefa com o lock já adquirido e persiste o resultado."""
        start = _time.perf_counter()
        logger.info("scheduler.task_started", task=task.name, trigger=trigger)
        try:
            summary = task.func()
        except Exception as exc:
            err = SchedulerTaskError(task.name, exc)
            logger.error("scheduler.task_failed", task=task.name, trigger=trigger, error=str(err), exc_info=True)
            status = TaskRunStatus.ERROR
            task.last_error = str(exc) or exc.__class__.__name__
            task.last_run_summary = None
        else:
            status = TaskRunStatus.OK
            task.last_error = None
            task.last_run_summary = summary if isinstance(summary, dict) else None

        duration = _time.perf_counter() - start
        task.last_run_at = now
        task.last_run_status = status
        task.last_duration_seconds = round(duration, 3)
        task.run_count += 1
        self._persist(
            task,
            "next_run_at",
            "last_run_at",
            "last_run_status",
            "last_error",
            "last_run_summary",
            "last_duration_seconds",
            "run_count",
        )

        SCHEDULER_RUNS.labels(task.name, status.value).inc()
        SCHEDULER_RUN_DURATION.labels(task.name).observe(duration)
        logger.info("scheduler.task_finished", task=task.name, status=status.value, duration=f"{duration:.3f}s")
        self.dispatcher.dispatch(
            ScheduledTaskFinishedEvent(task_name=task.name, status=status.value, duration_seconds=duration)
        )
        return status

    # ───────────────────────── controle / consulta ─────────────────────────

    def toggle_task(self, name: str, enabled: bool) -> bool:
        with self._registry_lock:
            task = self._tasks.get(name)
        if task is None:
            return False
        task.enabled = enabled
        self._persist(task, "enabled")
        logger.info("scheduler.task_toggled", task=name, enabled=enabled)
        return True

    def get_tasks_status(self) -> list[dict[str, Any]]:
        tasks = self._registered()
        states = self.state_repo.load_many([t.name for t in tasks])
        public = []
        for task in tasks:
            if task.name in states:
                self._sync(task, states[task.name])
            else:
                task.running = self._cache.get(self._lock_key(task.name)) is not None
            public.append(task.to_public_dict())
        return public

    def get_scheduler_stats(self) -> dict[str, Any]:
        tasks = self.get_tasks_status()
        last_tick_at = self._cache.get(self.HEARTBEAT_KEY)
        return {
            # algum processo (motor ou worker) fez tick recentemente
            "initialized": self._initialized or last_tick_at is not None,
            "last_tick_at": last_tick_at,
            "shared_cache": not is_process_local(self._cache),
            "local_loop_running": self.is_running,
            "tick_interval_seconds": self.tick_interval,
            "total_tasks": len(tasks),
            "enabled_tasks": sum(1 for t in tasks if t["enabled"]),
            "running_tasks": sum(1 for t in tasks if t["running"]),
        }

    # ───────────────────────── ciclo de vida ─────────────────────────

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._ensure_shared_cache()
        if not self._initialized:
            self.initialize()
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="notification-scheduler", daemon=True)
        self._thread.start()
        logger.info("scheduler.started", tick_interval=self.tick_interval)

    def _loop(self) -> None:
        while not self._stop.wait(self.tick_interval):
            close_old_connections()
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler.tick_failed")
            finally:
                close_old_connections()

    def shutdown(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.tick_interval)
            self._thread = None
        with self._registry_lock:
            was_initialized, self._initialized = self._initialized, False
        if was_initialized:
            self._cache.delete(self.HEARTBEAT_KEY)
        logger.info("scheduler.stopped")
