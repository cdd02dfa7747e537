from __future__ import annotations

import time
from contextlib import contextmanager

import structlog
from celery import Task, shared_task
from django.conf import settings
from django.core.cache import cache

from notification_engine.adapters.config.composition_root import setup_di_container_from_settings

log = structlog.get_logger(__name__)

# ──────────────────────────────────────────────────────────────────────────
# Constantes de filas e parâmetros
# ──────────────────────────────────────────────────────────────────────────
QUEUE_NOTIFICATIONS = "notifications"
QUEUE_SCHEDULER     = "scheduler"
RUN_LOCK_TTL_SEC    = 10 * 60


# ──────────────────────────────────────────────────────────────────────────
# Base Task com log estruturado de falhas
# ──────────────────────────────────────────────────────────────────────────
class EngineTask(Task):
    """Tarefas periódicas: falhas são logadas e o próximo beat tenta de novo."""

    def before_start(self, task_id, args, kwargs):
        structlog.contextvars.bind_contextvars(task=self.name, task_id=task_id)

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        log.error("task.failed", task=self.name, task_id=task_id, error=str(exc))
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def after_return(self, status, retval, task_id, args, kwargs, einfo):
        structlog.contextvars.clear_contextvars()


# ──────────────────────────────────────────────────────────────────────────
# Lock distribuído (um único worker por varredura)
# ──────────────────────────────────────────────────────────────────────────
@contextmanager
def run_lock(name: str, ttl: int = RUN_LOCK_TTL_SEC):
    key = f"locks:celery:{name}"
    acquired = cache.add(key, str(time.time()), ttl)
    try:
        yield acquired
    finally:
        if acquired:
            cache.delete(key)


def _container():
    return setup_di_container_from_settings(settings)


# ──────────────────────────────────────────────────────────────────────────
# Tarefas
# ──────────────────────────────────────────────────────────────────────────
@shared_task(base=EngineTask, ignore_result=True, queue=QUEUE_NOTIFICATIONS)
def process_due_notifications():
    """Uma varredura do motor de fila (claim → envio → registro)."""
    with run_lock("process_due_notifications") as ok:
        if not ok:
            log.info("queue.run_busy")
            return None
        return _container().queue_engine().run_once()


@shared_task(base=EngineTask, ignore_result=True, queue=QUEUE_SCHEDULER)
def scheduler_tick():
    """Um tick do agendador interno (lembretes, limpeza, saúde, status)."""
    with run_lock("scheduler_tick") as ok:
        if not ok:
            log.info("scheduler.tick_busy")
            return None
        return _container().scheduler().tick()
