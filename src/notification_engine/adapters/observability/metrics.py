import os

from django.http import HttpResponse
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    multiprocess,
)

# ───────────────────────────────────────────────
# Adaptadores de canal
# ───────────────────────────────────────────────
SEND_LATENCY = Histogram(
    "notification_send_seconds",
    "Latência do envio ao provedor",
    ["provider", "channel"],
)
SEND_OUTCOME = Counter(
    "notification_send_total",
    "Resultados de envio por canal",
    ["provider", "channel", "outcome"],
)

# ───────────────────────────────────────────────
# Motor de fila
# ───────────────────────────────────────────────
JOB_TRANSITIONS = Counter(
    "notification_job_transitions_total",
    "Transições de estado dos jobs de notificação",
    ["channel", "status"],
)
QUEUE_RUN_DURATION = Histogram(
    "notification_queue_run_seconds",
    "Duração de uma varredura do motor de fila",
)
JOBS_RATE_LIMITED = Counter(
    "notification_jobs_rate_limited_total",
    "Jobs adiados por limite de taxa do canal",
    ["channel"],
)
QUEUE_DEPTH = Gauge(
    "notification_queue_depth",
    "Jobs por status na última coleta de estatísticas",
    ["status"],
)

# ───────────────────────────────────────────────
# Agendador
# ───────────────────────────────────────────────
SCHEDULER_RUNS = Counter(
    "notification_scheduler_runs_total",
    "Execuções de tarefas agendadas",
    ["task", "status"],
)
SCHEDULER_RUN_DURATION = Histogram(
    "notification_scheduler_run_seconds",
    "Duração das tarefas agendadas",
    ["task"],
)


def _registry():
    if os.getenv("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
    return REGISTRY


def metrics(request):
    data = generate_latest(_registry())
    return HttpResponse(data, content_type=CONTENT_TYPE_LATEST)
