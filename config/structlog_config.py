import logging
import os
import sys

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder

# bibliotecas de transporte que logam cada request em INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "backoff", "celery.beat")


def configure_logging(
    level: str | None = None,
    json_logs: bool | None = None,
) -> None:
    """
    Configura structlog como front-end e o logging da stdlib como saída.

    - `LOG_LEVEL` define o nível quando `level` não é informado.
    - `JSON_LOGS` liga o JSONRenderer (produção); senão ConsoleRenderer colorido.

    Chamar antes de qualquer import que crie loggers (manage.py, wsgi, celery).
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if json_logs is None:
        json_logs = bool(os.getenv("JSON_LOGS", ""))

    # request_id / task vêm de bind_contextvars (middleware, worker)
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared,
            CallsiteParameterAdder(
                parameters=[CallsiteParameter.MODULE, CallsiteParameter.LINENO]
            ),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLevelName(level)))

    logging.captureWarnings(True)
