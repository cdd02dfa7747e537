import signal
import threading

import structlog
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from notification_engine.adapters.config.composition_root import (
    setup_di_container_from_settings,
    shutdown_container,
)
from notification_engine.core.domain.events.exceptions import SchedulerUnavailable

logger = structlog.get_logger(__name__)


class Command(BaseCommand):
    """
    Processo em primeiro plano: motor de fila + agendador em threads próprias.

    Alternativa ao Celery beat. Encerra com SIGINT/SIGTERM aguardando os
    envios em andamento.
    """
    help = "Inicia o motor de fila e o agendador de tarefas até receber SIGINT/SIGTERM."

    def add_arguments(self, parser):
        parser.add_argument(
            "--no-scheduler",
            action="store_true",
            default=False,
            help="Roda apenas o motor de fila (sem tarefas agendadas)",
        )

    def handle(self, *args, **opts):
        container = setup_di_container_from_settings(settings)
        stop = threading.Event()

        def _request_stop(signum, frame):
            logger.info("engine.stop_requested", signal=signal.Signals(signum).name)
            stop.set()

        signal.signal(signal.SIGINT, _request_stop)
        signal.signal(signal.SIGTERM, _request_stop)

        if not opts["no_scheduler"]:
            try:
                container.scheduler().start()
            except SchedulerUnavailable as exc:
                shutdown_container(container)
                raise CommandError(str(exc)) from exc
        container.queue_engine().start()

        self.stdout.write(self.style.SUCCESS("Motor de notificações em execução (Ctrl+C para parar)."))
        try:
            stop.wait()
        finally:
            shutdown_container(container)
            self.stdout.write(self.style.SUCCESS("Motor de notificações encerrado."))
