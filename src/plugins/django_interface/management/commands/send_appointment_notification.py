from django.core.management.base import BaseCommand, CommandError

from notification_engine.adapters.config.composition_root import get_control_service
from notification_engine.core.domain.events.exceptions import NotificationError
from notification_engine.core.domain.types import NotificationType


class Command(BaseCommand):
    help = "Enfileira manualmente uma notificação para um turno."

    def add_arguments(self, parser):
        parser.add_argument(
            "--appointment-id",
            required=True,
            help="UUID do turno (campo Appointment.id)",
        )
        parser.add_argument(
            "--type",
            required=True,
            choices=[t.value.lower() for t in NotificationType],
            help="Tipo de notificação",
        )
        parser.add_argument(
            "--message",
            help="Texto livre (obrigatório para o tipo custom)",
        )
        parser.add_argument(
            "--reminder",
            action="store_true",
            default=False,
            help="Agenda o lembrete (start − antecedência) em vez de enviar já",
        )

    def handle(self, *args, **opts):
        service = get_control_service()
        try:
            if opts["reminder"]:
                result = service.schedule_appointment_reminders(opts["appointment_id"])
            else:
                result = service.send_appointment_notification(
                    opts["appointment_id"], opts["type"], opts.get("message")
                )
        except NotificationError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(self.style.SUCCESS(f"Jobs criados: {result['created']}"))
        for job in result["jobs"]:
            self.stdout.write(f"  {job['id']} {job['channel']} → {job['recipient']} ({job['next_attempt_at']})")
