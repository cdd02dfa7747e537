"""
Notificações automáticas a partir do ciclo de vida do turno.

- criação           → CONFIRMATION imediata + REMINDER agendado
- status CANCELLED  → CANCELLATION
- start_time mudou  → RESCHEDULED + novo REMINDER

Desligado com `NOTIFICATION_AUTO_DISPATCH=False`. Falhas do motor nunca
impedem o salvamento do turno; ficam no log.
"""
import structlog
from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from notification_engine.adapters.config.composition_root import get_control_service
from notification_engine.core.domain.events.exceptions import NotificationError
from notification_engine.core.domain.types import AppointmentStatus, NotificationType

from .models import Appointment

logger = structlog.get_logger(__name__)


def _auto_dispatch_enabled() -> bool:
    return getattr(settings, "NOTIFICATION_AUTO_DISPATCH", True)


@receiver(pre_save, sender=Appointment)
def capture_previous_appointment_state(sender, instance: Appointment, **kwargs):
    if not _auto_dispatch_enabled() or instance._state.adding:
        return
    previous = sender.objects.filter(pk=instance.pk).values("status", "start_time").first()
    instance._previous_state = previous


def _dispatch(appointment_id, actions) -> None:
    service = get_control_service()
    for name, call in actions:
        try:
            call(service)
        except NotificationError as exc:
            logger.warning(
                "appointment.auto_notification_failed",
                appointment_id=str(appointment_id),
                action=name,
                error=str(exc),
            )


@receiver(post_save, sender=Appointment)
def notify_appointment_change(sender, instance: Appointment, created: bool, **kwargs):
    if not _auto_dispatch_enabled():
        return

    appointment_id = instance.pk
    actions = []
    if created:
        actions.append(("confirmation", lambda s: s.send_appointment_notification(
            appointment_id, NotificationType.CONFIRMATION)))
        actions.append(("reminder", lambda s: s.schedule_appointment_reminders(appointment_id)))
    else:
        previous = getattr(instance, "_previous_state", None)
        if not previous:
            return
        if instance.status != previous["status"] and instance.status == AppointmentStatus.CANCELLED:
            actions.append(("cancellation", lambda s: s.send_appointment_notification(
                appointment_id, NotificationType.CANCELLATION)))
        elif instance.start_time != previous["start_time"] and instance.status in (
            AppointmentStatus.SCHEDULED,
            AppointmentStatus.CONFIRMED,
        ):
            actions.append(("rescheduled", lambda s: s.send_appointment_notification(
                appointment_id, NotificationType.RESCHEDULED)))
            actions.append(("reminder", lambda s: s.schedule_appointment_reminders(appointment_id)))

    if actions:
        transaction.on_commit(lambda: _dispatch(appointment_id, actions))
