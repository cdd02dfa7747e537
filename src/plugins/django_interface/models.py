"""
Domínio → ORM

⚑ Agenda (pacientes, profissionais, tratamentos, turnos) é somente-leitura
  para o motor de notificações; o CRUD pertence a outro módulo.
⚑ `NotificationJob` é o Job Store durável: toda transição de estado
  passa por UPDATE condicional em (status, version).
"""

from __future__ import annotations

import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import CheckConstraint, F, Index, Q, UniqueConstraint

from notification_engine.core.domain.types import (
    AppointmentStatus,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
    TaskRunStatus,
)


# ╭──────────────────────────────────────────────╮
# │ 1. Agenda                                    │
# ╰──────────────────────────────────────────────╯
class Patient(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    phone = models.CharField(max_length=32, blank=True, null=True)
    email = models.EmailField(blank=True, null=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "patients"
        ordering = ["last_name", "first_name"]

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Professional(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    specialty = models.CharField(max_length=100, blank=True, null=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "professionals"

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}"


class TreatmentType(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120, unique=True)
    duration_minutes = models.PositiveIntegerField(default=30)

    class Meta:
        db_table = "treatment_types"

    def __str__(self) -> str:
        return self.name


class Appointment(models.Model):
    class Status(models.TextChoices):
        SCHEDULED = AppointmentStatus.SCHEDULED.value, "Agendado"
        CONFIRMED = AppointmentStatus.CONFIRMED.value, "Confirmado"
        COMPLETED = AppointmentStatus.COMPLETED.value, "Concluído"
        CANCELLED = AppointmentStatus.CANCELLED.value, "Cancelado"
        NO_SHOW = AppointmentStatus.NO_SHOW.value, "Não compareceu"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name="appointments")
    professional = models.ForeignKey(Professional, on_delete=models.PROTECT, related_name="appointments")
    treatment_type = models.ForeignKey(TreatmentType, on_delete=models.PROTECT, related_name="appointments")
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SCHEDULED)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "appointments"
        indexes = [
            Index(fields=["start_time", "status"]),
            Index(fields=["patient"]),
        ]

    def __str__(self) -> str:
        return f"{self.patient} @ {self.start_time:%Y-%m-%d %H:%M}"


# ╭──────────────────────────────────────────────╮
# │ 2. Configuração e templates                  │
# ╰──────────────────────────────────────────────╯
class SystemConfig(models.Model):
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.CharField(max_length=255, blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "system_config"

    def __str__(self) -> str:
        return self.key


class MessageTemplate(models.Model):
    class Category(models.TextChoices):
        CONFIRMATION = NotificationType.CONFIRMATION.value, "Confirmação"
        REMINDER = NotificationType.REMINDER.value, "Lembrete"
        CANCELLATION = NotificationType.CANCELLATION.value, "Cancelamento"
        RESCHEDULED = NotificationType.RESCHEDULED.value, "Reagendamento"
        CUSTOM = NotificationType.CUSTOM.value, "Personalizada"

    class Channel(models.TextChoices):
        WHATSAPP = NotificationChannel.WHATSAPP.value, "WhatsApp"
        EMAIL = NotificationChannel.EMAIL.value, "E-mail"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    category = models.CharField(max_length=20, choices=Category.choices)
    channel = models.CharField(max_length=20, choices=Channel.choices)
    subject = models.CharField(max_length=255, blank=True, null=True)
    body = models.TextField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "message_templates"
        constraints = [
            UniqueConstraint(
                fields=["category", "channel"],
                condition=Q(is_active=True),
                name="uq_active_template_per_category_channel",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.category}/{self.channel}"


# ╭──────────────────────────────────────────────╮
# │ 3. Job Store                                 │
# ╰──────────────────────────────────────────────╯
class NotificationJob(models.Model):
    class Channel(models.TextChoices):
        WHATSAPP = NotificationChannel.WHATSAPP.value, "WhatsApp"
        EMAIL = NotificationChannel.EMAIL.value, "E-mail"

    class Type(models.TextChoices):
        CONFIRMATION = NotificationType.CONFIRMATION.value, "Confirmação"
        REMINDER = NotificationType.REMINDER.value, "Lembrete"
        CANCELLATION = NotificationType.CANCELLATION.value, "Cancelamento"
        RESCHEDULED = NotificationType.RESCHEDULED.value, "Reagendamento"
        CUSTOM = NotificationType.CUSTOM.value, "Personalizada"

    class Status(models.TextChoices):
        PENDING = NotificationStatus.PENDING.value, "Pendente"
        PROCESSING = NotificationStatus.PROCESSING.value, "Processando"
        SENT = NotificationStatus.SENT.value, "Enviada"
        DELIVERED = NotificationStatus.DELIVERED.value, "Entregue"
        FAILED = NotificationStatus.FAILED.value, "Falhou"
        DEAD = NotificationStatus.DEAD.value, "Esgotada"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    appointment = models.ForeignKey(
        Appointment,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="notification_jobs",
    )
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name="notification_jobs")
    channel = models.CharField(max_length=20, choices=Channel.choices)
    type = models.CharField(max_length=20, choices=Type.choices)
    recipient = models.CharField(max_length=255)
    subject = models.CharField(max_length=255, blank=True, null=True)
    body = models.TextField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=3)
    next_attempt_at = models.DateTimeField()
    last_error = models.TextField(blank=True, null=True)
    provider_message_id = models.CharField(max_length=255, blank=True, null=True)
    version = models.PositiveIntegerField(default=0)
    sent_at = models.DateTimeField(blank=True, null=True)
    delivered_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "notification_jobs"
        indexes = [
            Index(fields=["status", "next_attempt_at"], name="notif_job_due_idx"),
            Index(fields=["appointment", "type"], name="notif_job_appt_type_idx"),
            Index(fields=["created_at"], name="notif_job_created_idx"),
            Index(fields=["status", "updated_at"], name="notif_job_status_upd_idx"),
        ]
        constraints = [
            CheckConstraint(
                condition=Q(attempts__lte=F("max_attempts")),
                name="ck_notif_job_attempts_le_max",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.type}/{self.channel} → {self.recipient} [{self.status}]"


# ╭──────────────────────────────────────────────╮
# │ 4. Agendador                                 │
# ╰──────────────────────────────────────────────╯
class ScheduledTaskState(models.Model):
    """
    Estado das tarefas periódicas, compartilhado entre processos.

    Callable e agendamento vêm do código; aqui ficam só o toggle e o
    histórico de execução, para que web, worker e motor vejam o mesmo.
    """

    class RunStatus(models.TextChoices):
        OK = TaskRunStatus.OK.value, "OK"
        ERROR = TaskRunStatus.ERROR.value, "Erro"
        SKIPPED = TaskRunStatus.SKIPPED.value, "Pulada"

    name = models.CharField(primary_key=True, max_length=100)
    enabled = models.BooleanField(default=True)
    next_run_at = models.DateTimeField(blank=True, null=True)
    last_run_at = models.DateTimeField(blank=True, null=True)
    last_run_status = models.CharField(max_length=20, choices=RunStatus.choices, blank=True, null=True)
    last_error = models.TextField(blank=True, null=True)
    last_run_summary = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)
    last_duration_seconds = models.FloatField(blank=True, null=True)
    run_count = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "scheduled_task_states"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({'on' if self.enabled else 'off'})"
