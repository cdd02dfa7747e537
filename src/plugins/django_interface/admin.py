"""
Admin site registry
-------------------
Registra os modelos da agenda e do Job Store de forma dinâmica.
"""

import structlog
from django.contrib import admin as django_admin

from . import models

logger = structlog.get_logger(__name__)

# ╭──────────────────────────────────────────────╮
# │ Configuração de cada ModelAdmin             │
# ╰──────────────────────────────────────────────╯
MODEL_ADMIN_REGISTRY: dict[type[models.models.Model], dict] = {
    # 1. Agenda
    models.Patient: dict(
        list_display=("first_name", "last_name", "phone", "email"),
        search_fields=("first_name", "last_name", "email", "phone"),
    ),
    models.Professional: dict(
        list_display=("first_name", "last_name", "specialty", "is_active"),
        list_filter=("is_active",),
    ),
    models.TreatmentType: dict(
        list_display=("name", "duration_minutes"),
        search_fields=("name",),
    ),
    models.Appointment: dict(
        list_display=("patient", "professional", "start_time", "status"),
        list_filter=("status", "professional"),
        date_hierarchy="start_time",
    ),
    # 2. Configuração / Templates
    models.SystemConfig: dict(
        list_display=("key", "value", "updated_at"),
        search_fields=("key",),
    ),
    models.MessageTemplate: dict(
        list_display=("category", "channel", "is_active", "updated_at"),
        list_filter=("category", "channel", "is_active"),
        search_fields=("body",),
    ),
    # 3. Job Store
    models.NotificationJob: dict(
        list_display=("type", "channel", "recipient", "status", "attempts", "next_attempt_at"),
        list_filter=("status", "channel", "type"),
        search_fields=("recipient", "provider_message_id"),
        readonly_fields=("version", "provider_message_id", "sent_at", "delivered_at"),
    ),
    # 4. Agendador
    models.ScheduledTaskState: dict(
        list_display=("name", "enabled", "last_run_status", "last_run_at", "next_run_at", "run_count"),
        list_filter=("enabled", "last_run_status"),
        readonly_fields=("last_run_at", "last_run_status", "last_error", "last_run_summary", "run_count"),
    ),
}

# ╭──────────────────────────────────────────────╮
# │ Registro dinâmico                           │
# ╰──────────────────────────────────────────────╯
for model, opts in MODEL_ADMIN_REGISTRY.items():
    admin_class = type(f"{model.__name__}Admin", (django_admin.ModelAdmin,), opts)
    django_admin.site.register(model, admin_class)
    logger.debug("Registered model in admin", model=model.__name__)
