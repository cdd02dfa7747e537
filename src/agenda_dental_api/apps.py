from django.apps import AppConfig


class AgendaDentalConfig(AppConfig):
    name = "agenda_dental_api"
    verbose_name = "Agenda Dental API"

    def ready(self):
        from django.conf import settings

        # ─── DI container do motor de notificações ──────────────────
        from notification_engine.adapters.config.composition_root import setup_di_container_from_settings

        setup_di_container_from_settings(settings)
