"""
Templates padrão das mensagens (usados quando não há `MessageTemplate`
ativo no banco para a categoria/canal).

Variáveis disponíveis: patientName, date, time, professional, treatment,
clinicName, clinicAddress, clinicPhone, message, subject.
"""
from __future__ import annotations

from notification_engine.core.domain.types import NotificationChannel, NotificationType

TemplateSpec = dict[str, str | None]

_WHATSAPP, _EMAIL = NotificationChannel.WHATSAPP, NotificationChannel.EMAIL

DEFAULT_TEMPLATES: dict[tuple[NotificationType, NotificationChannel], TemplateSpec] = {
    # ─── Confirmação ──────────────────────────────────────────
    (NotificationType.CONFIRMATION, _WHATSAPP): {
        "subject": None,
        "body": (
            "¡Hola {{ patientName }}! 👋\n\n"
            "Tu turno ha sido confirmado:\n\n"
            "📅 Fecha: {{ date }}\n"
            "🕐 Hora: {{ time }}\n"
            "👨‍⚕️ Profesional: {{ professional }}\n"
            "🦷 Tratamiento: {{ treatment }}\n\n"
            "📍 {{ clinicAddress }}\n"
            "📞 {{ clinicPhone }}\n\n"
            "Por favor, llega 10 minutos antes. ¡Te esperamos!\n\n"
            "{{ clinicName }}"
        ),
    },
    (NotificationType.CONFIRMATION, _EMAIL): {
        "subject": "Confirmación de Turno - {{ clinicName }}",
        "body": (
            "Hola {{ patientName }},\n\n"
            "Tu turno ha sido confirmado:\n\n"
            "Fecha: {{ date }}\n"
            "Hora: {{ time }}\n"
            "Profesional: {{ professional }}\n"
            "Tratamiento: {{ treatment }}\n\n"
            "Dirección: {{ clinicAddress }}\n"
            "Teléfono: {{ clinicPhone }}\n\n"
            "Por favor, llega 10 minutos antes de tu cita.\n\n"
            "Saludos,\n{{ clinicName }}"
        ),
    },
    # ─── Lembrete ─────────────────────────────────────────────
    (NotificationType.REMINDER, _WHATSAPP): {
        "subject": None,
        "body": (
            "¡Hola {{ patientName }}! 🔔\n\n"
            "Te recordamos tu turno para MAÑANA:\n\n"
            "📅 {{ date }}\n"
            "🕐 {{ time }}\n"
            "👨‍⚕️ {{ professional }}\n"
            "🦷 {{ treatment }}\n\n"
            "📍 {{ clinicAddress }}\n\n"
            "Por favor confirma tu asistencia respondiendo este mensaje.\n\n"
            "{{ clinicName }}\n"
            "📞 {{ clinicPhone }}"
        ),
    },
    (NotificationType.REMINDER, _EMAIL): {
        "subject": "Recordatorio de Turno - Mañana - {{ clinicName }}",
        "body": (
            "Hola {{ patientName }},\n\n"
            "Te recordamos que tienes un turno programado para MAÑANA:\n\n"
            "Fecha: {{ date }}\n"
            "Hora: {{ time }}\n"
            "Profesional: {{ professional }}\n"
            "Tratamiento: {{ treatment }}\n\n"
            "Dirección: {{ clinicAddress }}\n"
            "Teléfono: {{ clinicPhone }}\n\n"
            "Por favor, confirma tu asistencia.\n\n"
            "Saludos,\n{{ clinicName }}"
        ),
    },
    # ─── Cancelamento ─────────────────────────────────────────
    (NotificationType.CANCELLATION, _WHATSAPP): {
        "subject": None,
        "body": (
            "Hola {{ patientName }},\n\n"
            "Tu turno del {{ date }} a las {{ time }} con {{ professional }} ha sido cancelado.\n\n"
            "Si deseas reprogramar, contáctanos al {{ clinicPhone }}.\n\n"
            "{{ clinicName }}"
        ),
    },
    (NotificationType.CANCELLATION, _EMAIL): {
        "subject": "Turno Cancelado - {{ clinicName }}",
        "body": (
            "Hola {{ patientName }},\n\n"
            "Te informamos que tu turno ha sido cancelado:\n\n"
            "Fecha: {{ date }}\n"
            "Hora: {{ time }}\n"
            "Profesional: {{ professional }}\n\n"
            "Si deseas reprogramar, contáctanos al {{ clinicPhone }}.\n\n"
            "Saludos,\n{{ clinicName }}"
        ),
    },
    # ─── Reagendamento ────────────────────────────────────────
    (NotificationType.RESCHEDULED, _WHATSAPP): {
        "subject": None,
        "body": (
            "Hola {{ patientName }},\n\n"
            "Tu turno ha sido modificado:\n\n"
            "🔄 NUEVO HORARIO:\n"
            "📅 {{ date }}\n"
            "🕐 {{ time }}\n"
            "👨‍⚕️ {{ professional }}\n"
            "🦷 {{ treatment }}\n\n"
            "📍 {{ clinicAddress }}\n\n"
            "{{ clinicName }}\n"
            "📞 {{ clinicPhone }}"
        ),
    },
    (NotificationType.RESCHEDULED, _EMAIL): {
        "subject": "Turno Modificado - {{ clinicName }}",
        "body": (
            "Hola {{ patientName }},\n\n"
            "Tu turno ha sido modificado:\n\n"
            "NUEVO HORARIO:\n"
            "Fecha: {{ date }}\n"
            "Hora: {{ time }}\n"
            "Profesional: {{ professional }}\n"
            "Tratamiento: {{ treatment }}\n\n"
            "Dirección: {{ clinicAddress }}\n"
            "Teléfono: {{ clinicPhone }}\n\n"
            "Saludos,\n{{ clinicName }}"
        ),
    },
    # ─── Personalizada ────────────────────────────────────────
    (NotificationType.CUSTOM, _WHATSAPP): {
        "subject": None,
        "body": "{{ message }}",
    },
    (NotificationType.CUSTOM, _EMAIL): {
        "subject": "{{ subject }}",
        "body": "{{ message }}",
    },
}

# lunes..domingo (date.weekday())
WEEKDAYS_ES = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
