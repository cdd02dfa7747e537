import os

from celery import Celery
from celery.signals import setup_logging

# Define o módulo de configurações do Django para o Celery.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('agenda_dental_api')

# Configurações com prefixo CELERY_ no settings.py do Django.
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks(['agenda_dental_api'])


@setup_logging.connect
def _configure_structlog(**kwargs):
    from config.structlog_config import configure_logging

    configure_logging()
