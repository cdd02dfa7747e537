import os

from django.core.wsgi import get_wsgi_application

from config.structlog_config import configure_logging

configure_logging()
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# O container de DI é montado em AgendaDentalConfig.ready()
application = get_wsgi_application()
