from datetime import timedelta
from pathlib import Path

from celery.schedules import crontab
from decouple import Csv, config

# -------------------------------
# Diretórios base
# -------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# -------------------------------
# Segurança e debug
# -------------------------------
SECRET_KEY = config('SECRET_KEY', default='dev-insecure-secret-key')
DEBUG = config('DEBUG', default=False, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1', cast=Csv())

# -------------------------------
# Cookies & CSRF
# -------------------------------
SESSION_COOKIE_SECURE   = config('SESSION_COOKIE_SECURE', default=False, cast=bool) # Desenvolvido para HTTPS
SESSION_COOKIE_HTTPONLY = config('SESSION_COOKIE_HTTPONLY', default=True, cast=bool)
SESSION_COOKIE_SAMESITE = config('SESSION_COOKIE_SAMESITE', default='Lax')
CSRF_COOKIE_SECURE      = config('CSRF_COOKIE_SECURE', default=False, cast=bool) # Desenvolvido para HTTPS
CSRF_TRUSTED_ORIGINS    = config('CSRF_TRUSTED_ORIGINS', default='http://localhost:3000', cast=Csv())
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# -------------------------------
# Celery
# -------------------------------
CELERY_BROKER_URL                 = config("CELERY_BROKER_URL", default="redis://localhost:6379/1")
CELERY_RESULT_BACKEND             = config('CELERY_RESULT_BACKEND', default=None)
CELERY_TASK_ACKS_LATE             = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ALWAYS_EAGER          = config('CELERY_TASK_ALWAYS_EAGER', default=False, cast=bool)
CELERY_ACCEPT_CONTENT             = ["json"]
CELERY_TASK_SERIALIZER            = "json"
CELERY_TASK_DEFAULT_QUEUE         = 'default'
CELERY_TASK_QUEUES = {
    "default":       {"exchange": "default",       "routing_key": "default"},
    "notifications": {"exchange": "notifications", "routing_key": "notifications"},
    "scheduler":     {"exchange": "scheduler",     "routing_key": "scheduler"},
}
CELERY_TASK_ROUTES = {
    "agenda_dental_api.tasks.process_due_notifications": {"queue": "notifications"},
    "agenda_dental_api.tasks.scheduler_tick":            {"queue": "scheduler"},
}

# --- AGENDADOR (CELERY BEAT) ---
# Beat só bate o relógio; a decisão de quais tarefas rodar é do SchedulerService.
CELERY_BEAT_SCHEDULE = {
    'process-due-notifications': {
        'task': 'agenda_dental_api.tasks.process_due_notifications',
        'schedule': config('NOTIFICATION_POLL_INTERVAL_SECONDS', default=5, cast=float),
    },
    'scheduler-tick': {
        'task': 'agenda_dental_api.tasks.scheduler_tick',
        'schedule': config('SCHEDULER_TICK_SECONDS', default=30, cast=float),
    },
}

# -------------------------------
# Redis / Cache (locks do agendador, rate limit dos provedores)
# Precisa ser compartilhado entre web, worker e motor: sem REDIS_URL cai no
# cache em banco (`manage.py createcachetable`).
# -------------------------------
REDIS_URL = config('REDIS_URL', default='')
CACHES = {
    "default": (
        {"BACKEND": "django.core.cache.backends.redis.RedisCache", "LOCATION": REDIS_URL}
        if REDIS_URL
        else {"BACKEND": "django.core.cache.backends.db.DatabaseCache", "LOCATION": "engine_cache"}
    )
}

# -------------------------------
# WhatsApp (Twilio)
# -------------------------------
TWILIO_ACCOUNT_SID          = config('TWILIO_ACCOUNT_SID', default='')
TWILIO_AUTH_TOKEN           = config('TWILIO_AUTH_TOKEN', default='')
TWILIO_WHATSAPP_NUMBER      = config('TWILIO_WHATSAPP_NUMBER', default='')
TWILIO_STATUS_CALLBACK_URL  = config('TWILIO_STATUS_CALLBACK_URL', default='')
WHATSAPP_ENABLED            = config('WHATSAPP_ENABLED', default=True, cast=bool)
WHATSAPP_RATE_LIMIT_PER_MINUTE = config('WHATSAPP_RATE_LIMIT_PER_MINUTE', default=60, cast=int)
PHONE_DEFAULT_REGION        = config('PHONE_DEFAULT_REGION', default='AR')

# -------------------------------
# E-mail (SMTP)
# -------------------------------
EMAIL_BACKEND       = config('EMAIL_BACKEND', default='django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST          = config('EMAIL_HOST', default='')
EMAIL_PORT          = config('EMAIL_PORT', default=587, cast=int)
EMAIL_HOST_USER     = config('EMAIL_HOST_USER', default='')
EMAIL_HOST_PASSWORD = config('EMAIL_HOST_PASSWORD', default='')
EMAIL_USE_TLS       = config('EMAIL_USE_TLS', default=True, cast=bool)
EMAIL_USE_SSL       = config('EMAIL_USE_SSL', default=False, cast=bool)
DEFAULT_FROM_EMAIL  = config('DEFAULT_FROM_EMAIL', default='')
EMAIL_ENABLED       = config('EMAIL_ENABLED', default=True, cast=bool)
EMAIL_RATE_LIMIT_PER_MINUTE = config('EMAIL_RATE_LIMIT_PER_MINUTE', default=100, cast=int)

# -------------------------------
# Motor de notificações
# -------------------------------
NOTIFICATION_AUTO_DISPATCH = config('NOTIFICATION_AUTO_DISPATCH', default=True, cast=bool)
NOTIFICATION_ENGINE = {
    "MAX_ATTEMPTS":              config('NOTIFICATION_MAX_ATTEMPTS', default=3, cast=int),
    "BACKOFF_BASE_SECONDS":      config('NOTIFICATION_BACKOFF_BASE_SECONDS', default=30, cast=float),
    "BACKOFF_CAP_SECONDS":       config('NOTIFICATION_BACKOFF_CAP_SECONDS', default=3600, cast=float),
    "REMINDER_LEAD_HOURS":       config('NOTIFICATION_REMINDER_LEAD_HOURS', default=24, cast=float),
    "RETENTION_DAYS":            config('NOTIFICATION_RETENTION_DAYS', default=7, cast=int),
    "BATCH_SIZE":                config('NOTIFICATION_BATCH_SIZE', default=50, cast=int),
    "WORKER_POOL_SIZE":          config('NOTIFICATION_WORKER_POOL_SIZE', default=4, cast=int),
    "SEND_TIMEOUT_SECONDS":      config('NOTIFICATION_SEND_TIMEOUT_SECONDS', default=15, cast=float),
    "POLL_INTERVAL_SECONDS":     config('NOTIFICATION_POLL_INTERVAL_SECONDS', default=5, cast=float),
    "STALE_PROCESSING_MINUTES":  config('NOTIFICATION_STALE_PROCESSING_MINUTES', default=15, cast=int),
    "CHANNEL_POLICY":            config('NOTIFICATION_CHANNEL_POLICY', default='all'),
    "SCHEDULER_TICK_SECONDS":    config('SCHEDULER_TICK_SECONDS', default=30, cast=float),
    "TASK_LOCK_TTL_SECONDS":     config('SCHEDULER_TASK_LOCK_TTL_SECONDS', default=3600, cast=int),
    "REQUIRE_SHARED_CACHE":      config('SCHEDULER_REQUIRE_SHARED_CACHE', default=True, cast=bool),
    "FAILED_WARNING_THRESHOLD":  config('NOTIFICATION_FAILED_WARNING_THRESHOLD', default=50, cast=int),
    "PENDING_WARNING_THRESHOLD": config('NOTIFICATION_PENDING_WARNING_THRESHOLD', default=100, cast=int),
    "TASK_SCHEDULES": {
        "appointment-reminders": crontab(minute=0),            # de hora em hora
        "daily-cleanup":         crontab(minute=0, hour=2),    # 02:00
        "health-check":          timedelta(minutes=5),
        "delivery-status-sync":  timedelta(minutes=10),
    },
}

# -------------------------------
# Apps, Middleware, URLs
# -------------------------------
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'agenda_dental_api.apps.AgendaDentalConfig',
    'plugins.django_interface.apps.DjangoInterfaceConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'plugins.django_interface.request_middleware.RequestContextMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
]

ROOT_URLCONF = 'agenda_dental_api.urls'
WSGI_APPLICATION = 'agenda_dental_api.wsgi.application'
ASGI_APPLICATION = 'agenda_dental_api.asgi.application'

# -------------------------------
# Templates
# -------------------------------
TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

# -------------------------------
# REST Framework
# -------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
}

# -------------------------------
# Banco de Dados
# -------------------------------
DB_ENGINE = config('DB_ENGINE', default='sqlite')
if DB_ENGINE == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE':   'django.db.backends.postgresql',
            'NAME':     config('DB_NAME'),
            'USER':     config('DB_USER'),
            'PASSWORD': config('DB_PASS'),
            'HOST':     config('DB_HOST', default='localhost'),
            'PORT':     config('DB_PORT', default=5432, cast=int),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME':   config('DB_NAME', default=str(BASE_DIR / 'db.sqlite3')),
        }
    }

# -------------------------------
# Internacionalização
# -------------------------------
LANGUAGE_CODE = 'es-ar'
TIME_ZONE     = config('TIME_ZONE', default='America/Argentina/Buenos_Aires')
USE_I18N      = True
USE_TZ        = True

# -------------------------------
# Arquivos estáticos
# -------------------------------
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
