"""
Django settings for the coaching project.

Values come from environment variables; a .env file in the project root
is loaded first when present.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_int(name, default):
    value = os.getenv(name)
    return int(value) if value else default


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-dev-key-change-me')

DEBUG = env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'scheduling',
]

MIDDLEWARE = [
    'scheduling.middleware.RequestLoggingMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'coaching.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'coaching.wsgi.application'

if os.getenv('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('POSTGRES_DB'),
            'USER': os.getenv('POSTGRES_USER', 'postgres'),
            'PASSWORD': os.getenv('POSTGRES_PASSWORD', ''),
            'HOST': os.getenv('POSTGRES_HOST', 'localhost'),
            'PORT': os.getenv('POSTGRES_PORT', '5432'),
            'CONN_MAX_AGE': env_int('POSTGRES_CONN_MAX_AGE', 0),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Europe/Paris')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

REST_FRAMEWORK = {
    'EXCEPTION_HANDLER': 'scheduling.exceptions.api_exception_handler',
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
        'rest_framework.renderers.BrowsableAPIRenderer',
    ],
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
}

# Scheduling
SLOT_GENERATION_HORIZON_DAYS = env_int('SLOT_GENERATION_HORIZON_DAYS', 14)

# Background jobs (ARQ)
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
REDIS_CONN_TIMEOUT = env_int('REDIS_CONN_TIMEOUT', 2)
REDIS_CONN_RETRIES = env_int('REDIS_CONN_RETRIES', 1)
ARQ_MAX_JOBS = env_int('ARQ_MAX_JOBS', 10)
ARQ_JOB_TIMEOUT = env_int('ARQ_JOB_TIMEOUT', 300)

# Booking notifications
STUDIO_NAME = os.getenv('STUDIO_NAME', 'Melring Coaching')
BOOKING_OWNER_EMAIL = os.getenv('BOOKING_OWNER_EMAIL', 'contact@melring-coaching.fr')
BOOKING_NOTIFICATIONS_ENABLED = env_bool('BOOKING_NOTIFICATIONS_ENABLED', True)

EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'localhost')
EMAIL_PORT = env_int('EMAIL_PORT', 465)
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_SSL = env_bool('EMAIL_USE_SSL', True)
EMAIL_USE_TLS = env_bool('EMAIL_USE_TLS', False)
EMAIL_TIMEOUT = env_int('EMAIL_TIMEOUT', 30)
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', f'"{STUDIO_NAME}" <{BOOKING_OWNER_EMAIL}>')

EMAIL_RETRY_ATTEMPTS = env_int('EMAIL_RETRY_ATTEMPTS', 3)
EMAIL_RETRY_WAIT_MULTIPLIER = float(os.getenv('EMAIL_RETRY_WAIT_MULTIPLIER', '1'))

NOTIFICATION_EMAIL_PROVIDERS = [
    {
        'name': 'primary',
        'host': EMAIL_HOST,
        'port': EMAIL_PORT,
        'username': EMAIL_HOST_USER,
        'password': EMAIL_HOST_PASSWORD,
        'use_ssl': EMAIL_USE_SSL,
        'use_tls': EMAIL_USE_TLS,
        'timeout': EMAIL_TIMEOUT,
        'from_email': DEFAULT_FROM_EMAIL,
    },
]

if os.getenv('BACKUP_EMAIL_HOST'):
    NOTIFICATION_EMAIL_PROVIDERS.append({
        'name': 'backup',
        'host': os.getenv('BACKUP_EMAIL_HOST'),
        'port': env_int('BACKUP_EMAIL_PORT', 587),
        'username': os.getenv('BACKUP_EMAIL_HOST_USER', ''),
        'password': os.getenv('BACKUP_EMAIL_HOST_PASSWORD', ''),
        'use_ssl': env_bool('BACKUP_EMAIL_USE_SSL', False),
        'use_tls': env_bool('BACKUP_EMAIL_USE_TLS', True),
        'timeout': env_int('EMAIL_TIMEOUT', 30),
        'from_email': os.getenv('BACKUP_DEFAULT_FROM_EMAIL', DEFAULT_FROM_EMAIL),
    })

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.getenv('LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
    },
}
