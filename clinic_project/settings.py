# clinic_project/settings.py
"""
Django settings for the clinic operations project.

Values that differ between environments are read from environment variables;
everything else is a sensible default for local development and tests.
"""
import os
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-local-development-key')

DEBUG = os.environ.get('DJANGO_DEBUG', 'false').lower() in ('true', '1', 'yes', 'on')

ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]


# Application definition

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Local apps
    'core',
    'users',
    'patients',
    'appointments',
    'billing',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'clinic_project.urls'

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

WSGI_APPLICATION = 'clinic_project.wsgi.application'


# Database

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('DATABASE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

AUTH_USER_MODEL = 'users.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LOGIN_URL = '/admin/login/'


# Internationalization
# All appointment dates and times are clinic-local wall-clock values.

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('CLINIC_TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True


# Static files

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Appointment & billing engine defaults
# Overridable at runtime through core.SystemSetting (see initialize_settings)

STANDARD_SESSION_RATE = Decimal(os.environ.get('STANDARD_SESSION_RATE', '1200.00'))
CONFLICT_TOLERANCE_MINUTES = int(os.environ.get('CONFLICT_TOLERANCE_MINUTES', '30'))
SLOT_DURATION_MINUTES = 30
DYES_BILLING_THRESHOLD = int(os.environ.get('DYES_BILLING_THRESHOLD', '500'))
DYES_ANNUAL_SESSION_CAP = int(os.environ.get('DYES_ANNUAL_SESSION_CAP', '500'))


# Logging

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
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'core': {
            'handlers': ['console'],
            'level': os.environ.get('CLINIC_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'appointments': {
            'handlers': ['console'],
            'level': os.environ.get('CLINIC_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'patients': {
            'handlers': ['console'],
            'level': os.environ.get('CLINIC_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'billing': {
            'handlers': ['console'],
            'level': os.environ.get('CLINIC_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
