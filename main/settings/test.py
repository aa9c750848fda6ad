import os

from .base import *

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# Run against PostgreSQL when a database is provided, needed for the row locking tests
if os.getenv("POSTGRES_DB"):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv("POSTGRES_DB"),
            'USER': os.getenv("POSTGRES_USER", "eventcommerce"),
            'PASSWORD': os.getenv("POSTGRES_PASSWORD", "eventcommerce"),
            "HOST": os.getenv("DB_HOST", "localhost"),
            'PORT': os.getenv("DB_PORT", "5432"),
        }
    }

    worker = os.getenv("PYTEST_XDIST_WORKER")
    if worker:
        DATABASES["default"]["NAME"] = f"{DATABASES['default']['NAME']}_{worker}"

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'eventcommerce-test',
    }
}

DEBUG = False
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EVENTCOMMERCE_APPROVER_EMAILS = ['approver@test.it']

EVENTCOMMERCE_CURRENCY_SYMBOL = ''

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARN',
    },
}
