"""
Django settings for main project.
"""

import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'changeme')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ['127.0.0.1', 'localhost', '0.0.0.0']

# Application definition
INSTALLED_APPS = [
    'eventcommerce.apps.EventCommerceConfig',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'phonenumber_field',
]

MIDDLEWARE = []

# Database

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'eventcommerce',
    }
}

# Internationalization

LANGUAGE_CODE = 'en'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = False

DEFAULT_AUTO_FIELD = 'django.db.models.AutoField'

# email

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

DEFAULT_FROM_EMAIL = 'noreply@eventcommerce.local'

# Registration engine

# Cache durations of the batch collection lookups, in seconds
EVENTCOMMERCE_REGISTRATION_MODE_TIMEOUT = 60 * 10
EVENTCOMMERCE_COLLECTION_STATUS_TIMEOUT = 60 * 15

# Registrations can be edited until this many hours before the event, unless the event says otherwise
EVENTCOMMERCE_DEFAULT_MODIFICATION_HOURS = 24

# Addresses notified when a batch collection meets its target or is approved
EVENTCOMMERCE_APPROVER_EMAILS = [
    email.strip() for email in os.getenv('EVENTCOMMERCE_APPROVER_EMAILS', '').split(',') if email.strip()
]

EVENTCOMMERCE_CURRENCY_SYMBOL = '₹'

# phone numbers without prefix are read in this region
PHONENUMBER_DEFAULT_REGION = 'IN'

# Logging configuration
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {module} {funcName} {lineno} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {name} {funcName}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'eventcommerce': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
