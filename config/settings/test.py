"""Test settings.

File-backed SQLite so that concurrent tests can open several
connections; the Kaspi gateway is replaced by a scripted fake.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'test_db.sqlite3',  # noqa: F405
        'TEST': {'NAME': BASE_DIR / 'test_db.sqlite3'},  # noqa: F405
        'OPTIONS': {
            'timeout': 20,
            'transaction_mode': 'IMMEDIATE',
        },
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

RESERVATIONS = {
    **RESERVATIONS,  # noqa: F405
    'PLATFORM_FEES': [],
}

PAYMENT_GATEWAY = {
    **PAYMENT_GATEWAY,  # noqa: F405
    'BACKEND': 'apps.finances.testing.ScriptedGateway',
    'SECRET_KEY': 'test-webhook-secret',
}

LOGGING['root']['level'] = 'CRITICAL'  # noqa: F405
LOGGING['loggers'] = {}  # noqa: F405
