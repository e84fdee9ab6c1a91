"""
Test settings: in-memory database, local cache, temporary media root.
"""
import tempfile

from cryptography.fernet import Fernet

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = "test-secret-key"

ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'verification-tests',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

ENCRYPTION_KEY = Fernet.generate_key().decode()

MEDIA_ROOT = tempfile.mkdtemp(prefix="verification-media-")

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

SMS_GATEWAY_BACKEND = 'common.services.sms.ConsoleSMSGateway'

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_THROTTLE_CLASSES': [],
    # Views set throttle_classes explicitly; keep the scopes but out of reach
    'DEFAULT_THROTTLE_RATES': {
        'anon': '10000/min',
        'user': '10000/min',
        'auth': '10000/min',
        'otp': '10000/min',
        'otp_verify': '10000/min',
        'verification': '10000/min',
    },
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {'class': 'logging.NullHandler'},
    },
    'root': {'handlers': ['null'], 'level': 'CRITICAL'},
}
