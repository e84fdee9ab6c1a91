"""
Development settings.
"""
import logging
import os

from .base import *  # noqa: F401,F403

DEBUG = True

ALLOWED_HOSTS = ["*"]

SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

if not ENCRYPTION_KEY:  # noqa: F405
    from cryptography.fernet import Fernet

    # Throwaway key: encrypted values do not survive a restart
    ENCRYPTION_KEY = Fernet.generate_key().decode()
    logging.getLogger('core').warning("ENCRYPTION_KEY not set, using a temporary development key")

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

CORS_ALLOWED_ORIGINS = [
    "http://localhost:3000",  # Next.js development
    "http://localhost:5173",  # Vite development
]

if os.getenv("LOG_SQL"):
    LOGGING['loggers']['django.db.backends'] = {  # noqa: F405
        'handlers': ['console'],
        'level': 'DEBUG',
        'propagate': False,
    }
