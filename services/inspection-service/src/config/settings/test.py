# services/inspection-service/src/config/settings/test.py
"""
Test Settings

Django settings for running tests.
"""

from .base import *  # noqa

# Test mode
DEBUG = False
TESTING = True

# Use in-memory SQLite for faster tests
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    },
}

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

# JWT settings for testing
JWT_SETTINGS = {
    **JWT_SETTINGS,
    'SIGNING_KEY': 'test-secret-key-for-testing-only',
    'VERIFYING_KEY': 'test-secret-key-for-testing-only',
}

# Disable rate limiting in tests
REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []

# Logging - minimal output during tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
}

CORS_ALLOW_ALL_ORIGINS = True
