# services/inspection-service/src/config/settings/development.py
"""
Development settings for Inspection Service
"""

from .base import *  # noqa

DEBUG = True

ALLOWED_HOSTS = ['*']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.environ.get('DB_NAME', 'inspection_db'),
        'USER': os.environ.get('DB_USER', 'inspection_service'),
        'PASSWORD': os.environ.get('DB_PASSWORD', 'inspection_service_password'),
        'HOST': os.environ.get('DB_HOST', 'localhost'),
        'PORT': os.environ.get('DB_PORT', '5432'),
    }
}

# CORS - Allow all in development
CORS_ALLOW_ALL_ORIGINS = True

LOGGING['root']['level'] = 'DEBUG'

# Disable throttling in development
REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []
