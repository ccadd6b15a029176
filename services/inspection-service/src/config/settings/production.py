# services/inspection-service/src/config/settings/production.py
"""
Production settings for Inspection Service
"""

from .base import *  # noqa

DEBUG = False

# Security settings
SECURE_SSL_REDIRECT = os.environ.get('SECURE_SSL_REDIRECT', 'true').lower() == 'true'
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_BROWSER_XSS_FILTER = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

LOGGING['root']['level'] = os.environ.get('LOG_LEVEL', 'INFO')
LOGGING['loggers']['apps']['level'] = os.environ.get('LOG_LEVEL', 'INFO')
