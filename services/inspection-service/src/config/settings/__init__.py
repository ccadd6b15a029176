# services/inspection-service/src/config/settings/__init__.py
"""
Settings package: the module is picked from DJANGO_ENV.
"""

import os

env = os.environ.get('DJANGO_ENV', 'development')

if env == 'production':
    from .production import *  # noqa
elif env == 'staging':
    from .production import *  # noqa
elif env == 'test':
    from .test import *  # noqa
else:
    from .development import *  # noqa
