# services/inspection-service/src/apps/core/conf.py
"""
Workflow engine settings with their defaults.
"""

from django.conf import settings

DEFAULTS = {
    'DEFAULT_SEVERITY': 3,
    'ACTION_DUE_DAYS': 30,
    'DUE_SOON_DEFAULT_DAYS': 30,
}


def engine_setting(name: str):
    return getattr(settings, 'INSPECTION_ENGINE', {}).get(name, DEFAULTS[name])
