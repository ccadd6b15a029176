# services/inspection-service/src/tests/test_imports.py
"""
Import order tests for the shared library and the engine services.

Each case runs in a fresh interpreter so that modules already loaded by the
test session cannot hide a circular import.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest


SRC_DIR = Path(__file__).resolve().parents[1]
REPO_ROOT = SRC_DIR.parents[1]


def run_fresh(code):
    env = dict(os.environ)
    env['DJANGO_SETTINGS_MODULE'] = 'config.settings.test'
    env['PYTHONPATH'] = os.pathsep.join([str(SRC_DIR), str(REPO_ROOT)])
    return subprocess.run(
        [sys.executable, '-c', f"import django; django.setup(); {code}"],
        cwd=str(SRC_DIR),
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )


class TestImportOrder:

    @pytest.mark.parametrize('module', [
        'shared.common.permissions',
        'shared.common.authentication',
        'apps.core.services.authorization',
        'apps.core.services',
        'apps.api.urls',
    ])
    def test_module_imports_first(self, module):
        completed = run_fresh(f"import {module}")
        assert completed.returncode == 0, completed.stderr

    def test_default_permission_resolves(self):
        completed = run_fresh(
            "from rest_framework.settings import api_settings; "
            "import shared.common.permissions as p; "
            "assert api_settings.DEFAULT_PERMISSION_CLASSES == [p.IsAuthenticated]"
        )
        assert completed.returncode == 0, completed.stderr

