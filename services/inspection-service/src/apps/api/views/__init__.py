# services/inspection-service/src/apps/api/views/__init__.py
"""
Inspection Service API Views
"""

from .control_type import ControlTypeViewSet, ChecklistTemplateViewSet
from .schedule import ScheduleViewSet
from .inspection_run import InspectionRunViewSet
from .nonconformity import NonConformityViewSet, CorrectiveActionViewSet
from .mission import MissionViewSet, VgpReportViewSet

__all__ = [
    'ControlTypeViewSet',
    'ChecklistTemplateViewSet',
    'ScheduleViewSet',
    'InspectionRunViewSet',
    'NonConformityViewSet',
    'CorrectiveActionViewSet',
    'MissionViewSet',
    'VgpReportViewSet',
]
