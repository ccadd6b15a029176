# services/inspection-service/src/apps/core/models/__init__.py
"""
Inspection Service Models

Control definitions, schedules, containers, runs and follow-up records.
"""

from .control_type import FlowType, ControlType, ChecklistTemplate, ChecklistItem
from .schedule import AssetControlSchedule
from .mission import Mission, VgpReport
from .inspection_run import InspectionRun, ItemResult
from .nonconformity import NonConformity, CorrectiveAction

__all__ = [
    'FlowType',
    'ControlType',
    'ChecklistTemplate',
    'ChecklistItem',
    'AssetControlSchedule',
    'Mission',
    'VgpReport',
    'InspectionRun',
    'ItemResult',
    'NonConformity',
    'CorrectiveAction',
]
