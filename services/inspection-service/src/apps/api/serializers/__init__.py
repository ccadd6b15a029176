# services/inspection-service/src/apps/api/serializers/__init__.py
"""
Inspection Service API Serializers
"""

from .control_type import (
    ControlTypeSerializer,
    ControlTypeCreateSerializer,
    ControlTypeUpdateSerializer,
    ChecklistItemSerializer,
    ChecklistTemplateSerializer,
    ChecklistTemplateDetailSerializer,
)
from .schedule import (
    AssetControlScheduleSerializer,
    ScheduleSeedSerializer,
    DueEntrySerializer,
    DueQuerySerializer,
)
from .inspection_run import (
    ItemResultSerializer,
    InspectionRunListSerializer,
    InspectionRunDetailSerializer,
    RunStartSerializer,
    ItemResultInputSerializer,
    RunSubmitSerializer,
    RunValidateSerializer,
    CommentAmendSerializer,
    RunHeaderSerializer,
    SubmissionResultSerializer,
    ValidationResultSerializer,
)
from .nonconformity import (
    NonConformitySerializer,
    NonConformityCreateSerializer,
    NonConformityUpdateSerializer,
    StatusTransitionSerializer,
    CorrectiveActionSerializer,
    CorrectiveActionCreateSerializer,
    CorrectiveActionUpdateSerializer,
)
from .mission import (
    MissionSerializer,
    MissionCreateSerializer,
    MissionTransitionSerializer,
    VgpReportSerializer,
    VgpReportCreateSerializer,
    VgpReportFinalizeSerializer,
)

__all__ = [
    'ControlTypeSerializer',
    'ControlTypeCreateSerializer',
    'ControlTypeUpdateSerializer',
    'ChecklistItemSerializer',
    'ChecklistTemplateSerializer',
    'ChecklistTemplateDetailSerializer',
    'AssetControlScheduleSerializer',
    'ScheduleSeedSerializer',
    'DueEntrySerializer',
    'DueQuerySerializer',
    'ItemResultSerializer',
    'InspectionRunListSerializer',
    'InspectionRunDetailSerializer',
    'RunStartSerializer',
    'ItemResultInputSerializer',
    'RunSubmitSerializer',
    'RunValidateSerializer',
    'CommentAmendSerializer',
    'RunHeaderSerializer',
    'SubmissionResultSerializer',
    'ValidationResultSerializer',
    'NonConformitySerializer',
    'NonConformityCreateSerializer',
    'NonConformityUpdateSerializer',
    'StatusTransitionSerializer',
    'CorrectiveActionSerializer',
    'CorrectiveActionCreateSerializer',
    'CorrectiveActionUpdateSerializer',
    'MissionSerializer',
    'MissionCreateSerializer',
    'MissionTransitionSerializer',
    'VgpReportSerializer',
    'VgpReportCreateSerializer',
    'VgpReportFinalizeSerializer',
]
