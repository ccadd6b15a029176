# services/inspection-service/src/apps/core/services/__init__.py
"""
Inspection Service Business Logic

All services of the compliance workflow engine.
"""

from .exceptions import (
    InspectionServiceError,
    InspectionValidationError,
    PermissionDeniedError,
    InvalidTransitionError,
    NotFoundError,
    RunNotFoundError,
    NonConformityNotFoundError,
    CorrectiveActionNotFoundError,
    MissionNotFoundError,
    ReportNotFoundError,
    ControlTypeNotFoundError,
    TemplateNotFoundError,
    ChecklistItemNotFoundError,
    ConflictError,
    RunAlreadySubmittedError,
)
from .authorization import Caller, ensure_can_mutate, ensure_can_validate
from .schedule_service import ScheduleService, DueEntry, compute_next_due
from .checklist import (
    ValidationWarning,
    find_missing_required,
    ensure_complete,
    derive_conclusion,
    count_open_observations,
)
from .cascade import NonConformityCascade, CascadeResult
from .lifecycle import StatusLifecycle, EntityKind
from .mission_service import MissionService
from .inspection_service import InspectionService, SubmissionResult, ValidationResult
from .vgp_report_service import VgpReportService
from .nonconformity_service import NonConformityService
from .control_type_service import ControlTypeService


__all__ = [
    # Services
    'ScheduleService',
    'NonConformityCascade',
    'StatusLifecycle',
    'MissionService',
    'InspectionService',
    'VgpReportService',
    'NonConformityService',
    'ControlTypeService',

    # Values
    'Caller',
    'DueEntry',
    'CascadeResult',
    'SubmissionResult',
    'ValidationResult',
    'ValidationWarning',
    'EntityKind',

    # Functions
    'compute_next_due',
    'find_missing_required',
    'ensure_complete',
    'derive_conclusion',
    'count_open_observations',
    'ensure_can_mutate',
    'ensure_can_validate',

    # Exceptions
    'InspectionServiceError',
    'InspectionValidationError',
    'PermissionDeniedError',
    'InvalidTransitionError',
    'NotFoundError',
    'RunNotFoundError',
    'NonConformityNotFoundError',
    'CorrectiveActionNotFoundError',
    'MissionNotFoundError',
    'ReportNotFoundError',
    'ControlTypeNotFoundError',
    'TemplateNotFoundError',
    'ChecklistItemNotFoundError',
    'ConflictError',
    'RunAlreadySubmittedError',
]
