# services/inspection-service/src/apps/core/services/exceptions.py
"""
Inspection Service Exceptions

Every error carries one of the workflow error codes: VALIDATION_ERROR,
FORBIDDEN, INVALID_TRANSITION, NOT_FOUND or CONFLICT.
"""

from typing import Optional, Dict, Any


class InspectionServiceError(Exception):
    """Base exception for inspection service errors."""

    error_code = 'INSPECTION_SERVICE_ERROR'

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            'error': self.error_code,
            'message': self.message,
            'details': self.details,
        }


class InspectionValidationError(InspectionServiceError):
    """Input or completeness check failed."""

    error_code = 'VALIDATION_ERROR'

    def __init__(
        self,
        message: str,
        errors: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.errors = errors or {}
        super().__init__(message, details=details or {'errors': self.errors})


class PermissionDeniedError(InspectionServiceError):
    """Caller role may not perform the operation."""

    error_code = 'FORBIDDEN'

    def __init__(self, message: str = None, role: str = None):
        super().__init__(
            message or f"Role {role} is not allowed to perform this operation",
            details={'role': role}
        )


class InvalidTransitionError(InspectionServiceError):
    """Target status is not reachable from the current status."""

    error_code = 'INVALID_TRANSITION'

    def __init__(self, current_state: str, target_state: str, message: str = None):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            message or f"Cannot transition from {current_state} to {target_state}",
            details={'current_state': current_state, 'target_state': target_state}
        )


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(InspectionServiceError):
    """Referenced entity does not exist."""

    error_code = 'NOT_FOUND'
    entity = 'Entity'

    def __init__(self, entity_id=None, message: str = None):
        super().__init__(
            message or f"{self.entity} not found: {entity_id}",
            details={'id': str(entity_id) if entity_id is not None else None}
        )


class RunNotFoundError(NotFoundError):
    entity = 'Inspection run'


class NonConformityNotFoundError(NotFoundError):
    entity = 'Non-conformity'


class CorrectiveActionNotFoundError(NotFoundError):
    entity = 'Corrective action'


class MissionNotFoundError(NotFoundError):
    entity = 'Mission'


class ReportNotFoundError(NotFoundError):
    entity = 'VGP report'


class ControlTypeNotFoundError(NotFoundError):
    entity = 'Control type'


class TemplateNotFoundError(NotFoundError):
    entity = 'Checklist template'


class ChecklistItemNotFoundError(NotFoundError):
    entity = 'Checklist item'


# =============================================================================
# CONFLICT
# =============================================================================

class ConflictError(InspectionServiceError):
    """Operation clashes with the current state of the entity."""

    error_code = 'CONFLICT'


class RunAlreadySubmittedError(ConflictError):
    """Run was already submitted or validated."""

    def __init__(self, run_id=None, status: str = None):
        super().__init__(
            f"Inspection run {run_id} is already {status}",
            details={'run_id': str(run_id), 'status': status}
        )
