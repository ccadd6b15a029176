# services/inspection-service/src/apps/core/services/control_type_service.py
"""
Control Type Service

Control types are created, edited and deactivated; never deleted.
"""

import uuid
import logging
from typing import List

from django.db import IntegrityError, transaction

from apps.core.models import ChecklistTemplate, ControlType

from .authorization import Caller, ensure_can_mutate, ensure_can_validate
from .exceptions import (
    ConflictError,
    ControlTypeNotFoundError,
    InspectionValidationError,
    TemplateNotFoundError,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('label', 'description', 'periodicity_days')


class ControlTypeService:
    """Service for control types and their checklists."""

    def get_control_type(self, control_type_id: uuid.UUID) -> ControlType:
        try:
            return ControlType.objects.get(id=control_type_id)
        except ControlType.DoesNotExist:
            raise ControlTypeNotFoundError(control_type_id)

    def list_control_types(self, active: bool = None) -> List[ControlType]:
        queryset = ControlType.objects.all()
        if active is not None:
            queryset = queryset.filter(active=active)
        return list(queryset.order_by('code'))

    @staticmethod
    def _validate_periodicity(periodicity_days) -> None:
        if isinstance(periodicity_days, bool) or not isinstance(periodicity_days, int) or periodicity_days < 0:
            raise InspectionValidationError(
                'Periodicity must be zero or a positive number of days',
                errors={'periodicity_days': ['Must be an integer >= 0']}
            )

    @transaction.atomic
    def create_control_type(
        self,
        caller: Caller,
        code: str,
        label: str,
        periodicity_days: int = 0,
        description: str = ''
    ) -> ControlType:
        ensure_can_validate(caller)
        self._validate_periodicity(periodicity_days)

        code = (code or '').strip().upper()
        if not code or not (label or '').strip():
            raise InspectionValidationError(
                'Code and label are required',
                errors={'code': ['This field is required'], 'label': ['This field is required']}
            )
        if ControlType.objects.filter(code=code).exists():
            raise ConflictError(f"Control type {code} already exists", details={'code': code})

        try:
            control_type = ControlType.objects.create(
                code=code,
                label=label.strip(),
                description=description or '',
                periodicity_days=periodicity_days,
            )
        except IntegrityError:
            raise ConflictError(f"Control type {code} already exists", details={'code': code})

        logger.info(f"Created control type {code} ({periodicity_days} days)")
        return control_type

    @transaction.atomic
    def update_control_type(self, caller: Caller, control_type_id: uuid.UUID, **fields) -> ControlType:
        """Label, description and periodicity are editable; the code is not."""
        ensure_can_validate(caller)
        control_type = self.get_control_type(control_type_id)

        if 'code' in fields and fields['code'] != control_type.code:
            raise InspectionValidationError(
                'The code of a control type cannot change',
                errors={'code': ['Immutable after creation']}
            )
        fields.pop('code', None)

        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise InspectionValidationError(
                f"Field(s) not editable: {', '.join(unknown)}",
                errors={name: ['Not editable'] for name in unknown}
            )
        if 'periodicity_days' in fields:
            self._validate_periodicity(fields['periodicity_days'])

        for name, value in fields.items():
            setattr(control_type, name, value)
        control_type.save(update_fields=list(fields) + ['updated_at'])
        return control_type

    @transaction.atomic
    def deactivate(self, caller: Caller, control_type_id: uuid.UUID) -> ControlType:
        ensure_can_validate(caller)
        control_type = self.get_control_type(control_type_id)
        if control_type.active:
            control_type.deactivate()
            logger.info(f"Deactivated control type {control_type.code}")
        return control_type

    # ==========================================================================
    # Checklists
    # ==========================================================================

    def list_templates(self, control_type_id: uuid.UUID = None) -> List[ChecklistTemplate]:
        queryset = ChecklistTemplate.objects.select_related('control_type')
        if control_type_id:
            queryset = queryset.filter(control_type_id=control_type_id)
        return list(queryset)

    def get_template(self, template_id: uuid.UUID) -> ChecklistTemplate:
        try:
            return ChecklistTemplate.objects.prefetch_related('items').get(id=template_id)
        except ChecklistTemplate.DoesNotExist:
            raise TemplateNotFoundError(template_id)
