# services/inspection-service/src/apps/core/services/nonconformity_service.py
"""
Non-Conformity Service

Manual non-conformities and observations, corrective actions, status
transitions and counters.
"""

import uuid
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Union

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from apps.core.conf import engine_setting
from apps.core.events import InspectionEventPublisher, InspectionEventTypes, event_publisher
from apps.core.models import (
    ChecklistItem, CorrectiveAction, FlowType, InspectionRun, NonConformity
)

from .authorization import Caller, ensure_can_mutate
from .exceptions import (
    ChecklistItemNotFoundError,
    ConflictError,
    CorrectiveActionNotFoundError,
    InspectionValidationError,
    NonConformityNotFoundError,
    RunNotFoundError,
)
from .lifecycle import EntityKind, StatusLifecycle

logger = logging.getLogger(__name__)

EDITABLE_NC_FIELDS = ('title', 'description', 'recommendation', 'severity')
EDITABLE_ACTION_FIELDS = ('description', 'owner_id', 'due_at')


def _validate_severity(severity) -> None:
    if isinstance(severity, bool) or not isinstance(severity, int) or not 1 <= severity <= 5:
        raise InspectionValidationError(
            'Severity must be between 1 and 5',
            errors={'severity': ['Must be an integer between 1 and 5']}
        )


class NonConformityService:
    """
    Service for non-conformities and corrective actions.

    Every status change goes through ``transition_status``.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = None,
        publisher: InspectionEventPublisher = None,
        lifecycle: StatusLifecycle = None
    ):
        self.clock = clock or timezone.now
        self.publisher = publisher or event_publisher
        self.lifecycle = lifecycle or StatusLifecycle(clock=self.clock)

    # ==========================================================================
    # Non-Conformities
    # ==========================================================================

    def get_nonconformity(self, nc_id: uuid.UUID) -> NonConformity:
        try:
            return NonConformity.objects.select_related('run').get(id=nc_id)
        except NonConformity.DoesNotExist:
            raise NonConformityNotFoundError(nc_id)

    def list_nonconformities(
        self,
        asset_id: uuid.UUID = None,
        run_id: uuid.UUID = None,
        status: str = None,
        kind: str = None,
        severity: int = None
    ) -> List[NonConformity]:
        queryset = NonConformity.objects.all()
        if asset_id:
            queryset = queryset.filter(asset_id=asset_id)
        if run_id:
            queryset = queryset.filter(run_id=run_id)
        if status:
            queryset = queryset.filter(status=status)
        if kind:
            queryset = queryset.filter(kind=kind)
        if severity:
            queryset = queryset.filter(severity=severity)
        return list(queryset.order_by('-severity', '-created_at'))

    @transaction.atomic
    def create_nonconformity(
        self,
        caller: Caller,
        asset_id: uuid.UUID,
        title: str,
        description: str = '',
        severity: int = None,
        kind: str = NonConformity.Kind.NC,
        run_id: uuid.UUID = None,
        checklist_item_id: uuid.UUID = None,
        recommendation: str = ''
    ) -> NonConformity:
        """Manual record (not triggered by a failing answer)."""
        ensure_can_mutate(caller)

        if not (title or '').strip():
            raise InspectionValidationError('Title is required', errors={'title': ['This field is required']})
        if kind not in NonConformity.Kind.values:
            raise InspectionValidationError(
                f"Unknown kind: {kind}",
                errors={'kind': [f"Must be one of {', '.join(NonConformity.Kind.values)}"]}
            )
        if severity is None:
            severity = engine_setting('DEFAULT_SEVERITY')
        _validate_severity(severity)

        run = None
        if run_id:
            try:
                run = InspectionRun.objects.select_for_update().get(id=run_id)
            except InspectionRun.DoesNotExist:
                raise RunNotFoundError(run_id)
            if str(run.asset_id) != str(asset_id):
                raise InspectionValidationError(
                    'Run belongs to another asset',
                    errors={'asset_id': ['Does not match the run']}
                )
            if run.flow == FlowType.VGP and not run.is_draft:
                raise ConflictError(
                    f"Run {run.id} is already validated",
                    details={'run_id': str(run.id)}
                )

        item = None
        if checklist_item_id:
            try:
                item = ChecklistItem.objects.get(id=checklist_item_id)
            except ChecklistItem.DoesNotExist:
                raise ChecklistItemNotFoundError(checklist_item_id)

        nonconformity = NonConformity.objects.create(
            kind=kind,
            run=run,
            asset_id=asset_id,
            checklist_item=item,
            item_number=item.number if item else '',
            title=title.strip(),
            description=description or '',
            recommendation=recommendation or '',
            severity=severity,
            is_auto=False,
            created_by=caller.user_id,
        )

        if run is not None and run.report_id:
            run.report.refresh_observation_flag()

        transaction.on_commit(lambda: self.publisher.publish(
            InspectionEventTypes.NONCONFORMITY_CREATED,
            {'id': nonconformity.id, 'asset_id': asset_id, 'kind': kind, 'severity': severity}
        ))
        logger.info(f"Created manual {kind} {nonconformity.id} on asset {asset_id}")
        return nonconformity

    @transaction.atomic
    def update_nonconformity(self, caller: Caller, nc_id: uuid.UUID, **fields) -> NonConformity:
        ensure_can_mutate(caller)

        try:
            nonconformity = NonConformity.objects.select_for_update().get(id=nc_id)
        except NonConformity.DoesNotExist:
            raise NonConformityNotFoundError(nc_id)

        if not nonconformity.is_open:
            raise ConflictError(
                'A closed non-conformity cannot be edited',
                details={'id': str(nonconformity.id)}
            )

        unknown = sorted(set(fields) - set(EDITABLE_NC_FIELDS))
        if unknown:
            raise InspectionValidationError(
                f"Field(s) not editable: {', '.join(unknown)}",
                errors={name: ['Not editable'] for name in unknown}
            )
        if 'severity' in fields:
            _validate_severity(fields['severity'])

        for name, value in fields.items():
            setattr(nonconformity, name, value)
        nonconformity.save(update_fields=list(fields) + ['updated_at'])
        return nonconformity

    # ==========================================================================
    # Status Transitions
    # ==========================================================================

    @transaction.atomic
    def transition_status(
        self,
        entity_kind: str,
        entity_id: uuid.UUID,
        target: str,
        caller: Caller
    ) -> Union[NonConformity, CorrectiveAction]:
        """
        Move a non-conformity or corrective action to ``target``.

        FORBIDDEN for auditors and for roles the edge does not allow,
        INVALID_TRANSITION when ``target`` is not reachable.
        """
        ensure_can_mutate(caller)

        if entity_kind == EntityKind.NONCONFORMITY:
            model, not_found = NonConformity, NonConformityNotFoundError
        elif entity_kind == EntityKind.ACTION:
            model, not_found = CorrectiveAction, CorrectiveActionNotFoundError
        else:
            raise InspectionValidationError(
                f"Unknown entity kind: {entity_kind}",
                errors={'entity_kind': [f"Must be one of {', '.join(EntityKind.ALL)}"]}
            )

        try:
            entity = model.objects.select_for_update().get(id=entity_id)
        except model.DoesNotExist:
            raise not_found(entity_id)

        previous = entity.status
        self.lifecycle.apply(entity_kind, entity, target, caller)

        transaction.on_commit(
            lambda: self.publisher.status_changed(entity_kind, entity, previous, caller.user_id)
        )
        return entity

    # ==========================================================================
    # Corrective Actions
    # ==========================================================================

    def get_corrective_action(self, action_id: uuid.UUID) -> CorrectiveAction:
        try:
            return CorrectiveAction.objects.select_related('nonconformity').get(id=action_id)
        except CorrectiveAction.DoesNotExist:
            raise CorrectiveActionNotFoundError(action_id)

    def list_corrective_actions(
        self,
        status: str = None,
        owner_id: uuid.UUID = None,
        late: bool = False
    ) -> List[CorrectiveAction]:
        queryset = CorrectiveAction.objects.select_related('nonconformity')
        if status:
            queryset = queryset.filter(status=status)
        if owner_id:
            queryset = queryset.filter(owner_id=owner_id)
        if late:
            queryset = queryset.filter(
                status__in=[CorrectiveAction.Status.OUVERTE, CorrectiveAction.Status.EN_COURS],
                due_at__lt=self.clock(),
            )
        return list(queryset.order_by('due_at'))

    @transaction.atomic
    def create_corrective_action(
        self,
        caller: Caller,
        nc_id: uuid.UUID,
        description: str,
        owner_id: uuid.UUID = None,
        due_at: datetime = None
    ) -> CorrectiveAction:
        """At most one action per non-conformity; observations have none."""
        ensure_can_mutate(caller)

        try:
            nonconformity = NonConformity.objects.select_for_update().get(id=nc_id)
        except NonConformity.DoesNotExist:
            raise NonConformityNotFoundError(nc_id)

        if nonconformity.kind != NonConformity.Kind.NC:
            raise InspectionValidationError(
                'Observations do not carry corrective actions',
                errors={'nonconformity': ['Not a non-conformity']}
            )
        if not nonconformity.is_open:
            raise ConflictError(
                'Non-conformity is closed',
                details={'id': str(nonconformity.id)}
            )
        if CorrectiveAction.objects.filter(nonconformity=nonconformity).exists():
            raise ConflictError(
                'Non-conformity already has a corrective action',
                details={'id': str(nonconformity.id)}
            )
        if not (description or '').strip():
            raise InspectionValidationError(
                'Description is required',
                errors={'description': ['This field is required']}
            )

        action = CorrectiveAction.objects.create(
            nonconformity=nonconformity,
            owner_id=owner_id or caller.user_id,
            description=description.strip(),
            due_at=due_at or self.clock() + timedelta(days=engine_setting('ACTION_DUE_DAYS')),
        )
        transaction.on_commit(lambda: self.publisher.publish(
            InspectionEventTypes.ACTION_CREATED,
            {'id': action.id, 'nonconformity_id': nonconformity.id, 'due_at': action.due_at}
        ))
        logger.info(f"Created corrective action {action.id} for {nonconformity.id}")
        return action

    @transaction.atomic
    def update_corrective_action(self, caller: Caller, action_id: uuid.UUID, **fields) -> CorrectiveAction:
        """Refine the placeholder action: owner, description, due date."""
        ensure_can_mutate(caller)

        try:
            action = CorrectiveAction.objects.select_for_update().get(id=action_id)
        except CorrectiveAction.DoesNotExist:
            raise CorrectiveActionNotFoundError(action_id)

        if not action.is_open:
            raise ConflictError(
                f"Corrective action is {action.status}",
                details={'id': str(action.id)}
            )

        unknown = sorted(set(fields) - set(EDITABLE_ACTION_FIELDS))
        if unknown:
            raise InspectionValidationError(
                f"Field(s) not editable: {', '.join(unknown)}",
                errors={name: ['Not editable'] for name in unknown}
            )

        for name, value in fields.items():
            setattr(action, name, value)
        action.save(update_fields=list(fields) + ['updated_at'])
        return action

    # ==========================================================================
    # Statistics
    # ==========================================================================

    def get_statistics(self, asset_id: uuid.UUID = None) -> Dict[str, Any]:
        """Counters for dashboards."""
        ncs = NonConformity.objects.all()
        actions = CorrectiveAction.objects.all()
        if asset_id:
            ncs = ncs.filter(asset_id=asset_id)
            actions = actions.filter(nonconformity__asset_id=asset_id)

        by_status = {
            row['status']: row['total']
            for row in ncs.values('status').annotate(total=Count('id'))
        }
        by_kind = {
            row['kind']: row['total']
            for row in ncs.values('kind').annotate(total=Count('id'))
        }
        open_actions = Q(status__in=[CorrectiveAction.Status.OUVERTE, CorrectiveAction.Status.EN_COURS])

        return {
            'nonconformities': {
                'total': ncs.count(),
                'by_status': {status: by_status.get(status, 0) for status in NonConformity.Status.values},
                'by_kind': {kind: by_kind.get(kind, 0) for kind in NonConformity.Kind.values},
                'critical_open': ncs.filter(severity__gte=4).exclude(
                    status=NonConformity.Status.CLOTUREE
                ).count(),
            },
            'corrective_actions': {
                'total': actions.count(),
                'open': actions.filter(open_actions).count(),
                'late': actions.filter(open_actions, due_at__lt=self.clock()).count(),
                'validated': actions.filter(status=CorrectiveAction.Status.VALIDEE).count(),
            },
        }
