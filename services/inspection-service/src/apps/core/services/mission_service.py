# services/inspection-service/src/apps/core/services/mission_service.py
"""
Mission Service

Planning container for SIMPLE runs.
"""

import uuid
import logging
from datetime import datetime
from typing import Callable, List

from django.db import transaction
from django.utils import timezone

from apps.core.events import InspectionEventPublisher, InspectionEventTypes, event_publisher
from apps.core.models import ControlType, InspectionRun, Mission

from .authorization import Caller, ensure_can_mutate
from .exceptions import (
    ControlTypeNotFoundError,
    InspectionValidationError,
    InvalidTransitionError,
    MissionNotFoundError,
)

logger = logging.getLogger(__name__)

Status = Mission.Status

# ANNULEE is reachable from every non-terminal state
MISSION_TRANSITIONS = {
    Status.A_PLANIFIER: (Status.PLANIFIEE, Status.ANNULEE),
    Status.PLANIFIEE: (Status.EN_COURS, Status.ANNULEE),
    Status.EN_COURS: (Status.TERMINEE, Status.ANNULEE),
    Status.TERMINEE: (),
    Status.ANNULEE: (),
}


class MissionService:
    """
    Service for missions.

    Handles:
    - Mission creation and planning
    - Status transitions
    - Completion once every asset has a submitted run
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = None,
        publisher: InspectionEventPublisher = None
    ):
        self.clock = clock or timezone.now
        self.publisher = publisher or event_publisher

    def get_mission(self, mission_id: uuid.UUID) -> Mission:
        try:
            return Mission.objects.select_related('control_type').get(id=mission_id)
        except Mission.DoesNotExist:
            raise MissionNotFoundError(mission_id)

    def list_missions(
        self,
        site_id: uuid.UUID = None,
        status: str = None,
        assigned_to: uuid.UUID = None
    ) -> List[Mission]:
        queryset = Mission.objects.select_related('control_type')
        if site_id:
            queryset = queryset.filter(site_id=site_id)
        if status:
            queryset = queryset.filter(status=status)
        if assigned_to:
            queryset = queryset.filter(assigned_to=assigned_to)
        return list(queryset)

    @transaction.atomic
    def create_mission(
        self,
        caller: Caller,
        control_type_id: uuid.UUID,
        site_id: uuid.UUID,
        asset_ids: List[uuid.UUID] = None,
        scheduled_at: datetime = None,
        assigned_to: uuid.UUID = None
    ) -> Mission:
        """A mission with a date starts PLANIFIEE, otherwise A_PLANIFIER."""
        ensure_can_mutate(caller)

        try:
            control_type = ControlType.objects.get(id=control_type_id)
        except ControlType.DoesNotExist:
            raise ControlTypeNotFoundError(control_type_id)
        if not control_type.active:
            raise InspectionValidationError(
                f"Control type {control_type.code} is inactive",
                errors={'control_type_id': ['Inactive control type']}
            )

        try:
            normalized_assets = [str(uuid.UUID(str(a))) for a in asset_ids or []]
        except ValueError:
            raise InspectionValidationError(
                'Invalid asset id',
                errors={'asset_ids': ['Must be a list of UUIDs']}
            )

        mission = Mission.objects.create(
            control_type=control_type,
            site_id=site_id,
            asset_ids=normalized_assets,
            scheduled_at=scheduled_at,
            assigned_to=assigned_to,
            status=Status.PLANIFIEE if scheduled_at else Status.A_PLANIFIER,
        )
        logger.info(f"Created mission {mission.id} ({mission.status}) for site {site_id}")
        return mission

    @transaction.atomic
    def transition(
        self,
        caller: Caller,
        mission_id: uuid.UUID,
        target: str,
        scheduled_at: datetime = None,
        reason: str = ''
    ) -> Mission:
        ensure_can_mutate(caller)

        try:
            mission = Mission.objects.select_for_update().get(id=mission_id)
        except Mission.DoesNotExist:
            raise MissionNotFoundError(mission_id)

        if target not in Status.values:
            raise InspectionValidationError(
                f"Unknown mission status: {target}",
                errors={'status': [f"Must be one of {', '.join(Status.values)}"]}
            )
        if target not in MISSION_TRANSITIONS[mission.status]:
            raise InvalidTransitionError(mission.status, target)

        if target == Status.PLANIFIEE:
            if not (scheduled_at or mission.scheduled_at):
                raise InspectionValidationError(
                    'A planned mission needs a date',
                    errors={'scheduled_at': ['This field is required']}
                )
            if scheduled_at:
                mission.scheduled_at = scheduled_at
        elif target == Status.ANNULEE:
            mission.cancellation_reason = reason or ''
        elif target == Status.TERMINEE:
            mission.completed_at = self.clock()

        self._set_status(mission, target)
        return mission

    # ==========================================================================
    # Internal (called by the inspection service)
    # ==========================================================================

    def mark_started(self, mission: Mission) -> None:
        if mission.status == Status.PLANIFIEE:
            self._set_status(mission, Status.EN_COURS)

    def complete_if_done(self, mission_id: uuid.UUID) -> bool:
        """Move the mission to TERMINEE once every asset has a submitted run."""
        mission = Mission.objects.select_for_update().get(id=mission_id)
        if mission.status != Status.EN_COURS or not mission.asset_ids:
            return False

        submitted = {
            str(asset_id)
            for asset_id in mission.runs.filter(
                status=InspectionRun.Status.SOUMIS
            ).values_list('asset_id', flat=True)
        }
        if not {str(a) for a in mission.asset_ids} <= submitted:
            return False

        mission.completed_at = self.clock()
        self._set_status(mission, Status.TERMINEE)
        return True

    def _set_status(self, mission: Mission, target: str) -> None:
        previous = mission.status
        mission.status = target
        mission.save(update_fields=[
            'status', 'scheduled_at', 'cancellation_reason', 'completed_at', 'updated_at'
        ])
        transaction.on_commit(lambda: self.publisher.publish(
            InspectionEventTypes.MISSION_STATUS_CHANGED,
            {'mission_id': mission.id, 'previous_status': previous, 'status': target}
        ))
        logger.info(f"Mission {mission.id}: {previous} -> {target}")
