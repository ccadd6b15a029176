# services/inspection-service/src/apps/core/services/schedule_service.py
"""
Schedule Service

Keeps the last-done / next-due dates of every (asset, control type) pair
and answers the overdue / due-soon read path.
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.core.conf import engine_setting
from apps.core.models import AssetControlSchedule, ControlType

from .authorization import Caller, ensure_can_mutate
from .exceptions import (
    ConflictError,
    ControlTypeNotFoundError,
    InspectionValidationError,
)

logger = logging.getLogger(__name__)


def compute_next_due(completed_at: datetime, periodicity_days: int) -> Optional[datetime]:
    """Calendar-day arithmetic; one-off controls are never rescheduled."""
    if periodicity_days <= 0:
        return None
    return completed_at + timedelta(days=periodicity_days)


@dataclass
class DueEntry:
    """One row of the due list."""

    schedule: AssetControlSchedule
    days_remaining: int
    is_overdue: bool


class ScheduleService:
    """
    Service for asset control schedules.

    Handles:
    - Recompute after an inspection completes
    - Explicit seeding
    - Overdue / due-soon listing
    """

    def __init__(self, clock: Callable[[], datetime] = None):
        self.clock = clock or timezone.now

    # ==========================================================================
    # Completion
    # ==========================================================================

    @transaction.atomic
    def recompute_after_completion(
        self,
        asset_id: uuid.UUID,
        control_type_id: uuid.UUID,
        completed_at: datetime,
        periodicity_days: int
    ) -> AssetControlSchedule:
        """
        Record a completion and move the next due date.

        Only ``completed_at`` and ``periodicity_days`` drive the result, so
        replaying the same completion yields the same dates. With a zero
        periodicity the next due date is left as it was.
        """
        schedule, created = (
            AssetControlSchedule.objects
            .select_for_update()
            .get_or_create(
                asset_id=asset_id,
                control_type_id=control_type_id,
                defaults={'start_date': completed_at}
            )
        )

        schedule.last_done_at = completed_at
        next_due = compute_next_due(completed_at, periodicity_days)
        if next_due is not None:
            schedule.next_due_at = next_due
        schedule.save(update_fields=['last_done_at', 'next_due_at', 'updated_at'])

        logger.info(
            f"Schedule {'created' if created else 'updated'} for asset {asset_id}: "
            f"last done {completed_at.isoformat()}, next due "
            f"{schedule.next_due_at.isoformat() if schedule.next_due_at else 'none'}"
        )
        return schedule

    # ==========================================================================
    # Seeding / Maintenance
    # ==========================================================================

    @transaction.atomic
    def seed_schedule(
        self,
        caller: Caller,
        asset_id: uuid.UUID,
        control_type_id: uuid.UUID,
        start_date: datetime,
        next_due_at: datetime = None
    ) -> AssetControlSchedule:
        """Attach a control type to an asset before any inspection."""
        ensure_can_mutate(caller)

        try:
            control_type = ControlType.objects.get(id=control_type_id)
        except ControlType.DoesNotExist:
            raise ControlTypeNotFoundError(control_type_id)

        if AssetControlSchedule.objects.filter(
            asset_id=asset_id, control_type=control_type
        ).exists():
            raise ConflictError(
                f"Control {control_type.code} is already scheduled for asset {asset_id}",
                details={'asset_id': str(asset_id), 'control_type_id': str(control_type.id)}
            )

        if next_due_at is None:
            next_due_at = compute_next_due(start_date, control_type.periodicity_days) or start_date

        schedule = AssetControlSchedule.objects.create(
            asset_id=asset_id,
            control_type=control_type,
            start_date=start_date,
            next_due_at=next_due_at,
        )
        logger.info(f"Seeded {control_type.code} for asset {asset_id}, due {next_due_at.isoformat()}")
        return schedule

    def list_for_asset(self, asset_id: uuid.UUID) -> List[AssetControlSchedule]:
        return list(
            AssetControlSchedule.objects
            .filter(asset_id=asset_id)
            .select_related('control_type')
            .order_by('next_due_at')
        )

    @transaction.atomic
    def purge_asset(self, caller: Caller, asset_id: uuid.UUID) -> int:
        """Drop the schedules of an asset removed from the asset registry."""
        ensure_can_mutate(caller)
        deleted, _ = AssetControlSchedule.objects.filter(asset_id=asset_id).delete()
        logger.info(f"Purged {deleted} schedule(s) for asset {asset_id}")
        return deleted

    # ==========================================================================
    # Read Path
    # ==========================================================================

    def get_overdue_and_due_soon(
        self,
        window_days: int = None,
        asset_id: uuid.UUID = None,
        now: datetime = None
    ) -> List[DueEntry]:
        """
        Schedules overdue or due within ``window_days``, soonest first.

        Overdue is derived from ``now`` on every call and never stored.
        """
        if window_days is None:
            window_days = engine_setting('DUE_SOON_DEFAULT_DAYS')
        if window_days < 0:
            raise InspectionValidationError(
                'window_days must be zero or positive',
                errors={'window_days': ['Must be >= 0']}
            )

        now = now or self.clock()
        horizon = now + timedelta(days=window_days)

        queryset = (
            AssetControlSchedule.objects
            .filter(next_due_at__isnull=False, next_due_at__lte=horizon)
            .exclude(
                control_type__periodicity_days=0,
                last_done_at__gte=F('next_due_at')
            )
            .select_related('control_type')
        )
        if asset_id:
            queryset = queryset.filter(asset_id=asset_id)

        return [
            DueEntry(
                schedule=schedule,
                days_remaining=schedule.days_remaining_at(now),
                is_overdue=schedule.is_overdue_at(now),
            )
            for schedule in queryset.order_by('next_due_at')
        ]
