# services/inspection-service/src/apps/core/models/schedule.py
"""
Asset Control Schedule Model

One row per (asset, control type): when the control was last done and
when it is due next.
"""

from datetime import datetime
from typing import Optional

from django.db import models
from django.utils import timezone

from shared.common.mixins import BaseModel
from .control_type import ControlType


class AssetControlSchedule(BaseModel):
    """
    Due-date tracking for a control type on an asset.

    ``next_due_at`` stays empty until a completion happens or a schedule is
    seeded explicitly. Rows are only written by the schedule service.
    """

    # Assets live in another service
    asset_id = models.UUIDField(db_index=True)
    control_type = models.ForeignKey(
        ControlType,
        on_delete=models.PROTECT,
        related_name='schedules'
    )

    start_date = models.DateTimeField()
    last_done_at = models.DateTimeField(blank=True, null=True)
    next_due_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'asset_control_schedules'
        ordering = ['next_due_at']
        verbose_name = 'Asset Control Schedule'
        verbose_name_plural = 'Asset Control Schedules'
        constraints = [
            models.UniqueConstraint(
                fields=['asset_id', 'control_type'],
                name='unique_schedule_per_asset_control'
            ),
        ]
        indexes = [
            models.Index(fields=['next_due_at']),
        ]

    def __str__(self):
        return f"{self.asset_id} / {self.control_type.code}"

    def is_overdue_at(self, now: datetime) -> bool:
        """Strictly past due: equality with ``now`` is not overdue."""
        return self.next_due_at is not None and self.next_due_at < now

    @property
    def is_overdue(self) -> bool:
        return self.is_overdue_at(timezone.now())

    def days_remaining_at(self, now: datetime) -> Optional[int]:
        if self.next_due_at is None:
            return None
        return (self.next_due_at - now).days
