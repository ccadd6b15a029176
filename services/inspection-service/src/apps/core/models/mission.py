# services/inspection-service/src/apps/core/models/mission.py
"""
Mission and VGP Report Models

Containers grouping the inspection runs of one site visit.
"""

import uuid

from django.db import models
from django.utils import timezone

from shared.common.mixins import BaseModel
from .control_type import ControlType


class Mission(BaseModel):
    """
    Planned site visit for one control type over a set of assets.
    """

    class Status(models.TextChoices):
        A_PLANIFIER = 'A_PLANIFIER', 'À planifier'
        PLANIFIEE = 'PLANIFIEE', 'Planifiée'
        EN_COURS = 'EN_COURS', 'En cours'
        TERMINEE = 'TERMINEE', 'Terminée'
        ANNULEE = 'ANNULEE', 'Annulée'

    TERMINAL_STATUSES = (Status.TERMINEE, Status.ANNULEE)

    control_type = models.ForeignKey(
        ControlType,
        on_delete=models.PROTECT,
        related_name='missions'
    )
    site_id = models.UUIDField(db_index=True)
    scheduled_at = models.DateTimeField(blank=True, null=True)
    assigned_to = models.UUIDField(blank=True, null=True)
    asset_ids = models.JSONField(default=list, blank=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.A_PLANIFIER
    )
    cancellation_reason = models.TextField(blank=True, default='')
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'missions'
        ordering = ['-scheduled_at', '-created_at']
        verbose_name = 'Mission'
        verbose_name_plural = 'Missions'
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['scheduled_at']),
        ]

    def __str__(self):
        return f"Mission {self.control_type.code} @ {self.site_id}"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def covers_asset(self, asset_id) -> bool:
        return str(asset_id) in {str(a) for a in self.asset_ids}


class VgpReport(BaseModel):
    """
    Multi-asset VGP report; one run per inspected asset.
    """

    client_id = models.UUIDField(db_index=True)
    site_id = models.UUIDField(db_index=True)
    report_number = models.CharField(max_length=30, unique=True)
    report_date = models.DateTimeField(default=timezone.now)
    signatory = models.CharField(max_length=255, blank=True, default='')
    summary = models.TextField(blank=True, default='')
    has_observations = models.BooleanField(default=False)
    finalized_at = models.DateTimeField(blank=True, null=True)
    created_by = models.UUIDField(blank=True, null=True)

    class Meta:
        db_table = 'vgp_reports'
        ordering = ['-report_date']
        verbose_name = 'VGP Report'
        verbose_name_plural = 'VGP Reports'

    def __str__(self):
        return self.report_number

    def save(self, *args, **kwargs):
        if not self.report_number:
            self.report_number = self._generate_report_number()
        super().save(*args, **kwargs)

    def _generate_report_number(self) -> str:
        """VGP-<year>-<4 chars>"""
        year = (self.report_date or timezone.now()).year
        suffix = uuid.uuid4().hex[:4].upper()
        return f"VGP-{year}-{suffix}"

    @property
    def is_finalized(self) -> bool:
        return self.finalized_at is not None

    def refresh_observation_flag(self) -> bool:
        """Recompute ``has_observations`` from the observations of its runs."""
        has_observations = self.runs.filter(
            nonconformities__kind='OBSERVATION'
        ).exists()
        if has_observations != self.has_observations:
            self.has_observations = has_observations
            self.save(update_fields=['has_observations', 'updated_at'])
        return has_observations
