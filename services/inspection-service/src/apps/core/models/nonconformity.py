# services/inspection-service/src/apps/core/models/nonconformity.py
"""
Non-Conformity and Corrective Action Models

Follow-up records opened by failing checklist answers. Status changes go
through the lifecycle service, which calls the workflow methods below.
"""

import uuid
from datetime import datetime

from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

from shared.common.mixins import BaseModel
from .control_type import ChecklistItem
from .inspection_run import InspectionRun


class NonConformity(BaseModel):
    """
    Non-conformity (SIMPLE flow) or observation (VGP flow).

    Never deleted; CLOTUREE is the only terminal state.
    """

    class Kind(models.TextChoices):
        NC = 'NC', 'Non-conformité'
        OBSERVATION = 'OBSERVATION', 'Observation'

    class Status(models.TextChoices):
        OUVERTE = 'OUVERTE', 'Ouverte'
        EN_COURS = 'EN_COURS', 'En cours'
        CLOTUREE = 'CLOTUREE', 'Clôturée'

    kind = models.CharField(
        max_length=20,
        choices=Kind.choices,
        default=Kind.NC
    )
    run = models.ForeignKey(
        InspectionRun,
        on_delete=models.PROTECT,
        related_name='nonconformities',
        blank=True,
        null=True
    )
    asset_id = models.UUIDField(db_index=True)
    checklist_item = models.ForeignKey(
        ChecklistItem,
        on_delete=models.PROTECT,
        related_name='nonconformities',
        blank=True,
        null=True
    )
    item_number = models.CharField(max_length=20, blank=True, default='')

    title = models.CharField(max_length=500)
    description = models.TextField(blank=True, default='')
    recommendation = models.TextField(blank=True, default='')
    severity = models.PositiveSmallIntegerField(
        default=3,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.OUVERTE
    )
    is_auto = models.BooleanField(default=False)
    created_by = models.UUIDField(blank=True, null=True)
    closed_at = models.DateTimeField(blank=True, null=True)
    closed_by = models.UUIDField(blank=True, null=True)

    class Meta:
        db_table = 'nonconformities'
        ordering = ['-created_at']
        verbose_name = 'Non-Conformity'
        verbose_name_plural = 'Non-Conformities'
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['run', 'checklist_item']),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status != self.Status.CLOTUREE

    # ==========================================================================
    # Workflow Methods
    # ==========================================================================

    def start(self) -> None:
        self.status = self.Status.EN_COURS
        self.save(update_fields=['status', 'updated_at'])

    def close(self, closed_at: datetime, closed_by: uuid.UUID = None) -> None:
        self.status = self.Status.CLOTUREE
        self.closed_at = closed_at
        self.closed_by = closed_by
        self.save(update_fields=['status', 'closed_at', 'closed_by', 'updated_at'])

    def reopen(self) -> None:
        """Auto observations come back when the item fails again."""
        self.status = self.Status.OUVERTE
        self.closed_at = None
        self.closed_by = None
        self.save(update_fields=['status', 'closed_at', 'closed_by', 'updated_at'])


class CorrectiveAction(BaseModel):
    """
    Action attached to at most one non-conformity.
    """

    class Status(models.TextChoices):
        OUVERTE = 'OUVERTE', 'Ouverte'
        EN_COURS = 'EN_COURS', 'En cours'
        CLOTUREE = 'CLOTUREE', 'Clôturée'
        VALIDEE = 'VALIDEE', 'Validée'

    nonconformity = models.OneToOneField(
        NonConformity,
        on_delete=models.PROTECT,
        related_name='corrective_action'
    )
    owner_id = models.UUIDField(blank=True, null=True)
    description = models.TextField()
    due_at = models.DateTimeField()

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.OUVERTE
    )
    closed_at = models.DateTimeField(blank=True, null=True)
    validated_by = models.UUIDField(blank=True, null=True)

    class Meta:
        db_table = 'corrective_actions'
        ordering = ['due_at']
        verbose_name = 'Corrective Action'
        verbose_name_plural = 'Corrective Actions'
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['due_at']),
        ]

    def __str__(self):
        return f"Action {self.id} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status not in (self.Status.CLOTUREE, self.Status.VALIDEE)

    def is_late_at(self, now: datetime) -> bool:
        return self.is_open and self.due_at < now

    # ==========================================================================
    # Workflow Methods
    # ==========================================================================

    def start(self) -> None:
        self.status = self.Status.EN_COURS
        self.save(update_fields=['status', 'updated_at'])

    def close(self, closed_at: datetime) -> None:
        self.status = self.Status.CLOTUREE
        self.closed_at = closed_at
        self.save(update_fields=['status', 'closed_at', 'updated_at'])

    def validate(self, validated_at: datetime, validated_by: uuid.UUID) -> None:
        self.status = self.Status.VALIDEE
        self.closed_at = validated_at
        self.validated_by = validated_by
        self.save(update_fields=['status', 'closed_at', 'validated_by', 'updated_at'])
