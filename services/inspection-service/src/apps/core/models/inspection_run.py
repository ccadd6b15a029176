# services/inspection-service/src/apps/core/models/inspection_run.py
"""
Inspection Run Models

One execution of a checklist on one asset, with its per-item results.
"""

from django.db import models

from shared.common.mixins import BaseModel
from .control_type import ControlType, ChecklistTemplate, ChecklistItem, FlowType
from .mission import Mission, VgpReport


class InspectionRun(BaseModel):
    """
    A checklist execution on one asset.

    SIMPLE runs go BROUILLON -> SOUMIS on submission; VGP runs go
    BROUILLON -> VALIDE when a manager validates them. Both end states are
    final.
    """

    class Status(models.TextChoices):
        BROUILLON = 'BROUILLON', 'Brouillon'
        SOUMIS = 'SOUMIS', 'Soumis'
        VALIDE = 'VALIDE', 'Validé'

    class Conclusion(models.TextChoices):
        CONFORME = 'CONFORME', 'Conforme'
        NON_CONFORME = 'NON_CONFORME', 'Non conforme'
        CONFORME_SOUS_RESERVE = 'CONFORME_SOUS_RESERVE', 'Conforme sous réserve'

    flow = models.CharField(max_length=10, choices=FlowType.choices)
    asset_id = models.UUIDField(db_index=True)
    control_type = models.ForeignKey(
        ControlType,
        on_delete=models.PROTECT,
        related_name='runs'
    )
    template = models.ForeignKey(
        ChecklistTemplate,
        on_delete=models.PROTECT,
        related_name='runs'
    )
    mission = models.ForeignKey(
        Mission,
        on_delete=models.PROTECT,
        related_name='runs',
        blank=True,
        null=True
    )
    report = models.ForeignKey(
        VgpReport,
        on_delete=models.PROTECT,
        related_name='runs',
        blank=True,
        null=True
    )

    # ==========================================================================
    # Performer / Signature
    # ==========================================================================

    performer_id = models.UUIDField()
    performer_name = models.CharField(max_length=255, blank=True, default='')
    signed_by_name = models.CharField(max_length=255, blank=True, default='')
    signed_at = models.DateTimeField(blank=True, null=True)

    # ==========================================================================
    # Outcome
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.BROUILLON
    )
    conclusion = models.CharField(
        max_length=30,
        choices=Conclusion.choices,
        blank=True,
        null=True
    )
    summary = models.TextField(blank=True, default='')
    completed_at = models.DateTimeField(blank=True, null=True)

    # ==========================================================================
    # VGP header
    # ==========================================================================

    meter_type = models.CharField(max_length=50, blank=True, default='')
    meter_value = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    intervention_conditions = models.TextField(blank=True, default='')
    operating_modes = models.TextField(blank=True, default='')
    means_available = models.TextField(blank=True, default='')
    particulars = models.TextField(blank=True, default='')

    HEADER_FIELDS = (
        'meter_type',
        'meter_value',
        'intervention_conditions',
        'operating_modes',
        'means_available',
        'particulars',
    )

    class Meta:
        db_table = 'inspection_runs'
        ordering = ['-created_at']
        verbose_name = 'Inspection Run'
        verbose_name_plural = 'Inspection Runs'
        indexes = [
            models.Index(fields=['asset_id', 'control_type']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"{self.flow} run {self.id} ({self.status})"

    @property
    def is_draft(self) -> bool:
        return self.status == self.Status.BROUILLON

    def mark_submitted(self, conclusion, signed_by_name, completed_at, summary='') -> None:
        self.status = self.Status.SOUMIS
        self.conclusion = conclusion
        self.signed_by_name = signed_by_name
        self.signed_at = completed_at
        self.completed_at = completed_at
        self.summary = summary or ''
        self.save(update_fields=[
            'status', 'conclusion', 'signed_by_name', 'signed_at',
            'completed_at', 'summary', 'updated_at'
        ])

    def mark_validated(self, conclusion, signed_by_name, validated_at) -> None:
        self.status = self.Status.VALIDE
        self.conclusion = conclusion
        self.signed_by_name = signed_by_name
        self.signed_at = validated_at
        if not self.completed_at:
            self.completed_at = validated_at
        self.save(update_fields=[
            'status', 'conclusion', 'signed_by_name', 'signed_at',
            'completed_at', 'updated_at'
        ])


class ItemResult(BaseModel):
    """Answer to one checklist item within a run."""

    class Result(models.TextChoices):
        OK = 'OK', 'OK'
        KO = 'KO', 'KO'
        OUI = 'OUI', 'Oui'
        NON = 'NON', 'Non'
        NA = 'NA', 'Non applicable'

    run = models.ForeignKey(
        InspectionRun,
        on_delete=models.CASCADE,
        related_name='results'
    )
    item = models.ForeignKey(
        ChecklistItem,
        on_delete=models.PROTECT,
        related_name='results'
    )
    result = models.CharField(max_length=5, choices=Result.choices)
    value_num = models.DecimalField(
        max_digits=12, decimal_places=3, blank=True, null=True
    )
    value_text = models.TextField(blank=True, default='')
    comment = models.TextField(blank=True, default='')

    class Meta:
        db_table = 'item_results'
        ordering = ['item__sort_order']
        verbose_name = 'Item Result'
        verbose_name_plural = 'Item Results'
        constraints = [
            models.UniqueConstraint(
                fields=['run', 'item'],
                name='unique_result_per_run_item'
            ),
        ]

    def __str__(self):
        return f"{self.item_id}: {self.result}"
