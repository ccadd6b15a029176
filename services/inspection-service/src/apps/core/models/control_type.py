# services/inspection-service/src/apps/core/models/control_type.py
"""
Control Type and Checklist Models

A control type is a recurring inspection definition (periodicity in days);
its checklist templates hold the questions answered during a run.
"""

from typing import Optional

from django.core.validators import MinValueValidator
from django.db import models

from shared.common.mixins import BaseModel


class FlowType(models.TextChoices):
    SIMPLE = 'SIMPLE', 'Contrôle simple'
    VGP = 'VGP', 'Vérification générale périodique'


class ControlType(BaseModel):
    """
    Named recurring inspection definition.

    Control types are never deleted; ``deactivate`` hides them from new
    planning while keeping the history intact.
    """

    code = models.CharField(max_length=50, unique=True)
    label = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    periodicity_days = models.PositiveIntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text='0 means a one-off control that is never rescheduled'
    )
    active = models.BooleanField(default=True)

    class Meta:
        db_table = 'control_types'
        ordering = ['code']
        verbose_name = 'Control Type'
        verbose_name_plural = 'Control Types'

    def __str__(self):
        return f"{self.code}: {self.label}"

    @property
    def is_recurring(self) -> bool:
        return self.periodicity_days > 0

    def deactivate(self) -> None:
        self.active = False
        self.save(update_fields=['active', 'updated_at'])


class ChecklistTemplate(BaseModel):
    """Checklist used for a control type, optionally per asset category."""

    control_type = models.ForeignKey(
        ControlType,
        on_delete=models.PROTECT,
        related_name='templates'
    )
    asset_category = models.CharField(max_length=100, blank=True, null=True)
    name = models.CharField(max_length=255)
    flow = models.CharField(
        max_length=10,
        choices=FlowType.choices,
        default=FlowType.SIMPLE
    )

    class Meta:
        db_table = 'checklist_templates'
        ordering = ['control_type__code', 'name']
        verbose_name = 'Checklist Template'
        verbose_name_plural = 'Checklist Templates'

    def __str__(self):
        return self.name

    @classmethod
    def find_for(
        cls,
        control_type_id,
        asset_category: Optional[str] = None
    ) -> Optional['ChecklistTemplate']:
        """
        Exact category match first, then the template without category.
        """
        templates = cls.objects.filter(control_type_id=control_type_id)
        if asset_category:
            template = templates.filter(asset_category=asset_category).first()
            if template:
                return template
        return templates.filter(asset_category__isnull=True).first()

    def active_items(self):
        return self.items.filter(active=True).order_by('sort_order', 'number')


class ChecklistItem(BaseModel):
    """One question of a checklist template."""

    class FieldType(models.TextChoices):
        BOOL = 'BOOL', 'Oui / Non'
        NUM = 'NUM', 'Numérique'
        TEXT = 'TEXT', 'Texte'

    template = models.ForeignKey(
        ChecklistTemplate,
        on_delete=models.CASCADE,
        related_name='items'
    )
    label = models.CharField(max_length=500)
    field_type = models.CharField(
        max_length=10,
        choices=FieldType.choices,
        default=FieldType.BOOL
    )
    required = models.BooleanField(default=True)
    help_text = models.TextField(blank=True, default='')
    sort_order = models.IntegerField(default=0)

    # VGP reference numbering
    number = models.CharField(max_length=20, blank=True, default='')
    section_code = models.CharField(max_length=20, blank=True, default='')
    section_title = models.CharField(max_length=255, blank=True, default='')

    active = models.BooleanField(default=True)

    class Meta:
        db_table = 'checklist_items'
        ordering = ['sort_order', 'number']
        verbose_name = 'Checklist Item'
        verbose_name_plural = 'Checklist Items'

    def __str__(self):
        if self.number:
            return f"{self.number} {self.label}"
        return self.label
