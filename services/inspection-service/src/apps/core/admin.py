from django.contrib import admin
from .models import (
    ControlType,
    ChecklistTemplate,
    ChecklistItem,
    AssetControlSchedule,
    Mission,
    VgpReport,
    InspectionRun,
    ItemResult,
    NonConformity,
    CorrectiveAction,
)


class ChecklistItemInline(admin.TabularInline):
    model = ChecklistItem
    extra = 0
    fields = ['sort_order', 'number', 'label', 'field_type', 'required', 'active']
    ordering = ['sort_order', 'number']


@admin.register(ControlType)
class ControlTypeAdmin(admin.ModelAdmin):
    list_display = ['code', 'label', 'periodicity_days', 'active']
    list_filter = ['active']
    search_fields = ['code', 'label']
    ordering = ['code']


@admin.register(ChecklistTemplate)
class ChecklistTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'control_type', 'asset_category', 'flow']
    list_filter = ['flow']
    search_fields = ['name', 'control_type__code']
    inlines = [ChecklistItemInline]


@admin.register(AssetControlSchedule)
class AssetControlScheduleAdmin(admin.ModelAdmin):
    list_display = ['asset_id', 'control_type', 'last_done_at', 'next_due_at']
    search_fields = ['control_type__code']
    ordering = ['next_due_at']


@admin.register(Mission)
class MissionAdmin(admin.ModelAdmin):
    list_display = ['id', 'control_type', 'site_id', 'scheduled_at', 'status']
    list_filter = ['status']
    ordering = ['-scheduled_at']


@admin.register(VgpReport)
class VgpReportAdmin(admin.ModelAdmin):
    list_display = ['report_number', 'report_date', 'signatory', 'has_observations', 'finalized_at']
    list_filter = ['has_observations']
    search_fields = ['report_number', 'signatory']
    ordering = ['-report_date']


class ItemResultInline(admin.TabularInline):
    model = ItemResult
    extra = 0
    fields = ['item', 'result', 'value_num', 'value_text', 'comment']


@admin.register(InspectionRun)
class InspectionRunAdmin(admin.ModelAdmin):
    list_display = ['id', 'flow', 'asset_id', 'control_type', 'status', 'conclusion', 'completed_at']
    list_filter = ['flow', 'status', 'conclusion']
    search_fields = ['performer_name', 'signed_by_name']
    ordering = ['-created_at']
    inlines = [ItemResultInline]


@admin.register(NonConformity)
class NonConformityAdmin(admin.ModelAdmin):
    list_display = ['title', 'kind', 'asset_id', 'severity', 'status', 'is_auto']
    list_filter = ['kind', 'status', 'severity', 'is_auto']
    search_fields = ['title', 'description']
    ordering = ['-created_at']


@admin.register(CorrectiveAction)
class CorrectiveActionAdmin(admin.ModelAdmin):
    list_display = ['nonconformity', 'owner_id', 'due_at', 'status', 'closed_at']
    list_filter = ['status']
    search_fields = ['description', 'nonconformity__title']
    ordering = ['due_at']
