# services/inspection-service/src/apps/api/urls.py
"""
Inspection Service API URL Configuration
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from apps.api.views import (
    ControlTypeViewSet,
    ChecklistTemplateViewSet,
    ScheduleViewSet,
    InspectionRunViewSet,
    NonConformityViewSet,
    CorrectiveActionViewSet,
    MissionViewSet,
    VgpReportViewSet,
)

app_name = 'api'

router = DefaultRouter()

# Catalog
router.register(r'control-types', ControlTypeViewSet, basename='control-type')
router.register(r'templates', ChecklistTemplateViewSet, basename='checklist-template')

# Schedules
router.register(r'schedules', ScheduleViewSet, basename='schedule')

# Runs
router.register(r'runs', InspectionRunViewSet, basename='inspection-run')

# Non-conformities
router.register(r'nonconformities', NonConformityViewSet, basename='nonconformity')
router.register(r'actions', CorrectiveActionViewSet, basename='corrective-action')

# Planning
router.register(r'missions', MissionViewSet, basename='mission')
router.register(r'vgp-reports', VgpReportViewSet, basename='vgp-report')

urlpatterns = [
    path('', include(router.urls)),
]
