# services/inspection-service/src/apps/api/views/mission.py
"""
Mission and VGP Report API Views
"""

from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters import rest_framework as filters

from apps.core.models import Mission, VgpReport
from apps.core.services import MissionService, VgpReportService
from shared.common.permissions import IsAuthenticated, IsValidator
from apps.api.serializers import (
    MissionCreateSerializer,
    MissionSerializer,
    MissionTransitionSerializer,
    VgpReportCreateSerializer,
    VgpReportFinalizeSerializer,
    VgpReportSerializer,
)

from .base import BaseInspectionViewSet


class MissionFilter(filters.FilterSet):
    status = filters.ChoiceFilter(choices=Mission.Status.choices)
    site_id = filters.UUIDFilter()
    assigned_to = filters.UUIDFilter()
    control_type = filters.UUIDFilter(field_name='control_type_id')
    scheduled_from = filters.DateTimeFilter(field_name='scheduled_at', lookup_expr='gte')
    scheduled_to = filters.DateTimeFilter(field_name='scheduled_at', lookup_expr='lte')

    class Meta:
        model = Mission
        fields = ['status', 'site_id', 'assigned_to', 'control_type']


class MissionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseInspectionViewSet
):
    """
    ViewSet for missions.

    Custom actions:
    - transition: plan, start, complete or cancel
    """

    queryset = Mission.objects.select_related('control_type')
    serializer_class = MissionSerializer
    filterset_class = MissionFilter
    ordering_fields = ['scheduled_at', 'created_at', 'status']
    ordering = ['scheduled_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = MissionService()

    def create(self, request):
        serializer = MissionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        mission = self.service.create_mission(self.get_caller(), **serializer.validated_data)
        return Response(MissionSerializer(mission).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def transition(self, request, pk=None):
        serializer = MissionTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        mission = self.service.transition(
            self.get_caller(),
            pk,
            data['status'],
            scheduled_at=data.get('scheduled_at'),
            reason=data.get('reason', ''),
        )
        return Response(MissionSerializer(mission).data)


class VgpReportViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseInspectionViewSet
):
    """
    ViewSet for VGP reports.

    Custom actions:
    - finalize: close the report once every run is validated
    """

    queryset = VgpReport.objects.prefetch_related('runs__control_type')
    serializer_class = VgpReportSerializer
    filterset_fields = ['client_id', 'site_id', 'has_observations']
    search_fields = ['report_number', 'signatory']
    ordering_fields = ['report_date', 'created_at']
    ordering = ['-report_date']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = VgpReportService()

    def create(self, request):
        serializer = VgpReportCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        report = self.service.create_report(self.get_caller(), **serializer.validated_data)
        return Response(
            VgpReportSerializer(self.get_queryset().get(id=report.id)).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsValidator])
    def finalize(self, request, pk=None):
        serializer = VgpReportFinalizeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        report = self.service.finalize_report(self.get_caller(), pk, **serializer.validated_data)
        return Response(VgpReportSerializer(report).data)
