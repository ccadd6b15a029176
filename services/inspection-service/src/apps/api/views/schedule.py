# services/inspection-service/src/apps/api/views/schedule.py
"""
Schedule API Views
"""

from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.models import AssetControlSchedule
from apps.core.services import ScheduleService
from apps.api.serializers import (
    AssetControlScheduleSerializer,
    DueEntrySerializer,
    DueQuerySerializer,
    ScheduleSeedSerializer,
)

from .base import BaseInspectionViewSet


class ScheduleViewSet(mixins.ListModelMixin, BaseInspectionViewSet):
    """
    Asset control schedules.

    Custom actions:
    - due: overdue and due-soon schedules
    """

    queryset = AssetControlSchedule.objects.select_related('control_type')
    serializer_class = AssetControlScheduleSerializer
    filterset_fields = ['asset_id', 'control_type']
    ordering = ['next_due_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = ScheduleService()

    def create(self, request):
        """Seed a schedule for an asset."""
        serializer = ScheduleSeedSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        schedule = self.service.seed_schedule(self.get_caller(), **serializer.validated_data)
        return Response(
            AssetControlScheduleSerializer(schedule).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['get'])
    def due(self, request):
        query = DueQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        entries = self.service.get_overdue_and_due_soon(
            window_days=query.validated_data.get('window_days'),
            asset_id=query.validated_data.get('asset_id'),
        )
        return Response({
            'success': True,
            'count': len(entries),
            'results': DueEntrySerializer(entries, many=True).data,
        })
