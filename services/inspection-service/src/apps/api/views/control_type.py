# services/inspection-service/src/apps/api/views/control_type.py
"""
Control Type and Checklist API Views
"""

from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters import rest_framework as filters

from apps.core.models import ChecklistTemplate, ControlType, FlowType
from apps.core.services import ControlTypeService
from apps.api.serializers import (
    ChecklistTemplateDetailSerializer,
    ChecklistTemplateSerializer,
    ControlTypeCreateSerializer,
    ControlTypeSerializer,
    ControlTypeUpdateSerializer,
)

from .base import BaseInspectionViewSet


class ControlTypeViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseInspectionViewSet
):
    """
    Control types: list, create, edit, deactivate. No delete.
    """

    queryset = ControlType.objects.all()
    serializer_class = ControlTypeSerializer
    filterset_fields = ['active']
    search_fields = ['code', 'label']
    ordering = ['code']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = ControlTypeService()

    def create(self, request):
        serializer = ControlTypeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        control_type = self.service.create_control_type(self.get_caller(), **serializer.validated_data)
        return Response(ControlTypeSerializer(control_type).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = ControlTypeUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        control_type = self.service.update_control_type(self.get_caller(), pk, **serializer.validated_data)
        return Response(ControlTypeSerializer(control_type).data)

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        control_type = self.service.deactivate(self.get_caller(), pk)
        return Response(ControlTypeSerializer(control_type).data)


class ChecklistTemplateFilter(filters.FilterSet):
    """Filter for checklist templates."""

    control_type = filters.UUIDFilter(field_name='control_type_id')
    flow = filters.ChoiceFilter(choices=FlowType.choices)
    asset_category = filters.CharFilter()

    class Meta:
        model = ChecklistTemplate
        fields = ['control_type', 'flow', 'asset_category']


class ChecklistTemplateViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseInspectionViewSet
):
    queryset = ChecklistTemplate.objects.select_related('control_type')
    filterset_class = ChecklistTemplateFilter
    ordering = ['name']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return ChecklistTemplateDetailSerializer
        return ChecklistTemplateSerializer
