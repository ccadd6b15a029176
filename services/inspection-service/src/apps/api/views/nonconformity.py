# services/inspection-service/src/apps/api/views/nonconformity.py
"""
Non-Conformity and Corrective Action API Views
"""

from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from django.utils import timezone
from django_filters import rest_framework as filters

from apps.core.models import CorrectiveAction, NonConformity
from apps.core.services import EntityKind, NonConformityService
from apps.api.serializers import (
    CorrectiveActionCreateSerializer,
    CorrectiveActionSerializer,
    CorrectiveActionUpdateSerializer,
    NonConformityCreateSerializer,
    NonConformitySerializer,
    NonConformityUpdateSerializer,
    StatusTransitionSerializer,
)

from .base import BaseInspectionViewSet


class NonConformityFilter(filters.FilterSet):
    """Filter for non-conformities and observations."""

    status = filters.ChoiceFilter(choices=NonConformity.Status.choices)
    kind = filters.ChoiceFilter(choices=NonConformity.Kind.choices)
    severity = filters.NumberFilter()
    min_severity = filters.NumberFilter(field_name='severity', lookup_expr='gte')
    asset_id = filters.UUIDFilter()
    run = filters.UUIDFilter(field_name='run_id')
    is_auto = filters.BooleanFilter()
    is_open = filters.BooleanFilter(method='filter_is_open')

    class Meta:
        model = NonConformity
        fields = ['status', 'kind', 'severity', 'asset_id', 'run', 'is_auto']

    def filter_is_open(self, queryset, name, value):
        if value:
            return queryset.exclude(status=NonConformity.Status.CLOTUREE)
        return queryset.filter(status=NonConformity.Status.CLOTUREE)


class NonConformityViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseInspectionViewSet
):
    """
    ViewSet for non-conformities.

    Custom actions:
    - transition: status change
    - corrective_action: attach the corrective action
    - statistics: counters
    """

    queryset = NonConformity.objects.select_related('corrective_action')
    serializer_class = NonConformitySerializer
    filterset_class = NonConformityFilter
    search_fields = ['title', 'description']
    ordering_fields = ['created_at', 'severity', 'status']
    ordering = ['-created_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = NonConformityService()

    def create(self, request):
        """Manual non-conformity or observation."""
        serializer = NonConformityCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        nonconformity = self.service.create_nonconformity(self.get_caller(), **serializer.validated_data)
        return Response(NonConformitySerializer(nonconformity).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = NonConformityUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        nonconformity = self.service.update_nonconformity(self.get_caller(), pk, **serializer.validated_data)
        return Response(NonConformitySerializer(nonconformity).data)

    @action(detail=True, methods=['post'])
    def transition(self, request, pk=None):
        serializer = StatusTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        nonconformity = self.service.transition_status(
            EntityKind.NONCONFORMITY, pk, serializer.validated_data['status'], self.get_caller()
        )
        return Response(NonConformitySerializer(nonconformity).data)

    @action(detail=True, methods=['post'], url_path='corrective-action')
    def corrective_action(self, request, pk=None):
        serializer = CorrectiveActionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        corrective_action = self.service.create_corrective_action(
            self.get_caller(), pk, **serializer.validated_data
        )
        return Response(
            CorrectiveActionSerializer(corrective_action).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        asset_id = request.query_params.get('asset_id')
        return Response(self.service.get_statistics(asset_id=asset_id))


class CorrectiveActionFilter(filters.FilterSet):
    """Filter for corrective actions."""

    status = filters.ChoiceFilter(choices=CorrectiveAction.Status.choices)
    owner_id = filters.UUIDFilter()
    nonconformity = filters.UUIDFilter(field_name='nonconformity_id')
    late = filters.BooleanFilter(method='filter_late')

    class Meta:
        model = CorrectiveAction
        fields = ['status', 'owner_id', 'nonconformity']

    def filter_late(self, queryset, name, value):
        open_statuses = [CorrectiveAction.Status.OUVERTE, CorrectiveAction.Status.EN_COURS]
        late = queryset.filter(status__in=open_statuses, due_at__lt=timezone.now())
        if value:
            return late
        return queryset.exclude(id__in=late.values('id'))


class CorrectiveActionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseInspectionViewSet
):
    """
    ViewSet for corrective actions.

    Custom actions:
    - transition: status change (EN_COURS, CLOTUREE, VALIDEE)
    """

    queryset = CorrectiveAction.objects.select_related('nonconformity')
    serializer_class = CorrectiveActionSerializer
    filterset_class = CorrectiveActionFilter
    ordering_fields = ['due_at', 'created_at', 'status']
    ordering = ['due_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = NonConformityService()

    def partial_update(self, request, pk=None):
        serializer = CorrectiveActionUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        corrective_action = self.service.update_corrective_action(
            self.get_caller(), pk, **serializer.validated_data
        )
        return Response(CorrectiveActionSerializer(corrective_action).data)

    @action(detail=True, methods=['post'])
    def transition(self, request, pk=None):
        serializer = StatusTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        corrective_action = self.service.transition_status(
            EntityKind.ACTION, pk, serializer.validated_data['status'], self.get_caller()
        )
        return Response(CorrectiveActionSerializer(corrective_action).data)
