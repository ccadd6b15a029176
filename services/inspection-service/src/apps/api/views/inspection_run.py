# services/inspection-service/src/apps/api/views/inspection_run.py
"""
Inspection Run API Views
"""

from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters import rest_framework as filters

from apps.core.models import FlowType, InspectionRun
from apps.core.services import InspectionService
from shared.common.permissions import IsAuthenticated, IsValidator
from apps.api.serializers import (
    CommentAmendSerializer,
    InspectionRunDetailSerializer,
    InspectionRunListSerializer,
    ItemResultInputSerializer,
    ItemResultSerializer,
    RunHeaderSerializer,
    RunStartSerializer,
    RunSubmitSerializer,
    RunValidateSerializer,
    SubmissionResultSerializer,
    ValidationResultSerializer,
)

from .base import BaseInspectionViewSet


class InspectionRunFilter(filters.FilterSet):
    """Filter for inspection runs."""

    flow = filters.ChoiceFilter(choices=FlowType.choices)
    status = filters.ChoiceFilter(choices=InspectionRun.Status.choices)
    conclusion = filters.ChoiceFilter(choices=InspectionRun.Conclusion.choices)
    asset_id = filters.UUIDFilter()
    control_type = filters.UUIDFilter(field_name='control_type_id')
    mission = filters.UUIDFilter(field_name='mission_id')
    report = filters.UUIDFilter(field_name='report_id')

    class Meta:
        model = InspectionRun
        fields = ['flow', 'status', 'conclusion', 'asset_id', 'control_type', 'mission', 'report']


class InspectionRunViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    BaseInspectionViewSet
):
    """
    ViewSet for inspection runs.

    Custom actions:
    - results: record one answer
    - comment: amend the comment of an answered item (VGP)
    - header: update the VGP header
    - submit: submit a SIMPLE run
    - validate: validate a VGP run
    """

    queryset = InspectionRun.objects.select_related('control_type').prefetch_related('results__item')
    filterset_class = InspectionRunFilter
    ordering_fields = ['created_at', 'completed_at']
    ordering = ['-created_at']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = InspectionService()

    def get_serializer_class(self):
        if self.action == 'list':
            return InspectionRunListSerializer
        return InspectionRunDetailSerializer

    def create(self, request):
        """Start a draft run."""
        serializer = RunStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        run = self.service.start_run(self.get_caller(), **serializer.validated_data)
        return Response(
            InspectionRunDetailSerializer(self.service.get_run(run.id)).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'])
    def results(self, request, pk=None):
        serializer = ItemResultInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        item_result = self.service.record_item_result(
            self.get_caller(),
            run_id=pk,
            item_id=data['item_id'],
            result=data['result'],
            value_num=data.get('value_num'),
            value_text=data.get('value_text', ''),
            comment=data.get('comment', ''),
        )
        return Response(ItemResultSerializer(item_result).data)

    @action(detail=True, methods=['post'])
    def comment(self, request, pk=None):
        serializer = CommentAmendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item_result = self.service.amend_item_comment(
            self.get_caller(), run_id=pk, **serializer.validated_data
        )
        return Response(ItemResultSerializer(item_result).data)

    @action(detail=True, methods=['patch'])
    def header(self, request, pk=None):
        serializer = RunHeaderSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        run = self.service.update_run_header(self.get_caller(), pk, **serializer.validated_data)
        return Response(InspectionRunDetailSerializer(run).data)

    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        serializer = RunSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = self.service.submit_inspection(
            self.get_caller(), run_id=pk, **serializer.validated_data
        )
        return Response(SubmissionResultSerializer(outcome).data)

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsValidator])
    def validate(self, request, pk=None):
        serializer = RunValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = self.service.validate_run(
            self.get_caller(), run_id=pk, **serializer.validated_data
        )
        return Response(ValidationResultSerializer(outcome).data)
