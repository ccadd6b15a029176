# services/inspection-service/src/apps/api/serializers/mission.py
"""
Mission and VGP Report Serializers
"""

from rest_framework import serializers

from apps.core.models import Mission, VgpReport

from .inspection_run import InspectionRunListSerializer


class MissionSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    control_type_code = serializers.CharField(source='control_type.code', read_only=True)

    class Meta:
        model = Mission
        fields = [
            'id', 'control_type', 'control_type_code', 'site_id',
            'scheduled_at', 'assigned_to', 'asset_ids', 'status',
            'status_display', 'cancellation_reason', 'completed_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class MissionCreateSerializer(serializers.Serializer):
    control_type_id = serializers.UUIDField()
    site_id = serializers.UUIDField()
    asset_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True)
    assigned_to = serializers.UUIDField(required=False, allow_null=True)


class MissionTransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Mission.Status.choices)
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class VgpReportSerializer(serializers.ModelSerializer):
    runs = InspectionRunListSerializer(many=True, read_only=True)

    class Meta:
        model = VgpReport
        fields = [
            'id', 'client_id', 'site_id', 'report_number', 'report_date',
            'signatory', 'summary', 'has_observations', 'finalized_at',
            'runs', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ReportAssetSerializer(serializers.Serializer):
    asset_id = serializers.UUIDField()
    asset_category = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class VgpReportCreateSerializer(serializers.Serializer):
    client_id = serializers.UUIDField()
    site_id = serializers.UUIDField()
    control_type_id = serializers.UUIDField()
    assets = ReportAssetSerializer(many=True)
    report_date = serializers.DateTimeField(required=False, allow_null=True)
    signatory = serializers.CharField(required=False, allow_blank=True, default='')


class VgpReportFinalizeSerializer(serializers.Serializer):
    summary = serializers.CharField(required=False, allow_blank=True)
    signatory = serializers.CharField(required=False, allow_blank=True)
