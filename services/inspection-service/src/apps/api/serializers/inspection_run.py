# services/inspection-service/src/apps/api/serializers/inspection_run.py
"""
Inspection Run Serializers
"""

from rest_framework import serializers

from apps.core.models import FlowType, InspectionRun, ItemResult


class ItemResultSerializer(serializers.ModelSerializer):
    item_label = serializers.CharField(source='item.label', read_only=True)
    item_number = serializers.CharField(source='item.number', read_only=True)

    class Meta:
        model = ItemResult
        fields = [
            'id', 'item', 'item_label', 'item_number', 'result',
            'value_num', 'value_text', 'comment', 'updated_at',
        ]
        read_only_fields = fields


class InspectionRunListSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    control_type_code = serializers.CharField(source='control_type.code', read_only=True)

    class Meta:
        model = InspectionRun
        fields = [
            'id', 'flow', 'asset_id', 'control_type', 'control_type_code',
            'mission', 'report', 'status', 'status_display', 'conclusion',
            'performer_name', 'completed_at', 'created_at',
        ]
        read_only_fields = fields


class InspectionRunDetailSerializer(InspectionRunListSerializer):
    results = ItemResultSerializer(many=True, read_only=True)
    conclusion_display = serializers.CharField(source='get_conclusion_display', read_only=True)

    class Meta(InspectionRunListSerializer.Meta):
        fields = InspectionRunListSerializer.Meta.fields + [
            'template', 'performer_id', 'signed_by_name', 'signed_at',
            'conclusion_display', 'summary',
            'meter_type', 'meter_value', 'intervention_conditions',
            'operating_modes', 'means_available', 'particulars',
            'results', 'updated_at',
        ]
        read_only_fields = fields


class RunStartSerializer(serializers.Serializer):
    flow = serializers.ChoiceField(choices=FlowType.choices, default=FlowType.SIMPLE)
    asset_id = serializers.UUIDField()
    control_type_id = serializers.UUIDField()
    mission_id = serializers.UUIDField(required=False, allow_null=True)
    report_id = serializers.UUIDField(required=False, allow_null=True)
    template_id = serializers.UUIDField(required=False, allow_null=True)
    asset_category = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ItemResultInputSerializer(serializers.Serializer):
    """Flow vocabulary is checked by the service, not here."""

    item_id = serializers.UUIDField()
    result = serializers.ChoiceField(choices=ItemResult.Result.choices)
    value_num = serializers.DecimalField(
        max_digits=12, decimal_places=3, required=False, allow_null=True
    )
    value_text = serializers.CharField(required=False, allow_blank=True, default='')
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class SubmittedResultSerializer(ItemResultInputSerializer):
    severity = serializers.IntegerField(required=False, min_value=1, max_value=5)


class RunSubmitSerializer(serializers.Serializer):
    results = SubmittedResultSerializer(many=True, required=False, default=list)
    attestation = serializers.BooleanField(default=False)
    signed_by_name = serializers.CharField(required=False, allow_blank=True, default='')
    summary = serializers.CharField(required=False, allow_blank=True, default='')


class RunValidateSerializer(serializers.Serializer):
    conclusion = serializers.ChoiceField(choices=InspectionRun.Conclusion.choices)
    signed_by = serializers.CharField(required=False, allow_blank=True)


class CommentAmendSerializer(serializers.Serializer):
    item_id = serializers.UUIDField()
    comment = serializers.CharField(allow_blank=True)


class RunHeaderSerializer(serializers.Serializer):
    meter_type = serializers.CharField(required=False, allow_blank=True)
    meter_value = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    intervention_conditions = serializers.CharField(required=False, allow_blank=True)
    operating_modes = serializers.CharField(required=False, allow_blank=True)
    means_available = serializers.CharField(required=False, allow_blank=True)
    particulars = serializers.CharField(required=False, allow_blank=True)


class SubmissionResultSerializer(serializers.Serializer):
    conclusion = serializers.CharField()
    created_nc_ids = serializers.ListField(child=serializers.UUIDField())
    created_action_ids = serializers.ListField(child=serializers.UUIDField())
    new_next_due_at = serializers.DateTimeField(allow_null=True)
    run = InspectionRunDetailSerializer()


class ValidationWarningSerializer(serializers.Serializer):
    code = serializers.CharField()
    message = serializers.CharField()
    details = serializers.DictField()


class ValidationResultSerializer(serializers.Serializer):
    open_observation_count = serializers.IntegerField()
    warnings = ValidationWarningSerializer(many=True)
    new_next_due_at = serializers.DateTimeField(allow_null=True)
    run = InspectionRunDetailSerializer()
