# services/inspection-service/src/apps/api/serializers/nonconformity.py
"""
Non-Conformity and Corrective Action Serializers
"""

from rest_framework import serializers

from apps.core.models import CorrectiveAction, NonConformity


class CorrectiveActionSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = CorrectiveAction
        fields = [
            'id', 'nonconformity', 'owner_id', 'description', 'due_at',
            'status', 'status_display', 'closed_at', 'validated_by',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class NonConformitySerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    kind_display = serializers.CharField(source='get_kind_display', read_only=True)
    corrective_action = serializers.SerializerMethodField()

    class Meta:
        model = NonConformity
        fields = [
            'id', 'kind', 'kind_display', 'run', 'asset_id', 'checklist_item',
            'item_number', 'title', 'description', 'recommendation',
            'severity', 'status', 'status_display', 'is_auto',
            'created_by', 'closed_at', 'closed_by', 'corrective_action',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_corrective_action(self, obj):
        # 0..1: observations never carry one
        action = getattr(obj, 'corrective_action', None)
        if action is None:
            return None
        return CorrectiveActionSerializer(action).data


class NonConformityCreateSerializer(serializers.Serializer):
    asset_id = serializers.UUIDField()
    title = serializers.CharField(max_length=500)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    recommendation = serializers.CharField(required=False, allow_blank=True, default='')
    severity = serializers.IntegerField(required=False, min_value=1, max_value=5)
    kind = serializers.ChoiceField(choices=NonConformity.Kind.choices, default=NonConformity.Kind.NC)
    run_id = serializers.UUIDField(required=False, allow_null=True)
    checklist_item_id = serializers.UUIDField(required=False, allow_null=True)


class NonConformityUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=500, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    recommendation = serializers.CharField(required=False, allow_blank=True)
    severity = serializers.IntegerField(required=False, min_value=1, max_value=5)


class StatusTransitionSerializer(serializers.Serializer):
    status = serializers.CharField()


class CorrectiveActionCreateSerializer(serializers.Serializer):
    description = serializers.CharField()
    owner_id = serializers.UUIDField(required=False, allow_null=True)
    due_at = serializers.DateTimeField(required=False, allow_null=True)


class CorrectiveActionUpdateSerializer(serializers.Serializer):
    description = serializers.CharField(required=False)
    owner_id = serializers.UUIDField(required=False, allow_null=True)
    due_at = serializers.DateTimeField(required=False)
