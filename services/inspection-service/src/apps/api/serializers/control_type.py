# services/inspection-service/src/apps/api/serializers/control_type.py
"""
Control Type and Checklist Serializers
"""

from rest_framework import serializers

from apps.core.models import ControlType, ChecklistTemplate, ChecklistItem


class ControlTypeSerializer(serializers.ModelSerializer):
    """Serializer for ControlType."""

    class Meta:
        model = ControlType
        fields = [
            'id', 'code', 'label', 'description', 'periodicity_days',
            'active', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ControlTypeCreateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    label = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    periodicity_days = serializers.IntegerField(min_value=0, default=0)


class ControlTypeUpdateSerializer(serializers.Serializer):
    """``code`` is accepted only to reject changes to it."""

    code = serializers.CharField(max_length=50, required=False)
    label = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    periodicity_days = serializers.IntegerField(min_value=0, required=False)


class ChecklistItemSerializer(serializers.ModelSerializer):
    field_type_display = serializers.CharField(
        source='get_field_type_display',
        read_only=True
    )

    class Meta:
        model = ChecklistItem
        fields = [
            'id', 'label', 'field_type', 'field_type_display', 'required',
            'help_text', 'sort_order', 'number', 'section_code',
            'section_title', 'active',
        ]


class ChecklistTemplateSerializer(serializers.ModelSerializer):
    flow_display = serializers.CharField(source='get_flow_display', read_only=True)
    control_type_code = serializers.CharField(source='control_type.code', read_only=True)

    class Meta:
        model = ChecklistTemplate
        fields = [
            'id', 'control_type', 'control_type_code', 'asset_category',
            'name', 'flow', 'flow_display', 'created_at',
        ]


class ChecklistTemplateDetailSerializer(ChecklistTemplateSerializer):
    items = serializers.SerializerMethodField()

    class Meta(ChecklistTemplateSerializer.Meta):
        fields = ChecklistTemplateSerializer.Meta.fields + ['items']

    def get_items(self, obj):
        return ChecklistItemSerializer(obj.active_items(), many=True).data
