# services/inspection-service/src/apps/api/serializers/schedule.py
"""
Schedule Serializers
"""

from rest_framework import serializers

from apps.core.models import AssetControlSchedule


class AssetControlScheduleSerializer(serializers.ModelSerializer):
    """``is_overdue`` is computed at read time."""

    control_type_code = serializers.CharField(source='control_type.code', read_only=True)
    control_type_label = serializers.CharField(source='control_type.label', read_only=True)
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = AssetControlSchedule
        fields = [
            'id', 'asset_id', 'control_type', 'control_type_code',
            'control_type_label', 'start_date', 'last_done_at',
            'next_due_at', 'is_overdue',
        ]
        read_only_fields = fields

    def get_is_overdue(self, obj) -> bool:
        now = self.context.get('now')
        return obj.is_overdue_at(now) if now else obj.is_overdue


class ScheduleSeedSerializer(serializers.Serializer):
    asset_id = serializers.UUIDField()
    control_type_id = serializers.UUIDField()
    start_date = serializers.DateTimeField()
    next_due_at = serializers.DateTimeField(required=False, allow_null=True)


class DueEntrySerializer(serializers.Serializer):
    schedule = AssetControlScheduleSerializer(read_only=True)
    days_remaining = serializers.IntegerField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)


class DueQuerySerializer(serializers.Serializer):
    window_days = serializers.IntegerField(required=False)
    asset_id = serializers.UUIDField(required=False)
