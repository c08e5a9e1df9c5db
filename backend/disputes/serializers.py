from rest_framework import serializers

from .models import Dispute


class DisputeSerializer(serializers.ModelSerializer):
    reported_by = serializers.CharField(source='reported_by.username', read_only=True)
    resolved_by = serializers.CharField(source='resolved_by.username', read_only=True, default=None)

    class Meta:
        model = Dispute
        fields = ['id', 'booking', 'reported_by', 'reporter_role', 'dispute_type',
                  'description', 'status', 'priority', 'resolution', 'admin_notes',
                  'resolved_by', 'resolved_at', 'created_at', 'updated_at']
        read_only_fields = fields


class DisputeCreateSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField()
    dispute_type = serializers.CharField()
    description = serializers.CharField(allow_blank=True)


class DisputeUpdateSerializer(serializers.Serializer):
    status = serializers.CharField(required=False)
    priority = serializers.CharField(required=False)
    resolution = serializers.CharField(required=False, allow_blank=True)
    admin_notes = serializers.CharField(required=False, allow_blank=True)
