from rest_framework import serializers

from .models import CommissionConfig, Settlement


class CommissionConfigSerializer(serializers.ModelSerializer):
    created_by = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = CommissionConfig
        fields = ['version', 'percentage', 'created_by', 'created_at']
        read_only_fields = fields


class CommissionUpdateSerializer(serializers.Serializer):
    percentage = serializers.DecimalField(max_digits=5, decimal_places=2)


class SettlementSerializer(serializers.ModelSerializer):
    class Meta:
        model = Settlement
        fields = ['booking', 'total_fare', 'commission_percentage', 'commission_version',
                  'platform_share', 'driver_share', 'settled', 'payout_reference',
                  'payout_attempts', 'last_payout_error', 'created_at', 'settled_at']
        read_only_fields = fields
