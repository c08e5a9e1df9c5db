from rest_framework import serializers
from django.contrib.auth import get_user_model

from drivers.serializers import DriverBasicSerializer
from .models import AdminBookingAction, Booking, Rating

User = get_user_model()


class ClientBasicSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'full_name', 'phone_number']


class BookingSerializer(serializers.ModelSerializer):
    """Serializer for Bookings"""
    client = ClientBasicSerializer(read_only=True)
    driver = DriverBasicSerializer(read_only=True)
    settlement = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = ['id', 'client', 'driver', 'start_location', 'destination',
                  'start_latitude', 'start_longitude', 'destination_latitude',
                  'destination_longitude', 'distance_km', 'duration_hr',
                  'scheduled_time', 'hourly_rate', 'total_cost', 'booking_status',
                  'payment_status', 'driver_confirmed', 'driver_confirmed_at',
                  'client_confirmed', 'client_confirmed_at', 'created_at',
                  'accepted_at', 'started_at', 'completed_at', 'cancelled_at',
                  'cancellation_reason', 'settlement']
        read_only_fields = fields

    def get_settlement(self, obj):
        settlement = getattr(obj, 'settlement', None)
        if settlement is None:
            return None
        return {
            'total_fare': str(settlement.total_fare),
            'driver_share': str(settlement.driver_share),
            'platform_share': str(settlement.platform_share),
            'commission_percentage': str(settlement.commission_percentage),
            'settled': settlement.settled,
        }


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for creating bookings"""
    driver_id = serializers.IntegerField()
    start_location = serializers.CharField()
    destination = serializers.CharField()
    start_latitude = serializers.FloatField()
    start_longitude = serializers.FloatField()
    destination_latitude = serializers.FloatField()
    destination_longitude = serializers.FloatField()
    duration_hr = serializers.DecimalField(max_digits=6, decimal_places=2)
    distance_km = serializers.DecimalField(max_digits=10, decimal_places=3, required=False, allow_null=True)
    scheduled_time = serializers.DateTimeField(required=False, allow_null=True)


class BookingReasonSerializer(serializers.Serializer):
    """Optional free-text reason (reject, decline completion)"""
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class AdminOverrideSerializer(serializers.Serializer):
    """Payload for force-complete / force-cancel"""
    reason = serializers.CharField(allow_blank=True)
    dispute_id = serializers.IntegerField(required=False, allow_null=True)
    refund = serializers.BooleanField(required=False, default=False)


class AdminBookingActionSerializer(serializers.ModelSerializer):
    """Audit trail row for an admin override"""
    admin_username = serializers.CharField(source='admin.username', read_only=True)

    class Meta:
        model = AdminBookingAction
        fields = ['id', 'booking', 'admin', 'admin_username', 'action_type', 'previous_status',
                  'new_status', 'reason', 'dispute', 'metadata', 'created_at']
        read_only_fields = fields


class RatingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Rating
        fields = ['id', 'booking', 'driver', 'score', 'review', 'created_at', 'updated_at']
        read_only_fields = fields


class RatingCreateSerializer(serializers.Serializer):
    """Client rating of the driver (1-5) with an optional review"""
    score = serializers.IntegerField()
    review = serializers.CharField(required=False, allow_blank=True, default="")
