from rest_framework import serializers
from drivers.models import DriverProfile


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Full driver profile serializer
    """
    username = serializers.CharField(source="user.username", read_only=True)
    full_name = serializers.CharField(source="user.full_name", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)
    location_fresh = serializers.SerializerMethodField()

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "user_id",
            "username",
            "full_name",
            "phone_number",
            "verified",
            "hourly_rate",
            "rating",
            "total_trips",
            "payout_account",
            "online_status",
            "current_latitude",
            "current_longitude",
            "last_location_update",
            "location_fresh",
        ]
        read_only_fields = [
            "id",
            "user_id",
            "verified",
            "rating",
            "total_trips",
            "online_status",
            "current_latitude",
            "current_longitude",
            "last_location_update",
        ]

    def get_location_fresh(self, obj):
        return obj.is_location_fresh()

    def validate_hourly_rate(self, value):
        if value <= 0:
            raise serializers.ValidationError("Hourly rate must be positive")
        return value


class DriverBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of driver info for booking details.
    """
    username = serializers.CharField(source="user.username", read_only=True)
    full_name = serializers.CharField(source="user.full_name", read_only=True)
    phone_number = serializers.CharField(source="user.phone_number", read_only=True)

    class Meta:
        model = DriverProfile
        fields = [
            "id",
            "user_id",
            "username",
            "full_name",
            "phone_number",
            "hourly_rate",
            "rating",
        ]


class DriverStatusSerializer(serializers.Serializer):
    """
    Serializer for toggling driver presence. Coordinates are optional and,
    when given, are persisted before the online check.
    """
    online = serializers.BooleanField()
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)

    def validate(self, attrs):
        if ("latitude" in attrs) != ("longitude" in attrs):
            raise serializers.ValidationError("latitude and longitude must be sent together")
        return attrs


class LocationUpdateSerializer(serializers.Serializer):
    """
    Serializer for updating driver GPS location.
    """
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)


class NearbyDriversQuerySerializer(serializers.Serializer):
    """
    Query params for driver discovery.
    """
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    radius_km = serializers.FloatField(required=False, min_value=0.1, max_value=100)


class DriverVerificationSerializer(serializers.Serializer):
    verified = serializers.BooleanField()
