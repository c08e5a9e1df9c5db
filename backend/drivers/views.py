from django.shortcuts import get_object_or_404
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.actors import DriverActor, require_actor
from accounts.permissions import IsPlatformAdmin
from drivers.models import DriverProfile
from drivers.serializers import (
    DriverBasicSerializer,
    DriverProfileSerializer,
    DriverStatusSerializer,
    DriverVerificationSerializer,
    LocationUpdateSerializer,
    NearbyDriversQuerySerializer,
)
from drivers import services


# Utility: Ensure request.user is a driver and return their profile
def require_driver(request):
    return require_actor(request, DriverActor).profile


class DriverProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        profile = require_driver(request)
        serializer = DriverProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def patch(self, request):
        profile = require_driver(request)
        serializer = DriverProfileSerializer(
            profile, data=request.data, partial=True, context={"request": request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data, status=200)


#    HTTP path for presence; the driver WebSocket offers the same operation.
class DriverStatusView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        profile = require_driver(request)
        return Response({
            "online_status": profile.online_status,
            "eligible": services.is_eligible(profile),
            "reason": services.ineligibility_reason(profile),
        })

    def put(self, request):
        profile = require_driver(request)

        serializer = DriverStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        services.toggle_online(
            profile,
            data["online"],
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
        )

        return Response({
            "message": f"Status updated to {profile.online_status}",
            "online_status": profile.online_status,
        })


class DriverLocationUpdateView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        profile = require_driver(request)
        return Response({
            "latitude": float(profile.current_latitude) if profile.current_latitude is not None else None,
            "longitude": float(profile.current_longitude) if profile.current_longitude is not None else None,
            "last_updated": profile.last_location_update,
            "fresh": profile.is_location_fresh(),
            "online_status": profile.online_status,
        })

    def post(self, request):
        profile = require_driver(request)

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        lat = serializer.validated_data["latitude"]
        lon = serializer.validated_data["longitude"]

        services.update_location(profile, lat, lon)

        return Response({
            "message": "Location updated",
            "latitude": lat,
            "longitude": lon,
            "last_updated": profile.last_location_update,
            "online_status": profile.online_status,
        })


# Clients pick a driver from this list before creating a booking.
class NearbyDriversView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = NearbyDriversQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        nearby = services.find_nearby_drivers(
            data["latitude"], data["longitude"], radius_km=data.get("radius_km")
        )
        drivers = [
            {**DriverBasicSerializer(profile).data, "distance_km": distance}
            for profile, distance in nearby
        ]
        return Response({"count": len(drivers), "drivers": drivers})


class AdminDriverVerificationView(APIView):
    permission_classes = [IsPlatformAdmin]

    def patch(self, request, driver_id):
        profile = get_object_or_404(DriverProfile.objects.select_related("user"), pk=driver_id)

        serializer = DriverVerificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.set_driver_verified(request.user, profile, serializer.validated_data["verified"])
        return Response(DriverProfileSerializer(profile, context={"request": request}).data)
