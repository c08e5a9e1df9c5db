from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.actors import AdminActor, ClientActor, DriverActor, request_actor, require_actor
from accounts.permissions import IsPlatformAdmin
from services import booking_lifecycle as lifecycle
from .models import AdminBookingAction, Booking
from .serializers import (
    AdminBookingActionSerializer,
    AdminOverrideSerializer,
    BookingCreateSerializer,
    BookingReasonSerializer,
    BookingSerializer,
    RatingCreateSerializer,
    RatingSerializer,
)


def _booking_response(result, status_code=status.HTTP_200_OK):
    booking = Booking.objects.select_related('driver__user', 'client').get(pk=result.booking.pk)
    data = {
        **BookingSerializer(booking).data,
        'message': result.message,
    }
    if result.extra:
        data.update(result.extra)
    return Response(data, status=status_code)


# ==================== Shared Booking APIs ====================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bookings(request):
    """
    GET: bookings visible to the caller (own bookings, or all for admins)
    POST: client requests a driver
    """
    if request.method == 'POST':
        return create_booking(request)

    actor = request_actor(request)
    qs = Booking.objects.select_related('driver__user', 'client')
    if isinstance(actor, ClientActor):
        qs = qs.filter(client_id=actor.id)
    elif isinstance(actor, DriverActor):
        qs = qs.filter(driver_id=actor.profile.id)

    booking_status = request.query_params.get('status')
    if booking_status:
        qs = qs.filter(booking_status=booking_status)

    serializer = BookingSerializer(qs[:100], many=True)
    return Response({'count': len(serializer.data), 'bookings': serializer.data})


def create_booking(request):
    client = require_actor(request, ClientActor)

    serializer = BookingCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = lifecycle.create_booking(client, **serializer.validated_data)
    return _booking_response(result, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def booking_detail(request, booking_id):
    booking = lifecycle.get_booking_for_actor(request_actor(request), booking_id)
    return Response(BookingSerializer(booking).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def active_bookings(request):
    """Caller's non-terminal bookings (polling fallback for the change feed)"""
    actor = require_actor(request, ClientActor, DriverActor)
    qs = lifecycle.get_active_bookings(actor)
    serializer = BookingSerializer(qs, many=True)
    return Response({
        'has_active_booking': bool(serializer.data),
        'bookings': serializer.data,
    })


# ==================== Driver Booking Actions ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def accept_booking(request, booking_id):
    driver = require_actor(request, DriverActor)
    return _booking_response(lifecycle.accept_booking(driver, booking_id))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def reject_booking(request, booking_id):
    driver = require_actor(request, DriverActor)
    serializer = BookingReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return _booking_response(
        lifecycle.reject_booking(driver, booking_id, serializer.validated_data['reason'])
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def start_booking(request, booking_id):
    driver = require_actor(request, DriverActor)
    return _booking_response(lifecycle.start_booking(driver, booking_id))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def driver_confirm(request, booking_id):
    driver = require_actor(request, DriverActor)
    return _booking_response(lifecycle.driver_confirm(driver, booking_id))


# ==================== Client Booking Actions ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def client_confirm(request, booking_id):
    client = require_actor(request, ClientActor)
    return _booking_response(lifecycle.client_confirm(client, booking_id))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def decline_completion(request, booking_id):
    client = require_actor(request, ClientActor)
    serializer = BookingReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    return _booking_response(
        lifecycle.decline_completion(client, booking_id, serializer.validated_data['reason'])
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def booking_rating(request, booking_id):
    """
    GET: the booking's rating (participants and admins), null when unrated
    POST: client rates the driver of a completed booking; re-posting replaces the score
    """
    if request.method == 'POST':
        client = require_actor(request, ClientActor)
        serializer = RatingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rating = lifecycle.rate_driver(client, booking_id, **serializer.validated_data)
        return Response(RatingSerializer(rating).data)

    booking = lifecycle.get_booking_for_actor(request_actor(request), booking_id)
    rating = lifecycle.get_booking_rating(booking)
    return Response({'rating': RatingSerializer(rating).data if rating else None})


# ==================== Admin Overrides ====================

@api_view(['POST'])
@permission_classes([IsPlatformAdmin])
def force_complete(request, booking_id):
    admin = require_actor(request, AdminActor)
    serializer = AdminOverrideSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return _booking_response(
        lifecycle.force_complete(admin, booking_id, data['reason'], dispute_id=data.get('dispute_id'))
    )


@api_view(['POST'])
@permission_classes([IsPlatformAdmin])
def force_cancel(request, booking_id):
    admin = require_actor(request, AdminActor)
    serializer = AdminOverrideSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    return _booking_response(
        lifecycle.force_cancel(
            admin,
            booking_id,
            data['reason'],
            refund=data['refund'],
            dispute_id=data.get('dispute_id'),
        )
    )


@api_view(['GET'])
@permission_classes([IsPlatformAdmin])
def booking_admin_actions(request, booking_id):
    """Audit trail of admin overrides on one booking, newest first"""
    actions = AdminBookingAction.objects.select_related('admin').filter(booking_id=booking_id)
    serializer = AdminBookingActionSerializer(actions, many=True)
    return Response({'count': len(serializer.data), 'actions': serializer.data})
