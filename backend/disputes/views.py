from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.actors import AdminActor, ClientActor, DriverActor, require_actor
from accounts.permissions import IsPlatformAdmin
from services.disputes import open_dispute, update_dispute
from .models import Dispute
from .serializers import DisputeCreateSerializer, DisputeSerializer, DisputeUpdateSerializer


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def disputes(request):
    """
    GET: disputes the caller reported
    POST: raise a dispute on one of the caller's bookings
    """
    actor = require_actor(request, ClientActor, DriverActor)

    if request.method == 'POST':
        serializer = DisputeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        dispute = open_dispute(actor, data['booking_id'], data['dispute_type'], data['description'])
        return Response(DisputeSerializer(dispute).data, status=status.HTTP_201_CREATED)

    qs = Dispute.objects.filter(reported_by=actor.user).select_related('reported_by', 'resolved_by')
    return Response(DisputeSerializer(qs, many=True).data)


@api_view(['GET'])
@permission_classes([IsPlatformAdmin])
def admin_disputes(request):
    """All disputes, optionally filtered by ?status="""
    qs = Dispute.objects.select_related('reported_by', 'resolved_by')
    dispute_status = request.query_params.get('status')
    if dispute_status:
        qs = qs.filter(status=dispute_status)
    return Response(DisputeSerializer(qs[:200], many=True).data)


@api_view(['PATCH'])
@permission_classes([IsPlatformAdmin])
def admin_update_dispute(request, dispute_id):
    admin = require_actor(request, AdminActor)
    serializer = DisputeUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    dispute = update_dispute(admin, dispute_id, **serializer.validated_data)
    return Response(DisputeSerializer(dispute).data)
