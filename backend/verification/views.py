from dataclasses import asdict

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.actors import AdminActor, ClientActor, require_actor
from accounts.permissions import IsPlatformAdmin
from services.identity_verification import (
    review_verification,
    submit_verification,
    verification_status,
)
from .models import ClientVerificationState
from .serializers import (
    ClientVerificationStateSerializer,
    VerificationAttemptSerializer,
    VerificationReviewSerializer,
    VerificationSubmitSerializer,
)

User = get_user_model()


# ==================== Client APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
def submit(request):
    """Submit an 11-digit ID number and a base64 selfie for matching"""
    client = require_actor(request, ClientActor)

    serializer = VerificationSubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = submit_verification(
        client.user,
        serializer.validated_data['id_number'],
        serializer.validated_data['photo'],
    )
    return Response(asdict(result), status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def current_status(request):
    client = require_actor(request, ClientActor)
    return Response(asdict(verification_status(client.user)))


# ==================== Admin APIs ====================

@api_view(['GET'])
@permission_classes([IsPlatformAdmin])
def pending_reviews(request):
    """Clients whose verification is locked or awaiting manual review"""
    states = ClientVerificationState.objects.filter(
        state__in=[ClientVerificationState.STATE_LOCKED, ClientVerificationState.STATE_PENDING_MANUAL]
    ).select_related('client').order_by('last_attempt_at')

    data = []
    for state in states:
        attempts = state.client.verification_attempts.all()[:5]
        data.append({
            **ClientVerificationStateSerializer(state).data,
            'recent_attempts': VerificationAttemptSerializer(attempts, many=True).data,
        })
    return Response({'count': len(data), 'verifications': data})


@api_view(['POST'])
@permission_classes([IsPlatformAdmin])
def review(request, client_id):
    admin = require_actor(request, AdminActor)

    serializer = VerificationReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        client = User.objects.get(pk=client_id, role='client')
    except User.DoesNotExist:
        raise NotFound("Client not found")

    state = review_verification(
        admin.user,
        client,
        serializer.validated_data['action'],
        serializer.validated_data['notes'],
    )
    return Response(ClientVerificationStateSerializer(state).data)
