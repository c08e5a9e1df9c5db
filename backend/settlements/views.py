from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.actors import AdminActor, require_actor
from accounts.permissions import IsPlatformAdmin
from services.settlement import current_commission, publish_commission
from .models import CommissionConfig
from .serializers import CommissionConfigSerializer, CommissionUpdateSerializer


@api_view(['GET', 'PUT'])
@permission_classes([IsPlatformAdmin])
def commission_settings(request):
    """
    GET: commission currently in effect plus recent versions
    PUT: publish a new version {"percentage": 12.5}
    """
    if request.method == 'PUT':
        admin = require_actor(request, AdminActor)
        serializer = CommissionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        config = publish_commission(admin.user, serializer.validated_data['percentage'])
        return Response(CommissionConfigSerializer(config).data, status=status.HTTP_200_OK)

    percentage, version = current_commission()
    history = CommissionConfig.objects.select_related('created_by')[:10]
    return Response({
        'percentage': str(percentage),
        'version': version,
        'history': CommissionConfigSerializer(history, many=True).data,
    })
