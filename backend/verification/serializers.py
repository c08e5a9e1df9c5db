from rest_framework import serializers

from .models import ClientVerificationState, VerificationAttempt


class VerificationSubmitSerializer(serializers.Serializer):
    id_number = serializers.CharField()
    photo = serializers.CharField(trim_whitespace=True)


class VerificationReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=["approve", "reject", "unlock"])
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ClientVerificationStateSerializer(serializers.ModelSerializer):
    client_id = serializers.IntegerField(source='client.id', read_only=True)
    username = serializers.CharField(source='client.username', read_only=True)
    attempts_remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = ClientVerificationState
        fields = ['client_id', 'username', 'state', 'attempts_count', 'attempts_remaining',
                  'last_confidence_score', 'last_attempt_at', 'verified_at', 'reference_id']
        read_only_fields = fields


class VerificationAttemptSerializer(serializers.ModelSerializer):
    class Meta:
        model = VerificationAttempt
        fields = ['id', 'status', 'confidence_score', 'failure_reason', 'reviewer', 'created_at']
        read_only_fields = fields
