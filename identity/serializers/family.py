from rest_framework import serializers

from identity.models import FamilyRelationship
from identity.serializers.auth import AccountSummarySerializer
from identity.services.family import NOTES_MAX_LENGTH


class FamilySearchSerializer(serializers.Serializer):
    searchTerm = serializers.CharField(max_length=254)


class FamilyRequestSerializer(serializers.Serializer):
    requestedId = serializers.IntegerField(min_value=1)
    relationship = serializers.ChoiceField(choices=FamilyRelationship.RELATIONSHIP_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=NOTES_MAX_LENGTH, default='')


class FamilyRespondSerializer(serializers.Serializer):
    requestId = serializers.IntegerField(min_value=1)
    status = serializers.ChoiceField(
        choices=FamilyRelationship.DECISIONS,
        error_messages={'invalid_choice': 'Invalid status. Must be "accepted" or "declined"'},
    )


class FamilyRemoveSerializer(serializers.Serializer):
    requestId = serializers.IntegerField(min_value=1)


class FamilyRelationshipSerializer(serializers.ModelSerializer):
    requester = AccountSummarySerializer(read_only=True)
    requested = AccountSummarySerializer(read_only=True)
    requestedAt = serializers.DateTimeField(source='requested_at', read_only=True)
    respondedAt = serializers.DateTimeField(source='responded_at', read_only=True)

    class Meta:
        model = FamilyRelationship
        fields = ['id', 'requester', 'requested', 'relationship', 'status', 'requestedAt', 'respondedAt', 'notes']
        read_only_fields = fields
