from rest_framework import serializers


class SendWhatsAppSerializer(serializers.Serializer):
    to = serializers.CharField(max_length=32)
    message = serializers.CharField(max_length=4096)
    id = serializers.CharField(required=False, allow_blank=True, max_length=128)
    clinicId = serializers.IntegerField(required=False)


class ConversationQuerySerializer(serializers.Serializer):
    status = serializers.CharField(required=False, default='all')
    search = serializers.CharField(required=False, allow_blank=True)
    page = serializers.IntegerField(required=False, default=1)
    limit = serializers.IntegerField(required=False, default=20)


class AssignConversationSerializer(serializers.Serializer):
    ownerId = serializers.IntegerField(required=False, allow_null=True)
    clinicId = serializers.IntegerField(required=False)
