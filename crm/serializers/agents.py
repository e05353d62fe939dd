from rest_framework import serializers


class AgentCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    password = serializers.CharField(min_length=6, write_only=True)
    role = serializers.ChoiceField(choices=['agent', 'doctorStaff'], required=False, default='agent')


class AgentActionSerializer(serializers.Serializer):
    agentId = serializers.IntegerField()
    action = serializers.ChoiceField(choices=['approve', 'decline', 'resetPassword'])
    newPassword = serializers.CharField(required=False, allow_blank=True, write_only=True)
