from rest_framework import serializers

from crm.services.permissions import validate_permission_entries


class PermissionDocSerializer(serializers.Serializer):
    permissions = serializers.JSONField()

    def validate_permissions(self, v):
        try:
            return validate_permission_entries(v)
        except ValueError as e:
            raise serializers.ValidationError(str(e))


class ClinicPermissionSerializer(PermissionDocSerializer):
    clinicId = serializers.IntegerField()
    role = serializers.ChoiceField(choices=['clinic', 'doctor', 'agent', 'admin'], default='clinic')


class AgentPermissionSerializer(PermissionDocSerializer):
    agentId = serializers.IntegerField()
