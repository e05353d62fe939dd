import bleach
from rest_framework import serializers

from crm.models import Patient


class PatientRegistrationSerializer(serializers.Serializer):
    firstName = serializers.CharField(max_length=128)
    lastName = serializers.CharField(required=False, allow_blank=True, max_length=128)
    gender = serializers.ChoiceField(choices=Patient.GENDER_CHOICES, required=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    mobileNumber = serializers.RegexField(r'^\+?\d{6,15}$', max_length=32)
    emrNumber = serializers.CharField(required=False, allow_blank=True, max_length=32)

    def validate_firstName(self, v):
        v = bleach.clean(v.strip(), strip=True)
        if not v:
            raise serializers.ValidationError('First name is required')
        return v


class PatientImportSerializer(serializers.Serializer):
    columnMapping = serializers.JSONField(required=False)

    def validate_columnMapping(self, v):
        if v in (None, ''):
            return {}
        if not isinstance(v, dict):
            raise serializers.ValidationError('Invalid column mapping format')
        return {str(col): str(field) for col, field in v.items() if field}
