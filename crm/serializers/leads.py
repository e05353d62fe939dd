import bleach
from rest_framework import serializers

from crm.models import Lead


class TreatmentSerializer(serializers.Serializer):
    treatment = serializers.CharField(max_length=128)
    subTreatment = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)


class FollowUpSerializer(serializers.Serializer):
    date = serializers.DateTimeField()


class LeadCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=32)
    gender = serializers.ChoiceField(choices=Lead.GENDER_CHOICES)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    treatments = TreatmentSerializer(many=True)
    source = serializers.ChoiceField(choices=Lead.SOURCE_CHOICES)
    customSource = serializers.CharField(required=False, allow_blank=True, max_length=128)
    offerTag = serializers.CharField(required=False, allow_blank=True, max_length=128)
    status = serializers.ChoiceField(choices=Lead.STATUS_CHOICES, required=False)
    customStatus = serializers.CharField(required=False, allow_blank=True, max_length=128)
    notes = serializers.JSONField(required=False)
    followUps = FollowUpSerializer(many=True, required=False)
    assignedTo = serializers.JSONField(required=False)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Name is required')
        return v

    def validate_treatments(self, v):
        if not v:
            raise serializers.ValidationError('At least one treatment is required')
        return v


class LeadFilterSerializer(serializers.Serializer):
    treatment = serializers.CharField(required=False, allow_blank=True)
    offer = serializers.CharField(required=False, allow_blank=True)
    source = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(required=False, allow_blank=True)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
    page = serializers.IntegerField(required=False, default=1)
    limit = serializers.IntegerField(required=False, default=20)

    def validate(self, attrs):
        start, end = attrs.get('startDate'), attrs.get('endDate')
        if start and end and end < start:
            raise serializers.ValidationError({'endDate': 'endDate must not be before startDate'})
        return attrs


class LeadAssignSerializer(serializers.Serializer):
    leadId = serializers.IntegerField()
    assignedTo = serializers.JSONField()


class LeadImportSerializer(serializers.Serializer):
    """Form fields sent alongside an import upload.

    Multipart bodies carry the list fields as JSON strings.
    """
    treatments = serializers.JSONField(required=False)
    source = serializers.ChoiceField(choices=Lead.SOURCE_CHOICES, required=False, default='Instagram')
    customSource = serializers.CharField(required=False, allow_blank=True, max_length=128)
    offerTag = serializers.CharField(required=False, allow_blank=True, max_length=128)
    status = serializers.ChoiceField(choices=Lead.STATUS_CHOICES, required=False, default='New')
    customStatus = serializers.CharField(required=False, allow_blank=True, max_length=128)
    note = serializers.CharField(required=False, allow_blank=True)
    followUpDate = serializers.DateTimeField(required=False, allow_null=True)
    assignedTo = serializers.JSONField(required=False)
    columnMapping = serializers.JSONField(required=False)

    def validate_treatments(self, v):
        if v in (None, ''):
            return []
        if not isinstance(v, list):
            v = [v]
        out = []
        for item in v:
            if isinstance(item, str):
                item = {'treatment': item}
            s = TreatmentSerializer(data=item)
            if not s.is_valid():
                raise serializers.ValidationError('Each treatment needs a treatment name')
            out.append(s.validated_data)
        return out

    def validate_columnMapping(self, v):
        if v in (None, ''):
            return {}
        if not isinstance(v, dict):
            raise serializers.ValidationError('columnMapping must map file columns to lead fields')
        return {str(col): str(field) for col, field in v.items() if field}
