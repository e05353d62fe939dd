from rest_framework import serializers


class ReportSerializer(serializers.Serializer):
    appointmentId = serializers.IntegerField()
    temperatureCelsius = serializers.DecimalField(max_digits=4, decimal_places=1, required=False, allow_null=True,
                                                  min_value=25, max_value=45)
    pulseBpm = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=300)
    systolicBp = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=300)
    diastolicBp = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=300)
    heightCm = serializers.DecimalField(max_digits=5, decimal_places=1, required=False, allow_null=True,
                                       min_value=30, max_value=280)
    weightKg = serializers.DecimalField(max_digits=5, decimal_places=1, required=False, allow_null=True,
                                       min_value=1, max_value=700)
    waistCm = serializers.DecimalField(max_digits=5, decimal_places=1, required=False, allow_null=True)
    respiratoryRate = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    spo2Percent = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    hipCircumference = serializers.DecimalField(max_digits=5, decimal_places=1, required=False, allow_null=True)
    headCircumference = serializers.DecimalField(max_digits=5, decimal_places=1, required=False, allow_null=True)
    sugar = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)
    urinalysis = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    otherDetails = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ComplaintSerializer(serializers.Serializer):
    appointmentId = serializers.IntegerField()
    appointmentReportId = serializers.IntegerField()
    complaints = serializers.CharField(trim_whitespace=True)
    items = serializers.ListField(child=serializers.JSONField(), required=False)


class ComplaintUpdateSerializer(serializers.Serializer):
    complaintId = serializers.IntegerField()
    complaints = serializers.CharField(required=False, trim_whitespace=True)
    items = serializers.ListField(child=serializers.JSONField(), required=False)
