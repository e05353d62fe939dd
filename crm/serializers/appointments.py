from rest_framework import serializers

from crm.models import Appointment


class AppointmentSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    doctorId = serializers.IntegerField()
    roomId = serializers.IntegerField()
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES)
    followType = serializers.ChoiceField(choices=Appointment.FOLLOW_TYPE_CHOICES)
    startDate = serializers.DateField()
    fromTime = serializers.TimeField()
    toTime = serializers.TimeField()
    referral = serializers.CharField(required=False, allow_blank=True, max_length=64)
    emergency = serializers.ChoiceField(choices=['yes', 'no'], required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    bookedFrom = serializers.ChoiceField(choices=['doctor', 'room'], required=False)


class AppointmentQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    doctorId = serializers.IntegerField(required=False)
    roomId = serializers.IntegerField(required=False)


class AllAppointmentsQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Appointment.STATUS_CHOICES, required=False)
    fromDate = serializers.DateField(required=False)
    toDate = serializers.DateField(required=False)
    doctorId = serializers.IntegerField(required=False)
    search = serializers.CharField(required=False, allow_blank=True)
    page = serializers.IntegerField(required=False, default=1)
    limit = serializers.IntegerField(required=False, default=20)
