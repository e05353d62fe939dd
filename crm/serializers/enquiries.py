import re

import bleach
from rest_framework import serializers

NAME_RE = re.compile(r'^[A-Za-z\s]+$')
PHONE_RE = re.compile(r'^\d+$')


class EnquirySerializer(serializers.Serializer):
    clinicId = serializers.IntegerField()
    name = serializers.CharField(max_length=128)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=32)
    message = serializers.CharField()

    def validate_name(self, v):
        v = v.strip()
        if not NAME_RE.match(v):
            raise serializers.ValidationError('Name must contain only letters and spaces')
        return v

    def validate_phone(self, v):
        v = v.strip()
        if not PHONE_RE.match(v):
            raise serializers.ValidationError('Phone must contain digits only')
        return v

    def validate_message(self, v):
        v = bleach.clean(v.strip(), strip=True)
        if not v:
            raise serializers.ValidationError('Message is required')
        return v
