from rest_framework import serializers

from crm.models import Offer


class OfferSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=Offer.TYPE_CHOICES, default='percentage')
    value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    currency = serializers.CharField(required=False, max_length=8)
    code = serializers.CharField(required=False, allow_blank=True, max_length=64)
    startsAt = serializers.DateTimeField()
    endsAt = serializers.DateTimeField()
    status = serializers.ChoiceField(choices=Offer.STATUS_CHOICES, required=False)
    treatments = serializers.ListField(child=serializers.CharField(max_length=128), required=False)
    maxUses = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate(self, attrs):
        starts, ends = attrs.get('startsAt'), attrs.get('endsAt')
        if starts and ends and ends <= starts:
            raise serializers.ValidationError({'endsAt': 'endsAt must be after startsAt'})
        # partial updates are checked against the stored offer
        kind = attrs.get('type') or getattr(self.instance, 'type', 'percentage')
        value = attrs.get('value', getattr(self.instance, 'value', None))
        if kind == 'percentage' and value is not None and value > 100:
            raise serializers.ValidationError({'value': 'Percentage offers cannot exceed 100'})
        return attrs
