from rest_framework import serializers

from crm.models import MessageTemplate


def _json_list(value, label):
    if value in (None, ''):
        return []
    if not isinstance(value, list):
        raise serializers.ValidationError(f'{label} must be an array')
    return value


class TemplateSerializer(serializers.Serializer):
    templateType = serializers.ChoiceField(choices=MessageTemplate.TYPE_CHOICES)
    name = serializers.CharField(max_length=255)
    uniqueName = serializers.RegexField(r'^[a-z0-9_]+$', max_length=255, error_messages={
        'invalid': 'uniqueName may only contain lowercase letters, digits and underscores',
    })
    category = serializers.ChoiceField(choices=MessageTemplate.CATEGORY_CHOICES, required=False)
    language = serializers.CharField(required=False, max_length=16, default='en')
    subject = serializers.CharField(required=False, allow_blank=True, max_length=255)
    content = serializers.CharField(required=False, allow_blank=True)
    variables = serializers.JSONField(required=False)
    bodyVariableSampleValues = serializers.JSONField(required=False)
    headerText = serializers.CharField(required=False, allow_blank=True, max_length=255)
    headerVariableSampleValues = serializers.JSONField(required=False)
    footer = serializers.CharField(required=False, allow_blank=True, max_length=255)
    templateButtons = serializers.JSONField(required=False)
    clinicId = serializers.IntegerField(required=False)

    def validate_variables(self, v):
        return _json_list(v, 'variables')

    def validate_bodyVariableSampleValues(self, v):
        return _json_list(v, 'bodyVariableSampleValues')

    def validate_headerVariableSampleValues(self, v):
        return _json_list(v, 'headerVariableSampleValues')

    def validate_templateButtons(self, v):
        buttons = _json_list(v, 'templateButtons')
        if any(not isinstance(b, dict) or not b.get('type') for b in buttons):
            raise serializers.ValidationError('Each button needs a type')
        return buttons

    def validate(self, attrs):
        kind = attrs.get('templateType') or getattr(self.instance, 'template_type', None)
        if self.partial:
            return attrs
        if kind == 'whatsapp' and not attrs.get('category'):
            raise serializers.ValidationError({'category': 'category is required for WhatsApp templates'})
        if kind == 'email' and not attrs.get('subject'):
            raise serializers.ValidationError({'subject': 'subject is required for email templates'})
        if not attrs.get('content') and attrs.get('category') != 'authentication':
            raise serializers.ValidationError({'content': 'content is required'})
        return attrs
