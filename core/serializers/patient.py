import bleach
from rest_framework import serializers


class PatientListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=10)
    search = serializers.CharField(required=False, allow_blank=True, default='')


class SendFormSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')
    instructions = serializers.CharField(required=False, allow_blank=True, max_length=2000, default='')
    language = serializers.ChoiceField(choices=['english', 'spanish'], required=False, default='english')
    patientId = serializers.IntegerField(required=False, allow_null=True)

    def validate_name(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate_instructions(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class FieldChangesSerializer(serializers.Serializer):
    changes = serializers.DictField(child=serializers.JSONField(), allow_empty=False)
