import bleach
from rest_framework import serializers


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class FormTemplateQuerySerializer(serializers.Serializer):
    isActive = serializers.BooleanField(required=False, allow_null=True, default=None)
    isPublic = serializers.BooleanField(required=False, allow_null=True, default=None)
    createdBy = serializers.IntegerField(required=False)
    search = serializers.CharField(required=False, allow_blank=True)


class FormTemplateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    isActive = serializers.BooleanField(required=False, default=True)
    isPublic = serializers.BooleanField(required=False, default=False)
    language = serializers.ChoiceField(choices=['english', 'spanish', 'bilingual'], required=False, default='english')
    items = serializers.ListField(child=serializers.JSONField(), required=False, default=list)

    def validate_title(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('title is required')
        return v

    def validate_description(self, v):
        return _clean(v)


class FormResponseQuerySerializer(serializers.Serializer):
    patient = serializers.IntegerField(required=False)
    formTemplate = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=['incomplete', 'completed', 'reviewed'], required=False)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)


class RespondentSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    relationship = serializers.CharField(required=False, allow_blank=True, max_length=64)


class FormResponseCreateSerializer(serializers.Serializer):
    formTemplate = serializers.IntegerField()
    patient = serializers.IntegerField(required=False, allow_null=True)
    respondent = RespondentSerializer(required=False)
    responses = serializers.ListField(child=serializers.JSONField(), required=False, default=list)
    status = serializers.ChoiceField(choices=['incomplete', 'completed'], required=False, default='incomplete')


class FormResponseUpdateSerializer(serializers.Serializer):
    respondent = RespondentSerializer(required=False)
    responses = serializers.ListField(child=serializers.JSONField(), required=False)
    status = serializers.ChoiceField(choices=['incomplete', 'completed', 'reviewed'], required=False)
