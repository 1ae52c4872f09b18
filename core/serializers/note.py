import json

import bleach
from rest_framework import serializers

from core.serializers.appointment import HEX_COLOR

NOTE_TYPES = ['Progress', 'Consultation', 'Pre-Operative', 'Post-Operative', 'Legal', 'Other']
SORT_FIELDS = {'createdAt': 'created_at', 'updatedAt': 'updated_at', 'title': 'title', 'noteType': 'note_type'}


class CodeListField(serializers.Field):
    """``[{"code": ..., "description": ...}]``, also accepted as a JSON string from multipart forms."""

    default_error_messages = {
        'invalid': 'must be a list of {code, description} objects',
    }

    def to_internal_value(self, data):
        if isinstance(data, str):
            if not data.strip():
                return []
            try:
                data = json.loads(data)
            except ValueError:
                self.fail('invalid')
        if not isinstance(data, list):
            self.fail('invalid')
        codes = []
        for item in data:
            if not isinstance(item, dict) or not isinstance(item.get('code'), str) or not item['code'].strip():
                self.fail('invalid')
            description = item.get('description') or ''
            if not isinstance(description, str):
                self.fail('invalid')
            codes.append({
                'code': bleach.clean(item['code'].strip(), strip=True),
                'description': bleach.clean(description.strip(), strip=True),
            })
        return codes

    def to_representation(self, value):
        return value


class NoteQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=10)
    patient = serializers.IntegerField(required=False)
    doctor = serializers.IntegerField(required=False)
    noteType = serializers.ChoiceField(choices=NOTE_TYPES, required=False)
    search = serializers.CharField(required=False, allow_blank=True, default='')
    sortBy = serializers.ChoiceField(choices=list(SORT_FIELDS), required=False, default='createdAt')
    sortOrder = serializers.ChoiceField(choices=['asc', 'desc'], required=False, default='desc')


class NoteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    content = serializers.CharField()
    patientId = serializers.IntegerField()
    visitId = serializers.IntegerField(required=False, allow_null=True)
    noteType = serializers.ChoiceField(choices=NOTE_TYPES, required=False, default='Progress')
    colorCode = serializers.CharField(required=False, allow_blank=True, default='#FFFFFF')
    diagnosisCodes = CodeListField(required=False, default=list)
    treatmentCodes = CodeListField(required=False, default=list)
    # Attachment ids to drop on update
    removeAttachments = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)

    def validate_title(self, v):
        v = bleach.clean(v.strip(), strip=True)
        if not v:
            raise serializers.ValidationError('This field may not be blank.')
        return v

    def validate_content(self, v):
        return bleach.clean(v, strip=True)

    def validate_colorCode(self, v):
        v = (v or '').strip() or '#FFFFFF'
        if not HEX_COLOR.match(v):
            raise serializers.ValidationError('colorCode must be a #rrggbb hex color')
        return v


class GenerateNoteSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    visitId = serializers.IntegerField(required=False, allow_null=True)
    noteType = serializers.ChoiceField(choices=NOTE_TYPES)
    promptData = serializers.CharField(required=False, allow_blank=True, max_length=5000, default='')

    def validate_promptData(self, v):
        return bleach.clean((v or '').strip(), strip=True)


class NoteTypeQuerySerializer(serializers.Serializer):
    noteType = serializers.ChoiceField(choices=NOTE_TYPES, required=False)
