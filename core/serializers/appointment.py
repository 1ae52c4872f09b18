import re

import bleach
from rest_framework import serializers

TYPES = ['initial', 'followup', 'discharge', 'consultation', 'other']
STATUSES = ['scheduled', 'confirmed', 'completed', 'cancelled', 'no-show']
HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')


class AppointmentQuerySerializer(serializers.Serializer):
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    doctor = serializers.IntegerField(required=False)
    patient = serializers.IntegerField(required=False)


class AppointmentSerializer(serializers.Serializer):
    patient = serializers.IntegerField()
    doctor = serializers.IntegerField(required=False)
    date = serializers.DateField()
    startTime = serializers.TimeField(format='%H:%M', input_formats=['%H:%M', '%H:%M:%S'])
    endTime = serializers.TimeField(format='%H:%M', input_formats=['%H:%M', '%H:%M:%S'])
    type = serializers.ChoiceField(choices=TYPES, required=False, default='followup')
    status = serializers.ChoiceField(choices=STATUSES, required=False, default='scheduled')
    colorCode = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_colorCode(self, v):
        v = (v or '').strip()
        if v and not HEX_COLOR.match(v):
            raise serializers.ValidationError('colorCode must be a #rrggbb hex color')
        return v

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate(self, attrs):
        start, end = attrs.get('startTime'), attrs.get('endTime')
        if start is not None and end is not None and end <= start:
            raise serializers.ValidationError({'endTime': 'end time must be after start time'})
        return attrs


class AppointmentNoteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_notes(self, v):
        return bleach.clean((v or '').strip(), strip=True)
