import bleach
from rest_framework import serializers

PRIORITIES = ['low', 'medium', 'high']
STATUSES = ['pending', 'in-progress', 'completed']


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class TaskListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False)
    assignedTo = serializers.IntegerField(required=False)
    patient = serializers.IntegerField(required=False)
    dueDate = serializers.DateField(required=False)
    search = serializers.CharField(required=False, allow_blank=True)


class TaskCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False, default='medium')
    status = serializers.ChoiceField(choices=STATUSES, required=False, default='pending')
    dueDate = serializers.DateTimeField(required=False, allow_null=True)
    assignedTo = serializers.IntegerField()
    patient = serializers.IntegerField()

    def validate_title(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('title is required')
        return v

    def validate_description(self, v):
        return _clean(v)


class TaskUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False)
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    dueDate = serializers.DateTimeField(required=False, allow_null=True)
    assignedTo = serializers.IntegerField(required=False)
    patient = serializers.IntegerField(required=False)

    def validate_title(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('title must not be empty')
        return v

    def validate_description(self, v):
        return _clean(v)
