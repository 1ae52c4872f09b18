from rest_framework import serializers


class CalendarConnectSerializer(serializers.Serializer):
    accessToken = serializers.CharField()
    refreshToken = serializers.CharField(required=False, allow_blank=True, default='')
    expiryDate = serializers.IntegerField(required=False, allow_null=True, min_value=0)
