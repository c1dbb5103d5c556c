from rest_framework import serializers


class CreateTokenSerializer(serializers.Serializer):
    orderId = serializers.IntegerField(min_value=1)
