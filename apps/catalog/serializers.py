# apps/catalog/serializers.py
from rest_framework import serializers
from .models import Event, EventClass, Photo, RecapPhoto


class EventClassSerializer(serializers.ModelSerializer):
    class Meta:
        model = EventClass
        fields = ["id", "name"]


class EventSerializer(serializers.ModelSerializer):
    classes = EventClassSerializer(many=True, read_only=True)
    imageUrl = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = [
            "id",
            "name",
            "date",
            "start_time",
            "location",
            "category",
            "external_link",
            "imageUrl",
            "classes",
        ]

    def get_imageUrl(self, obj):
        return obj.image.url if obj.image else None


class RecapPhotoSerializer(serializers.ModelSerializer):
    url = serializers.CharField(read_only=True)

    class Meta:
        model = RecapPhoto
        fields = ["id", "variant_number", "url"]


class PhotoSerializer(serializers.ModelSerializer):
    startNo = serializers.CharField(source="start_no")
    className = serializers.CharField(source="class_name")
    photoUrl = serializers.CharField(source="url")
    eventName = serializers.CharField(source="event.name")
    recapCount = serializers.SerializerMethodField()

    class Meta:
        model = Photo
        fields = ["id", "event", "eventName", "className", "startNo", "price", "photoUrl", "recapCount"]

    def get_recapCount(self, obj):
        return len(obj.recaps.all())


class PhotoDetailSerializer(PhotoSerializer):
    recaps = RecapPhotoSerializer(many=True, read_only=True)

    class Meta(PhotoSerializer.Meta):
        fields = PhotoSerializer.Meta.fields + ["recaps"]
