# apps/catalog/admin.py
from django.contrib import admin
from .models import Event, EventClass, Photo, RecapPhoto


class EventClassInline(admin.TabularInline):
    model = EventClass
    extra = 0


class RecapPhotoInline(admin.TabularInline):
    model = RecapPhoto
    extra = 0


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("name", "location", "category", "status", "is_published", "created_by", "start_time")
    list_filter = ("status", "category", "is_published")
    search_fields = ("name", "location")
    inlines = [EventClassInline]


@admin.register(Photo)
class PhotoAdmin(admin.ModelAdmin):
    list_display = ("id", "event", "class_name", "start_no", "price", "created_by")
    list_filter = ("event", "class_name")
    search_fields = ("start_no", "event__name")
    list_select_related = ("event", "created_by")
    inlines = [RecapPhotoInline]
