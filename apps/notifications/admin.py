# apps/notifications/admin.py
from django.contrib import admin

from .models import ReceiptDelivery


@admin.register(ReceiptDelivery)
class ReceiptDeliveryAdmin(admin.ModelAdmin):
    list_display = (
        "order",
        "recipient",
        "trigger",
        "status",
        "attempts",
        "created_at",
        "sent_at",
    )
    list_filter = ("trigger", "status")
    search_fields = ("recipient", "order__id", "message_id")
    readonly_fields = (
        "order",
        "recipient",
        "trigger",
        "status",
        "message_id",
        "error_message",
        "attempts",
        "sent_at",
        "created_at",
    )

    def has_add_permission(self, request):
        return False
