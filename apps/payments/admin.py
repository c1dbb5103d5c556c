from django.contrib import admin
from .models import PaymentNotification


@admin.register(PaymentNotification)
class PaymentNotificationAdmin(admin.ModelAdmin):
    list_display = ('gateway_reference', 'order', 'transaction_status', 'fraud_status', 'outcome', 'created_at')
    list_filter = ('outcome', 'transaction_status', 'created_at')
    search_fields = ('gateway_reference', 'transaction_id', 'order__id')
    readonly_fields = ('payload',)

    def has_add_permission(self, request):
        return False
