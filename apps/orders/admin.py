from django.contrib import admin
from .models import Order, OrderItem, OrderTimeline


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = (
        'photo', 'variant', 'price',
        'snap_photo_url', 'snap_photo_start_no', 'snap_event_name', 'snap_photo_class',
    )

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderTimelineInline(admin.TabularInline):
    model = OrderTimeline
    extra = 0
    readonly_fields = ('timestamp', 'status', 'source', 'note', 'created_by')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Read-only: status changes go through OrderService so balances stay in sync.
    """
    list_display = ('id', 'email', 'whatsapp', 'status', 'total_price', 'paid_at', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('id', 'email', 'whatsapp', 'gateway_reference')

    inlines = [OrderItemInline, OrderTimelineInline]

    readonly_fields = (
        'id', 'email', 'whatsapp', 'total_price', 'status',
        'snap_token', 'gateway_reference', 'paid_at',
        'created_at', 'updated_at',
    )

    fieldsets = (
        ('Order Details', {
            'fields': ('id', 'status', 'email', 'whatsapp', 'total_price')
        }),
        ('Payment', {
            'fields': ('gateway_reference', 'snap_token', 'paid_at')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    def has_add_permission(self, request):
        return False
