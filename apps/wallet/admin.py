from django.contrib import admin
from .models import BalanceEntry, WithdrawalRequest


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "account", "amount", "bank_name", "status", "processed_by", "created_at")
    list_filter = ("status", "bank_name")
    search_fields = ("account__email", "account_name", "account_number")
    list_select_related = ("account", "processed_by")
    # Status changes go through the approve/reject endpoints so the ledger stays consistent
    readonly_fields = ("account", "amount", "status", "processed_at", "processed_by", "created_at")


@admin.register(BalanceEntry)
class BalanceEntryAdmin(admin.ModelAdmin):
    list_display = ("id", "account", "kind", "amount", "order", "withdrawal", "created_at")
    list_filter = ("kind",)
    search_fields = ("account__email",)
    list_select_related = ("account",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
