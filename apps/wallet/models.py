from django.conf import settings
from django.db import models
from django.db.models import Q
from apps.utils.models import TimestampedModel


class WithdrawalRequest(TimestampedModel):
    """
    Payout request raised by a photo owner against their balance.
    The balance is only debited when a super admin approves it.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="withdrawal_requests",
    )
    amount = models.DecimalField(max_digits=15, decimal_places=2)

    bank_name = models.CharField(max_length=100)
    account_number = models.CharField(max_length=50)
    account_name = models.CharField(max_length=255)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    admin_notes = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    class Meta:
        db_table = "withdrawal_requests"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="withdrawal_amount_positive",
            ),
        ]

    def __str__(self):
        return f"WD#{self.pk} {self.account_id} {self.amount} [{self.status}]"

    @property
    def is_pending(self):
        return self.status == self.Status.PENDING


class BalanceEntry(models.Model):
    """
    Immutable ledger of all balance movements.
    Sum of an account's entries equals its balance.
    """

    class Kind(models.TextChoices):
        SALE = "sale", "Photo Sale"
        WITHDRAWAL = "withdrawal", "Withdrawal"

    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="balance_entries",
    )
    kind = models.CharField(max_length=20, choices=Kind.choices)
    amount = models.DecimalField(max_digits=15, decimal_places=2, help_text="Signed delta (+/-)")

    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="balance_entries",
    )
    withdrawal = models.ForeignKey(
        WithdrawalRequest,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="balance_entries",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "balance_entries"
        ordering = ["-created_at", "-id"]
        constraints = [
            # One sale credit per (order, owner)
            models.UniqueConstraint(
                fields=["order", "account"],
                condition=Q(kind="sale"),
                name="uniq_sale_entry_per_order_account",
            ),
        ]

    def __str__(self):
        return f"{self.account_id} {self.kind} {self.amount:+}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Balance entries are append-only.")
        super().save(*args, **kwargs)

