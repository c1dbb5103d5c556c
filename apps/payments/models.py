from django.db import models
from apps.utils.models import TimestampedModel


class PaymentNotification(TimestampedModel):
    """
    Audit log of every verified gateway notification and what it did.
    """

    class Outcome(models.TextChoices):
        APPLIED = "applied", "Applied"
        DUPLICATE = "duplicate", "Duplicate / Already Final"
        PENDING = "pending", "Still Pending"
        IGNORED = "ignored", "Ignored"

    order = models.ForeignKey(
        "orders.Order",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payment_notifications",
    )
    gateway_reference = models.CharField(max_length=50, db_index=True)
    transaction_id = models.CharField(max_length=100, blank=True, db_index=True)
    transaction_status = models.CharField(max_length=30)
    fraud_status = models.CharField(max_length=30, blank=True)
    payment_type = models.CharField(max_length=50, blank=True)

    outcome = models.CharField(max_length=20, choices=Outcome.choices)
    payload = models.JSONField(default=dict)

    class Meta:
        db_table = "payment_notifications"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.gateway_reference} {self.transaction_status} -> {self.outcome}"
