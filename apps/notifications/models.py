# apps/notifications/models.py
from django.db import models

from apps.utils.models import TimestampedModel


class ReceiptDelivery(TimestampedModel):
    """
    One attempt (with retries) to email a purchase receipt.

    - Created when an order settles, or when an operator resends.
    - Then Celery task (or the resend view) sends it.
    """

    class Trigger(models.TextChoices):
        SETTLEMENT = "settlement", "Payment Settled"
        MANUAL = "manual", "Manual Resend"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="receipt_deliveries",
    )
    recipient = models.EmailField()
    trigger = models.CharField(max_length=20, choices=Trigger.choices)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    message_id = models.CharField(max_length=255, blank=True)
    error_message = models.TextField(blank=True)
    attempts = models.PositiveIntegerField(default=0)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "receipt_deliveries"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Receipt #{self.order_id} -> {self.recipient} [{self.status}]"
