from django.db import models
from apps.utils.models import TimestampedModel

__all__ = ["Order"]


class Order(TimestampedModel):
    """
    One checkout attempt by a (guest) buyer.

    `status` only moves pending -> success | failed, and only through
    OrderService.apply_status.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending Payment"
        SUCCESS = "success", "Paid"
        FAILED = "failed", "Failed"

    TERMINAL_STATUSES = (Status.SUCCESS, Status.FAILED)

    email = models.EmailField()
    whatsapp = models.CharField(max_length=30, blank=True)

    total_price = models.PositiveIntegerField(help_text="IDR, sum of item prices at creation")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)

    # Gateway linkage (audit / support lookup)
    snap_token = models.CharField(max_length=255, blank=True, null=True)
    gateway_reference = models.CharField(max_length=50, blank=True, null=True, db_index=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]

    def __str__(self):
        return f"#{self.pk} [{self.status}]"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES
