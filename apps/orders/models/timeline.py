from django.db import models
from django.conf import settings
from .order import Order

__all__ = ["OrderTimeline"]


class OrderTimeline(models.Model):
    """
    Append-only history of status changes.
    """

    class Source(models.TextChoices):
        CHECKOUT = "checkout", "Checkout"
        GATEWAY = "gateway", "Payment Gateway"
        OPERATOR = "operator", "Operator"

    order = models.ForeignKey(Order, related_name="timeline", on_delete=models.CASCADE)

    status = models.CharField(max_length=20)  # Stores the status *after* change
    source = models.CharField(max_length=20, choices=Source.choices)
    note = models.TextField(blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL
    )

    class Meta:
        db_table = "order_timeline"
        ordering = ["-timestamp", "-id"]

    def __str__(self):
        return f"{self.order_id} -> {self.status} ({self.source})"
