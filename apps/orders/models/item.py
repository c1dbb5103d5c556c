from django.db import models
from .order import Order

__all__ = ["OrderItem"]


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    # Photos can be removed from the catalog after purchase; the snapshot survives.
    photo = models.ForeignKey(
        'catalog.Photo',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='order_items',
    )
    variant = models.PositiveSmallIntegerField(default=1)

    # Snapshot fields (write-once, critical for receipts and audit)
    price = models.PositiveIntegerField()
    snap_photo_url = models.CharField(max_length=500, blank=True)
    snap_photo_start_no = models.CharField(max_length=20, blank=True)
    snap_event_name = models.CharField(max_length=255, blank=True)
    snap_photo_class = models.CharField(max_length=100, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_items"
        ordering = ["id"]

    def __str__(self):
        return f"Foto #{self.snap_photo_start_no or self.photo_id} v{self.variant}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Order items are immutable once created.")
        super().save(*args, **kwargs)
