# apps/notifications/services.py
import logging
import mimetypes
from email.utils import make_msgid

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone

from apps.catalog.services import CatalogService
from apps.utils.exceptions import NotificationDeliveryError
from apps.utils.utils import format_idr
from .models import ReceiptDelivery

logger = logging.getLogger(__name__)


def _receipt_context(order, items) -> dict:
    return {
        "brand": settings.RECEIPT_BRAND_NAME,
        "order": order,
        "date": timezone.localtime(order.created_at),
        "items": [
            {
                "index": i,
                "event_name": item.snap_event_name or "Event",
                "start_no": item.snap_photo_start_no or "-",
                "variant": item.variant,
                "price": format_idr(item.price),
            }
            for i, item in enumerate(items, start=1)
        ],
        "total": format_idr(order.total_price),
    }


def _attach_purchased_files(message, items) -> int:
    """
    Attaches the file bought for each item; missing files are skipped.
    """
    attached = 0
    for item in items:
        label = item.snap_photo_start_no or str(item.photo_id or item.pk)
        asset = CatalogService.resolve_variant_asset(item.photo, item.variant, label=label)
        if asset is None:
            logger.warning(f"Receipt for order {item.order_id}: no file for item {item.pk}")
            continue
        try:
            with asset.file.open("rb") as fh:
                content = fh.read()
        except OSError as e:
            logger.warning(f"Receipt for order {item.order_id}: cannot read {asset.file.name}: {e}")
            continue

        mimetype = mimetypes.guess_type(asset.filename)[0] or "application/octet-stream"
        message.attach(asset.filename, content, mimetype)
        attached += 1
    return attached


def build_receipt_message(order, recipient: str):
    items = list(order.items.select_related("photo"))
    context = _receipt_context(order, items)

    message_id = make_msgid(domain=settings.EMAIL_MESSAGE_ID_DOMAIN)
    message = EmailMultiAlternatives(
        subject=f"Struk Pembelian Foto - Order #{order.pk}",
        body=render_to_string("notifications/order_receipt.txt", context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[recipient],
        headers={"Message-ID": message_id},
    )
    message.attach_alternative(
        render_to_string("notifications/order_receipt.html", context),
        "text/html",
    )
    _attach_purchased_files(message, items)
    return message, message_id


class ReceiptService:

    @staticmethod
    def create_delivery(order, trigger: str) -> ReceiptDelivery:
        return ReceiptDelivery.objects.create(
            order=order,
            recipient=order.email,
            trigger=trigger,
        )

    @staticmethod
    def deliver(delivery: ReceiptDelivery, raise_on_error: bool = False) -> ReceiptDelivery:
        """
        Sends the receipt and records the result on `delivery`.

        Failures are recorded then re-raised: as NotificationDeliveryError
        when `raise_on_error` (synchronous callers), untouched otherwise so
        the Celery task can retry.
        """
        delivery.attempts += 1
        try:
            message, message_id = build_receipt_message(delivery.order, delivery.recipient)
            message.send(fail_silently=False)
        except Exception as exc:
            delivery.status = ReceiptDelivery.Status.FAILED
            delivery.error_message = str(exc)[:2000]
            delivery.save(update_fields=["status", "error_message", "attempts", "updated_at"])
            logger.exception(
                f"Receipt delivery {delivery.pk} failed",
                extra={"order_id": delivery.order_id},
            )
            if raise_on_error:
                raise NotificationDeliveryError("Failed to send receipt email.")
            raise

        delivery.status = ReceiptDelivery.Status.SENT
        delivery.message_id = message_id
        delivery.error_message = ""
        delivery.sent_at = timezone.now()
        delivery.save(update_fields=["status", "message_id", "error_message", "attempts", "sent_at", "updated_at"])
        logger.info(
            f"Receipt for order {delivery.order_id} sent to {delivery.recipient}",
            extra={"order_id": delivery.order_id},
        )
        return delivery


def queue_order_receipt(order_id):
    """
    Main entry point after settlement (runs on commit).
    Never raises: the payment is already final.
    """
    from apps.orders.models import Order
    from .tasks import send_order_receipt_task

    try:
        order = Order.objects.get(pk=order_id)
        delivery = ReceiptService.create_delivery(order, trigger=ReceiptDelivery.Trigger.SETTLEMENT)
        send_order_receipt_task.delay(delivery.pk)
    except Exception:
        logger.exception(f"Could not queue receipt for order {order_id}", extra={"order_id": order_id})
        return None
    return delivery
