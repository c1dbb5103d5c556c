import logging

from celery import shared_task

from .models import ReceiptDelivery
from .services import ReceiptService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def send_order_receipt_task(self, delivery_id: int):
    try:
        delivery = ReceiptDelivery.objects.select_related("order").get(pk=delivery_id)
    except ReceiptDelivery.DoesNotExist:
        logger.error(f"ReceiptDelivery {delivery_id} not found.")
        return

    if delivery.status == ReceiptDelivery.Status.SENT:
        return

    try:
        ReceiptService.deliver(delivery)
    except Exception as exc:
        raise self.retry(exc=exc)
