import logging
import re
import secrets
from typing import Optional, Tuple

from django.conf import settings
from django.db import transaction

from apps.orders.models import Order, OrderTimeline
from apps.orders.services import OrderService
from apps.utils.exceptions import BusinessLogicException, InvalidGatewayReference, NotFound
from apps.utils.utils import epoch_millis, now
from .gateway import GatewayToken, get_gateway
from .models import PaymentNotification

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = ("capture", "settlement")
FAILED_STATUSES = ("deny", "cancel", "expire")


class PaymentService:
    """
    Service to handle the Midtrans payment lifecycle.
    """

    @staticmethod
    def build_gateway_reference(order_id) -> str:
        """
        '<PREFIX>-<orderId>-<suffix>', unique per call so a retried
        token request never collides with an earlier Midtrans transaction.
        """
        suffix = f"{epoch_millis()}{secrets.token_hex(3)}"
        return f"{settings.MIDTRANS_ORDER_PREFIX}-{order_id}-{suffix}"

    @staticmethod
    def parse_gateway_reference(reference) -> Tuple[int, str]:
        pattern = re.compile(rf"^{re.escape(settings.MIDTRANS_ORDER_PREFIX)}-(\d+)-([0-9A-Za-z]+)$")
        match = pattern.match(reference or "")
        if not match:
            raise InvalidGatewayReference("Invalid order ID format.")
        return int(match.group(1)), match.group(2)

    @staticmethod
    def resolve_target_status(transaction_status: str, fraud_status: Optional[str]) -> Optional[str]:
        """
        Maps a gateway status onto an order status.
        None means the notification carries no transition (challenge, refund, unknown...).
        """
        if transaction_status in SUCCESS_STATUSES:
            if not fraud_status or fraud_status == "accept":
                return Order.Status.SUCCESS
            return None
        if transaction_status in FAILED_STATUSES:
            return Order.Status.FAILED
        if transaction_status == "pending":
            return Order.Status.PENDING
        return None

    @staticmethod
    def create_token(order_id) -> GatewayToken:
        """
        1. Load order (no transaction held during the gateway call)
        2. Open a Snap transaction
        3. Persist token + reference in one UPDATE
        """
        order = OrderService.get_order(order_id)
        if order.status != Order.Status.PENDING:
            raise BusinessLogicException(
                f"Order is not in a payable state: {order.status}",
                code="order_not_payable",
            )

        reference = PaymentService.build_gateway_reference(order.pk)
        line_items = [
            {
                "id": str(item.pk),
                "price": int(item.price),
                "quantity": 1,
                "name": f"Foto #{item.snap_photo_start_no or 'N/A'}",
            }
            for item in order.items.all()
        ]

        token = get_gateway().create_transaction(
            order_ref=reference,
            amount=order.total_price,
            buyer={"email": order.email, "phone": order.whatsapp or ""},
            line_items=line_items,
        )

        Order.objects.filter(pk=order.pk).update(
            snap_token=token.token,
            gateway_reference=reference,
            updated_at=now(),
        )
        logger.info(
            f"Snap token issued for order {order.pk}",
            extra={"order_id": order.pk, "gateway_reference": reference},
        )
        return token

    @staticmethod
    def process_notification(payload: dict) -> dict:
        """
        Idempotent webhook processor.

        Verification and reference parsing happen before any DB access;
        the status change itself goes through OrderService.apply_status.
        """
        notification = get_gateway().verify_notification(payload)
        order_id, _ = PaymentService.parse_gateway_reference(notification.order_ref)
        target = PaymentService.resolve_target_status(
            notification.transaction_status,
            notification.fraud_status,
        )

        log_extra = {"order_id": order_id, "gateway_reference": notification.order_ref}
        logger.info(
            f"Midtrans notification {notification.transaction_status}/{notification.fraud_status}",
            extra=log_extra,
        )

        with transaction.atomic():
            order = Order.objects.select_for_update().filter(pk=order_id).first()
            if order is None:
                logger.error(f"Notification for unknown order {order_id}", extra=log_extra)
                raise NotFound("Order not found.")

            if target is None:
                outcome = PaymentNotification.Outcome.IGNORED
                logger.warning(
                    f"Ignoring notification status '{notification.transaction_status}' "
                    f"(fraud: {notification.fraud_status})",
                    extra=log_extra,
                )
            elif target == Order.Status.PENDING:
                outcome = PaymentNotification.Outcome.PENDING
            else:
                order, changed = OrderService.apply_status(
                    order.pk,
                    target,
                    source=OrderTimeline.Source.GATEWAY,
                    note=f"Midtrans {notification.transaction_status} ({notification.transaction_id})",
                )
                outcome = (
                    PaymentNotification.Outcome.APPLIED if changed
                    else PaymentNotification.Outcome.DUPLICATE
                )

            PaymentNotification.objects.create(
                order=order,
                gateway_reference=notification.order_ref,
                transaction_id=notification.transaction_id,
                transaction_status=notification.transaction_status,
                fraud_status=notification.fraud_status or "",
                payment_type=notification.payment_type,
                outcome=outcome,
                payload=notification.raw,
            )

        return {
            "status": outcome,
            "orderId": order.pk,
            "orderStatus": order.status,
        }
