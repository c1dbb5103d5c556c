import logging
from typing import List, Tuple

from django.db import transaction
from django.db.models import Count, Sum

from apps.catalog.services import CatalogService
from apps.utils.exceptions import BusinessLogicException, NotFound
from apps.utils.utils import now
from .models import Order, OrderItem, OrderTimeline

logger = logging.getLogger(__name__)

DASHBOARD_RECENT_ORDERS = 5


class OrderService:

    @staticmethod
    def create_order(email: str, whatsapp: str, items: list) -> Tuple[Order, List[dict]]:
        """
        Secure Order Creation:
        1. Resolve each cart line against the catalog (prices are never trusted from the client)
        2. Persist Order + snapshot items (Atomic)

        Returns the order and the cart lines that could not be resolved.
        """
        if not items:
            raise BusinessLogicException("Cart is empty.", code="empty_cart")

        with transaction.atomic():
            lines = CatalogService.resolve_cart_lines(items)
            resolved = [line for line in lines if line.resolved]
            skipped = [
                {"photoId": line.photo_id, "variant": line.variant, "reason": "photo_not_found"}
                for line in lines if not line.resolved
            ]

            if not resolved:
                raise BusinessLogicException(
                    "None of the selected photos are available anymore.",
                    code="nothing_to_order",
                )

            order = Order.objects.create(
                email=email,
                whatsapp=whatsapp or "",
                total_price=sum(line.snapshot.price for line in resolved),
                status=Order.Status.PENDING,
            )

            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    photo_id=line.snapshot.photo_id,
                    variant=line.variant,
                    price=line.snapshot.price,
                    snap_photo_url=line.snapshot.url,
                    snap_photo_start_no=line.snapshot.start_no,
                    snap_event_name=line.snapshot.event_name,
                    snap_photo_class=line.snapshot.class_name,
                ) for line in resolved
            ])

            OrderTimeline.objects.create(
                order=order,
                status=Order.Status.PENDING,
                source=OrderTimeline.Source.CHECKOUT,
                note=f"Order created with {len(resolved)} item(s), waiting for payment.",
            )

        if skipped:
            logger.warning(
                f"Order {order.pk} created without {len(skipped)} unavailable item(s)",
                extra={"order_id": order.pk},
            )
        logger.info(f"Order {order.pk} created, total {order.total_price}", extra={"order_id": order.pk})
        return order, skipped

    @staticmethod
    def get_order(order_id) -> Order:
        try:
            return Order.objects.prefetch_related('items').get(pk=order_id)
        except (Order.DoesNotExist, ValueError):
            raise NotFound("Order not found.")

    @staticmethod
    def _apply_transition(order: Order, target: str) -> bool:
        """
        Compare-and-swap PENDING -> target.
        Returns True only for the caller whose UPDATE actually moved the row.
        """
        fields = {"status": target, "updated_at": now()}
        if target == Order.Status.SUCCESS:
            fields["paid_at"] = fields["updated_at"]

        changed = Order.objects.filter(
            pk=order.pk,
            status=Order.Status.PENDING,
        ).update(**fields)

        if changed:
            for name, value in fields.items():
                setattr(order, name, value)
        return bool(changed)

    @staticmethod
    def apply_status(order_id, target: str, source: str = OrderTimeline.Source.GATEWAY, actor=None, note: str = "") -> Tuple[Order, bool]:
        """
        The only way an order changes status (webhook and operator override).

        Terminal orders are left untouched and reported as unchanged.
        On PENDING -> SUCCESS the owners are credited in the same transaction
        and the receipt is queued after commit.
        """
        from apps.wallet.services import BalanceLedger
        from apps.notifications.services import queue_order_receipt

        if target not in Order.Status.values:
            raise BusinessLogicException(f"Unknown order status '{target}'.", code="invalid_status")

        with transaction.atomic():
            try:
                order = Order.objects.select_for_update().get(pk=order_id)
            except (Order.DoesNotExist, ValueError):
                raise NotFound("Order not found.")

            if order.status == target or order.status != Order.Status.PENDING:
                logger.info(
                    f"Order {order.pk} already {order.status}, ignoring -> {target}",
                    extra={"order_id": order.pk},
                )
                return order, False

            changed = OrderService._apply_transition(order, target)
            if not changed:
                # Lost the race to a concurrent notification
                order.refresh_from_db()
                return order, False

            OrderTimeline.objects.create(
                order=order,
                status=target,
                source=source,
                note=note,
                created_by=actor,
            )

            if target == Order.Status.SUCCESS:
                BalanceLedger.credit_order(order)
                transaction.on_commit(lambda: queue_order_receipt(order.pk))

        logger.info(f"Order {order.pk} -> {target} ({source})", extra={"order_id": order.pk})
        return order, True

    @staticmethod
    def send_receipt(order_id):
        """
        Manual resend by an operator. Synchronous so the caller sees failures.
        """
        from apps.notifications.models import ReceiptDelivery
        from apps.notifications.services import ReceiptService

        order = OrderService.get_order(order_id)
        if order.status != Order.Status.SUCCESS:
            raise BusinessLogicException("Receipts can only be sent for paid orders.", code="order_not_paid")

        delivery = ReceiptService.create_delivery(order, trigger=ReceiptDelivery.Trigger.MANUAL)
        return ReceiptService.deliver(delivery, raise_on_error=True)

    @staticmethod
    def dashboard(account) -> dict:
        """
        Operator dashboard figures. Super admins see everything; plain admins
        only what the owner rule credits to them.
        """
        from apps.catalog.models import Event, Photo

        paid_items = OrderItem.objects.filter(order__status=Order.Status.SUCCESS)
        orders = Order.objects.all()
        events = Event.objects.all()
        photos = Photo.objects.all()

        if not account.is_super_admin:
            paid_items = paid_items.filter(CatalogService.owned_by(account, "photo__"))
            orders = orders.filter(CatalogService.owned_by(account, "items__photo__")).distinct()
            events = events.filter(created_by=account)
            photos = photos.filter(CatalogService.owned_by(account))

        sales = paid_items.aggregate(
            revenue=Sum("price"),
            orders=Count("order", distinct=True),
        )
        account.refresh_from_db(fields=["balance"])

        return {
            "total_events": events.count(),
            "total_photos": photos.count(),
            "total_orders": sales["orders"],
            "total_revenue": sales["revenue"] or 0,
            "balance": account.balance,
            "recent_orders": list(
                orders.prefetch_related("items").order_by("-created_at")[:DASHBOARD_RECENT_ORDERS]
            ),
        }
