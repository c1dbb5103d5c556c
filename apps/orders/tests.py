# apps/orders/tests.py
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db.models import ProtectedError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Event, Photo, RecapPhoto
from apps.notifications.models import ReceiptDelivery
from apps.utils.exceptions import BusinessLogicException
from apps.wallet.models import BalanceEntry
from .models import Order, OrderItem, OrderTimeline
from .services import OrderService

User = get_user_model()


def jpeg(name="photo.jpg"):
    return SimpleUploadedFile(name, b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg")


class OrderFixtureMixin:
    def make_catalog(self):
        self.owner = User.objects.create_user(email="owner@example.com", password="pass12345", name="Owner")
        self.event = Event.objects.create(name="Sentul Drag Fest", location="Sentul", created_by=self.owner)
        self.photo = Photo.objects.create(
            event=self.event, class_name="FFA", start_no="12", price=20000,
            image=jpeg(), created_by=self.owner,
        )
        self.photo2 = Photo.objects.create(
            event=self.event, class_name="FFA", start_no="34", price=25000,
            image=jpeg(), created_by=self.owner,
        )

    def make_order(self, *photos):
        order, _ = OrderService.create_order(
            email="buyer@example.com",
            whatsapp="08123456789",
            items=[{"photo_id": p.id, "variant": 1} for p in photos],
        )
        return order


class CreateOrderServiceTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_catalog()

    def test_total_and_snapshots(self):
        order, skipped = OrderService.create_order(
            email="buyer@example.com",
            whatsapp="0812",
            items=[
                {"photo_id": self.photo.id, "variant": 2},
                {"photo_id": self.photo2.id, "variant": 1},
            ],
        )
        self.assertEqual(skipped, [])
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.total_price, 45000)

        items = list(order.items.all())
        self.assertEqual(len(items), 2)
        self.assertEqual(sum(i.price for i in items), order.total_price)
        self.assertEqual(items[0].variant, 2)
        self.assertEqual(items[0].snap_photo_start_no, "12")
        self.assertEqual(items[0].snap_event_name, "Sentul Drag Fest")
        self.assertEqual(items[0].snap_photo_class, "FFA")
        self.assertEqual(items[0].snap_photo_url, self.photo.url)

        self.assertTrue(order.timeline.filter(source=OrderTimeline.Source.CHECKOUT).exists())

    def test_snapshot_survives_catalog_changes(self):
        order = self.make_order(self.photo)
        Photo.objects.filter(pk=self.photo.pk).update(price=99000, start_no="99")
        item = order.items.get()
        self.assertEqual(item.price, 20000)
        self.assertEqual(item.snap_photo_start_no, "12")

    def test_missing_photo_is_skipped_and_reported(self):
        order, skipped = OrderService.create_order(
            email="buyer@example.com",
            whatsapp="",
            items=[{"photo_id": self.photo.id, "variant": 1}, {"photo_id": 424242, "variant": 3}],
        )
        self.assertEqual(order.items.count(), 1)
        self.assertEqual(order.total_price, 20000)
        self.assertEqual(skipped, [{"photoId": 424242, "variant": 3, "reason": "photo_not_found"}])

    def test_empty_cart_rejected(self):
        with self.assertRaises(BusinessLogicException):
            OrderService.create_order(email="buyer@example.com", whatsapp="", items=[])
        self.assertFalse(Order.objects.exists())

    def test_nothing_resolvable_rejected_without_persisting(self):
        with self.assertRaises(BusinessLogicException):
            OrderService.create_order(
                email="buyer@example.com", whatsapp="", items=[{"photo_id": 424242, "variant": 1}],
            )
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())

    def test_items_are_write_once(self):
        order = self.make_order(self.photo)
        item = order.items.get()
        item.price = 1
        with self.assertRaises(ValueError):
            item.save()


class ApplyStatusTests(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.make_catalog()
        self.order = self.make_order(self.photo, self.photo2)

    def test_success_credits_owner_once_and_sends_one_receipt(self):
        with self.captureOnCommitCallbacks(execute=True):
            order, changed = OrderService.apply_status(self.order.id, Order.Status.SUCCESS)
        self.assertTrue(changed)
        self.assertEqual(order.status, Order.Status.SUCCESS)
        self.assertIsNotNone(order.paid_at)

        with self.captureOnCommitCallbacks(execute=True):
            _, changed_again = OrderService.apply_status(self.order.id, Order.Status.SUCCESS)
        self.assertFalse(changed_again)

        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("45000.00"))
        self.assertEqual(BalanceEntry.objects.filter(order=self.order).count(), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["buyer@example.com"])

    def test_success_is_final(self):
        OrderService.apply_status(self.order.id, Order.Status.SUCCESS)
        order, changed = OrderService.apply_status(self.order.id, Order.Status.FAILED)
        self.assertFalse(changed)
        self.assertEqual(order.status, Order.Status.SUCCESS)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.SUCCESS)

    def test_failed_does_not_credit(self):
        with self.captureOnCommitCallbacks(execute=True):
            order, changed = OrderService.apply_status(self.order.id, Order.Status.FAILED)
        self.assertTrue(changed)
        self.assertIsNone(order.paid_at)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("0.00"))
        self.assertEqual(len(mail.outbox), 0)

    def test_failed_is_final(self):
        OrderService.apply_status(self.order.id, Order.Status.FAILED)
        _, changed = OrderService.apply_status(self.order.id, Order.Status.SUCCESS)
        self.assertFalse(changed)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("0.00"))

    def test_receipt_failure_does_not_undo_settlement(self):
        with patch("apps.notifications.services.EmailMultiAlternatives.send", side_effect=OSError("smtp down")):
            with self.captureOnCommitCallbacks(execute=True):
                OrderService.apply_status(self.order.id, Order.Status.SUCCESS)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.SUCCESS)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("45000.00"))
        delivery = ReceiptDelivery.objects.get(order=self.order)
        self.assertEqual(delivery.status, ReceiptDelivery.Status.FAILED)

    def test_losing_the_transition_race_is_a_no_op(self):
        # A concurrent notification settled the order after this caller read it
        stale = Order.objects.get(pk=self.order.pk)
        OrderService.apply_status(self.order.id, Order.Status.SUCCESS)

        locked = MagicMock()
        locked.get.return_value = stale
        with patch.object(Order.objects, "select_for_update", return_value=locked):
            with self.captureOnCommitCallbacks(execute=True):
                order, changed = OrderService.apply_status(self.order.id, Order.Status.SUCCESS)

        self.assertFalse(changed)
        self.assertEqual(order.status, Order.Status.SUCCESS)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("45000.00"))
        self.assertEqual(BalanceEntry.objects.filter(order=self.order).count(), 1)
        self.assertEqual(
            OrderTimeline.objects.filter(order=self.order, status=Order.Status.SUCCESS).count(), 1,
        )
        self.assertEqual(len(mail.outbox), 0)

    def test_credited_order_is_kept_for_the_ledger(self):
        OrderService.apply_status(self.order.id, Order.Status.SUCCESS)
        with self.assertRaises(ProtectedError):
            Order.objects.get(pk=self.order.pk).delete()

    def test_uncredited_order_deletes_with_its_items(self):
        Order.objects.get(pk=self.order.pk).delete()
        self.assertFalse(OrderItem.objects.filter(order_id=self.order.pk).exists())


class OrderAPITests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_catalog()
        self.operator = User.objects.create_user(email="op@example.com", password="pass12345", name="Op")
        self.super_admin = User.objects.create_superuser(email="root@example.com", password="pass12345", name="Root")

    def test_create_order(self):
        resp = self.client.post("/api/v1/orders/", {
            "email": "buyer@example.com",
            "whatsapp": "0812",
            "items": [{"photoId": self.photo.id, "variant": 1}, {"photoId": 424242, "variant": 1}],
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["totalPrice"], 20000)
        self.assertEqual(resp.data["status"], "pending")
        self.assertEqual(len(resp.data["skippedItems"]), 1)

    def test_create_order_with_empty_cart(self):
        resp = self.client.post("/api/v1/orders/", {
            "email": "buyer@example.com", "items": [],
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "empty_cart")

    def test_order_detail(self):
        RecapPhoto.objects.create(photo=self.photo, variant_number=1, image=jpeg("recap.jpg"))
        order = self.make_order(self.photo)
        resp = self.client.get(f"/api/v1/orders/{order.id}/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        item = resp.data["items"][0]
        self.assertEqual(item["startNo"], "12")
        self.assertEqual(item["price"], 20000)
        self.assertIn("recaps/", item["recapUrl"])

    def test_unknown_order_is_404(self):
        resp = self.client.get("/api/v1/orders/999999/")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_status_override_requires_operator(self):
        order = self.make_order(self.photo)
        resp = self.client.put(f"/api/v1/orders/{order.id}/status/", {"status": "success"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_status_override(self):
        order = self.make_order(self.photo)
        self.client.force_authenticate(self.super_admin)

        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.put(f"/api/v1/orders/{order.id}/status/", {"status": "success"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["changed"])

        resp = self.client.put(f"/api/v1/orders/{order.id}/status/", {"status": "failed"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(resp.data["changed"])
        self.assertEqual(resp.data["status"], "success")

        timeline = OrderTimeline.objects.filter(order=order, source=OrderTimeline.Source.OPERATOR)
        self.assertEqual(timeline.get().created_by, self.super_admin)

    def test_plain_admin_cannot_settle_by_hand(self):
        order = self.make_order(self.photo, self.photo2)
        self.client.force_authenticate(self.owner)

        resp = self.client.put(f"/api/v1/orders/{order.id}/status/", {"status": "success"}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PENDING)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("0.00"))
        self.assertFalse(BalanceEntry.objects.exists())

    def test_send_email_requires_paid_order(self):
        order = self.make_order(self.photo)
        self.client.force_authenticate(self.operator)
        resp = self.client.post(f"/api/v1/orders/{order.id}/send-email/")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_send_email_attaches_purchased_file(self):
        order = self.make_order(self.photo)
        OrderService.apply_status(order.id, Order.Status.SUCCESS)
        self.client.force_authenticate(self.operator)

        resp = self.client.post(f"/api/v1/orders/{order.id}/send-email/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertIn(f"#{order.id}", message.subject)
        self.assertEqual(message.attachments[0][0], "foto-12.jpg")
        self.assertIn("Rp 20.000", message.body)

        delivery = ReceiptDelivery.objects.get(order=order, trigger=ReceiptDelivery.Trigger.MANUAL)
        self.assertEqual(delivery.status, ReceiptDelivery.Status.SENT)
        self.assertTrue(delivery.message_id)

    def test_send_email_failure_is_502(self):
        order = self.make_order(self.photo)
        OrderService.apply_status(order.id, Order.Status.SUCCESS)
        self.client.force_authenticate(self.operator)

        with patch("apps.notifications.services.EmailMultiAlternatives.send", side_effect=OSError("smtp down")):
            resp = self.client.post(f"/api/v1/orders/{order.id}/send-email/")
        self.assertEqual(resp.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(resp.data["code"], "delivery_failed")

    def test_transactions_scoped_to_own_photos(self):
        other = User.objects.create_user(email="other@example.com", password="pass12345", name="Other")
        other_event = Event.objects.create(name="Rally", location="Bandung", created_by=other)
        other_photo = Photo.objects.create(event=other_event, class_name="A", start_no="1", price=10000, image=jpeg())

        mine = self.make_order(self.photo)
        theirs = self.make_order(other_photo)

        self.client.force_authenticate(self.owner)
        resp = self.client.get("/api/v1/orders/transactions/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([o["id"] for o in resp.data["results"]], [mine.id])

        # Event creator owns photos without an uploader
        self.client.force_authenticate(other)
        resp = self.client.get("/api/v1/orders/transactions/")
        self.assertEqual([o["id"] for o in resp.data["results"]], [theirs.id])

        self.client.force_authenticate(self.super_admin)
        resp = self.client.get("/api/v1/orders/transactions/")
        self.assertEqual(resp.data["count"], 2)

    def test_transactions_filters(self):
        paid = self.make_order(self.photo)
        self.make_order(self.photo2)
        OrderService.apply_status(paid.id, Order.Status.SUCCESS)

        self.client.force_authenticate(self.super_admin)
        resp = self.client.get("/api/v1/orders/transactions/", {"status": "success"})
        self.assertEqual([o["id"] for o in resp.data["results"]], [paid.id])

        resp = self.client.get("/api/v1/orders/transactions/", {"event": "sentul", "class_name": "ffa"})
        self.assertEqual(resp.data["count"], 2)

    def test_download_requires_payment(self):
        order = self.make_order(self.photo)
        resp = self.client.get(f"/api/v1/orders/{order.id}/items/0/download/")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_download_paid_item(self):
        order = self.make_order(self.photo)
        OrderService.apply_status(order.id, Order.Status.SUCCESS)

        resp = self.client.get(f"/api/v1/orders/{order.id}/items/0/download/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn("foto-12.jpg", resp["Content-Disposition"])
        self.assertEqual(b"".join(resp.streaming_content), b"\xff\xd8\xff\xe0fake-jpeg")

        resp = self.client.get(f"/api/v1/orders/{order.id}/items/5/download/")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)


class DashboardAPITests(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.make_catalog()
        self.other = User.objects.create_user(email="other@example.com", password="pass12345", name="Other")
        other_event = Event.objects.create(name="Rally", location="Bandung", created_by=self.other)
        # No uploader: credited to the event creator
        self.other_photo = Photo.objects.create(
            event=other_event, class_name="A", start_no="1", price=10000, image=jpeg(),
        )
        self.super_admin = User.objects.create_superuser(email="root@example.com", password="pass12345", name="Root")

        self.paid = self.make_order(self.photo, self.photo2)
        self.unpaid = self.make_order(self.photo)
        self.theirs = self.make_order(self.other_photo)
        OrderService.apply_status(self.paid.id, Order.Status.SUCCESS)
        OrderService.apply_status(self.theirs.id, Order.Status.SUCCESS)

    def dashboard(self, user):
        self.client.force_authenticate(user)
        resp = self.client.get("/api/v1/orders/dashboard/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        return resp.data

    def test_requires_login(self):
        resp = self.client.get("/api/v1/orders/dashboard/")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_plain_admin_sees_own_sales(self):
        data = self.dashboard(self.owner)
        self.assertEqual(data["totalEvents"], 1)
        self.assertEqual(data["totalPhotos"], 2)
        self.assertEqual(data["totalOrders"], 1)
        self.assertEqual(data["totalRevenue"], 45000)
        self.assertEqual(data["userBalance"], Decimal("45000.00"))
        self.assertEqual({o["id"] for o in data["recentOrders"]}, {self.paid.id, self.unpaid.id})

    def test_event_creator_owns_photos_without_uploader(self):
        data = self.dashboard(self.other)
        self.assertEqual(data["totalPhotos"], 1)
        self.assertEqual(data["totalOrders"], 1)
        self.assertEqual(data["totalRevenue"], 10000)
        self.assertEqual([o["id"] for o in data["recentOrders"]], [self.theirs.id])

    def test_super_admin_sees_everything(self):
        data = self.dashboard(self.super_admin)
        self.assertEqual(data["totalEvents"], 2)
        self.assertEqual(data["totalPhotos"], 3)
        self.assertEqual(data["totalOrders"], 2)
        self.assertEqual(data["totalRevenue"], 55000)
        self.assertEqual(len(data["recentOrders"]), 3)
