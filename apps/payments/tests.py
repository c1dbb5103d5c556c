import threading
from decimal import Decimal
from unittest import skipUnless
from unittest.mock import MagicMock, patch

import requests
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import connection
from django.test import TestCase, TransactionTestCase
from midtransclient.error_midtrans import MidtransAPIError
from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Event, Photo
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.utils.exceptions import (
    InvalidGatewayReference,
    NotificationVerificationError,
    PaymentGatewayError,
)
from apps.wallet.models import BalanceEntry
from .gateway import GatewayToken, MidtransGateway
from .models import PaymentNotification
from .services import PaymentService

User = get_user_model()

NOTIFICATION_URL = "/api/v1/payment/notification/"
CREATE_TOKEN_URL = "/api/v1/payment/create-token/"


def jpeg():
    return SimpleUploadedFile("photo.jpg", b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg")


def signed_notification(order_ref, transaction_status="settlement", fraud_status="accept",
                        gross_amount="20000.00", status_code="200", transaction_id="tx-1"):
    payload = {
        "order_id": order_ref,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "transaction_status": transaction_status,
        "transaction_id": transaction_id,
        "payment_type": "qris",
        "signature_key": MidtransGateway().signature_for(order_ref, status_code, gross_amount),
    }
    if fraud_status is not None:
        payload["fraud_status"] = fraud_status
    return payload


class PaymentFixtureMixin:
    def make_order(self, price=20000, owner=None, photo_id=None):
        if owner is None:
            owner = User.objects.create_user(
                email=f"owner{User.objects.count()}@example.com", password="pass12345", name="Owner",
            )
        event = Event.objects.create(name="Sentul Drag Fest", location="Sentul", created_by=owner)
        fields = dict(event=event, class_name="FFA", start_no="12", price=price, image=jpeg())
        if photo_id is not None:
            fields["id"] = photo_id
        photo = Photo.objects.create(**fields)
        order, _ = OrderService.create_order(
            email="buyer@example.com", whatsapp="0812", items=[{"photo_id": photo.id, "variant": 1}],
        )
        return order, owner, photo


class GatewayReferenceTests(TestCase):

    def test_build_then_parse(self):
        reference = PaymentService.build_gateway_reference(42)
        self.assertTrue(reference.startswith("RACEPHOTO-42-"))
        order_id, suffix = PaymentService.parse_gateway_reference(reference)
        self.assertEqual(order_id, 42)
        self.assertTrue(suffix)

    def test_references_are_unique_per_call(self):
        self.assertNotEqual(
            PaymentService.build_gateway_reference(1),
            PaymentService.build_gateway_reference(1),
        )

    def test_malformed_references(self):
        for bad in ["", "RACEPHOTO-abc-123", "OTHER-1-123", "RACEPHOTO-1-", "xRACEPHOTO-1-abc", "RACEPHOTO-1-ab$c"]:
            with self.subTest(reference=bad):
                with self.assertRaises(InvalidGatewayReference):
                    PaymentService.parse_gateway_reference(bad)

    def test_status_mapping(self):
        resolve = PaymentService.resolve_target_status
        self.assertEqual(resolve("settlement", None), Order.Status.SUCCESS)
        self.assertEqual(resolve("capture", "accept"), Order.Status.SUCCESS)
        self.assertIsNone(resolve("capture", "challenge"))
        self.assertEqual(resolve("expire", None), Order.Status.FAILED)
        self.assertEqual(resolve("deny", "deny"), Order.Status.FAILED)
        self.assertEqual(resolve("cancel", None), Order.Status.FAILED)
        self.assertEqual(resolve("pending", None), Order.Status.PENDING)
        self.assertIsNone(resolve("refund", None))
        self.assertIsNone(resolve("failure", None))


class MidtransGatewayTests(TestCase):

    @patch("apps.payments.gateway.midtransclient.Snap")
    def test_create_transaction(self, snap_cls):
        snap_cls.return_value.create_transaction.return_value = {
            "token": "snap-123", "redirect_url": "https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-123",
        }
        token = MidtransGateway().create_transaction(
            order_ref="RACEPHOTO-1-abc",
            amount=20000,
            buyer={"email": "buyer@example.com", "phone": "0812"},
            line_items=[{"id": "1", "price": 20000, "quantity": 1, "name": "Foto #12"}],
        )
        self.assertEqual(token, GatewayToken("snap-123", "https://app.sandbox.midtrans.com/snap/v2/vtweb/snap-123"))

        param = snap_cls.return_value.create_transaction.call_args[0][0]
        self.assertEqual(param["transaction_details"], {"order_id": "RACEPHOTO-1-abc", "gross_amount": 20000})
        self.assertEqual(param["customer_details"]["email"], "buyer@example.com")

    @patch("apps.payments.gateway.midtransclient.Snap")
    def test_gateway_errors_are_wrapped(self, snap_cls):
        for error in (MidtransAPIError("rejected", {}, 400, ""), requests.ConnectionError("timeout")):
            with self.subTest(error=type(error).__name__):
                snap_cls.return_value.create_transaction.side_effect = error
                with self.assertRaises(PaymentGatewayError):
                    MidtransGateway().create_transaction("RACEPHOTO-1-abc", 20000, {}, [])

    def test_signature_is_checked(self):
        payload = signed_notification("RACEPHOTO-1-abc")
        notification = MidtransGateway().verify_notification(payload)
        self.assertEqual(notification.order_ref, "RACEPHOTO-1-abc")
        self.assertEqual(notification.transaction_status, "settlement")

        payload["gross_amount"] = "1.00"
        with self.assertRaises(NotificationVerificationError):
            MidtransGateway().verify_notification(payload)

    def test_missing_signature(self):
        payload = signed_notification("RACEPHOTO-1-abc")
        del payload["signature_key"]
        with self.assertRaises(NotificationVerificationError):
            MidtransGateway().verify_notification(payload)

    def test_status_api_answer_wins(self):
        payload = signed_notification("RACEPHOTO-1-abc", transaction_status="settlement")
        gateway = MidtransGateway(verify_with_api=True)
        core = MagicMock()
        core.transactions.notification.return_value = {
            "order_id": "RACEPHOTO-1-abc", "transaction_status": "expire", "transaction_id": "tx-1",
        }
        with patch.object(MidtransGateway, "_core", return_value=core):
            notification = gateway.verify_notification(payload)
        self.assertEqual(notification.transaction_status, "expire")

    def test_status_api_failure_rejects_notification(self):
        payload = signed_notification("RACEPHOTO-1-abc")
        core = MagicMock()
        core.transactions.notification.side_effect = MidtransAPIError("not found", {}, 404, "")
        with patch.object(MidtransGateway, "_core", return_value=core):
            with self.assertRaises(NotificationVerificationError):
                MidtransGateway(verify_with_api=True).verify_notification(payload)

    def test_status_check_needs_transaction_id(self):
        payload = signed_notification("RACEPHOTO-1-abc")
        del payload["transaction_id"]
        core = MagicMock()
        with patch.object(MidtransGateway, "_core", return_value=core):
            with self.assertRaises(NotificationVerificationError):
                MidtransGateway(verify_with_api=True).verify_notification(payload)
        core.transactions.notification.assert_not_called()

    def test_status_check_with_incomplete_payload(self):
        payload = signed_notification("RACEPHOTO-1-abc")
        core = MagicMock()
        core.transactions.notification.side_effect = KeyError("transaction_id")
        with patch.object(MidtransGateway, "_core", return_value=core):
            with self.assertRaises(NotificationVerificationError):
                MidtransGateway(verify_with_api=True).verify_notification(payload)


class CreateTokenTests(PaymentFixtureMixin, APITestCase):

    def setUp(self):
        self.order, self.owner, self.photo = self.make_order()

    @patch("apps.payments.services.get_gateway")
    def test_create_token(self, get_gateway):
        get_gateway.return_value.create_transaction.return_value = GatewayToken("snap-123", "https://pay/snap-123")

        resp = self.client.post(CREATE_TOKEN_URL, {"orderId": self.order.id}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["token"], "snap-123")
        self.assertEqual(resp.data["redirectUrl"], "https://pay/snap-123")

        kwargs = get_gateway.return_value.create_transaction.call_args.kwargs
        self.assertEqual(kwargs["amount"], 20000)
        self.assertEqual(kwargs["buyer"], {"email": "buyer@example.com", "phone": "0812"})
        self.assertEqual(kwargs["line_items"][0]["name"], "Foto #12")
        self.assertEqual(kwargs["line_items"][0]["quantity"], 1)

        self.order.refresh_from_db()
        self.assertEqual(self.order.snap_token, "snap-123")
        self.assertEqual(self.order.gateway_reference, kwargs["order_ref"])
        self.assertEqual(PaymentService.parse_gateway_reference(kwargs["order_ref"])[0], self.order.id)

    @patch("apps.payments.services.get_gateway")
    def test_gateway_failure_leaves_order_untouched(self, get_gateway):
        get_gateway.return_value.create_transaction.side_effect = PaymentGatewayError("down")

        resp = self.client.post(CREATE_TOKEN_URL, {"orderId": self.order.id}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_502_BAD_GATEWAY)

        self.order.refresh_from_db()
        self.assertIsNone(self.order.snap_token)
        self.assertIsNone(self.order.gateway_reference)
        self.assertEqual(self.order.status, Order.Status.PENDING)

    @patch("apps.payments.services.get_gateway")
    def test_unknown_order(self, get_gateway):
        resp = self.client.post(CREATE_TOKEN_URL, {"orderId": 999999}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        get_gateway.return_value.create_transaction.assert_not_called()

    @patch("apps.payments.services.get_gateway")
    def test_paid_order_is_not_payable(self, get_gateway):
        OrderService.apply_status(self.order.id, Order.Status.SUCCESS)
        resp = self.client.post(CREATE_TOKEN_URL, {"orderId": self.order.id}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        get_gateway.return_value.create_transaction.assert_not_called()


class NotificationTests(PaymentFixtureMixin, APITestCase):

    def setUp(self):
        self.order, self.owner, self.photo = self.make_order()
        self.reference = PaymentService.build_gateway_reference(self.order.id)

    def post(self, payload):
        return self.client.post(NOTIFICATION_URL, payload, format="json")

    def test_settlement_marks_success_and_credits(self):
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.post(signed_notification(self.reference))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "applied")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.SUCCESS)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("20000.00"))
        self.assertEqual(len(mail.outbox), 1)

    def test_duplicate_notification_credits_once(self):
        payload = signed_notification(self.reference)
        with self.captureOnCommitCallbacks(execute=True):
            self.post(payload)
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.post(payload)

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "duplicate")
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("20000.00"))
        self.assertEqual(BalanceEntry.objects.filter(order=self.order).count(), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(
            list(PaymentNotification.objects.order_by("id").values_list("outcome", flat=True)),
            ["applied", "duplicate"],
        )

    def test_success_is_final(self):
        self.post(signed_notification(self.reference))
        resp = self.post(signed_notification(self.reference, transaction_status="expire", fraud_status=None))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.SUCCESS)

    def test_expire_marks_failed(self):
        resp = self.post(signed_notification(self.reference, transaction_status="expire", fraud_status=None))
        self.assertEqual(resp.data["status"], "applied")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.FAILED)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("0.00"))

    def test_pending_keeps_order_pending(self):
        resp = self.post(signed_notification(self.reference, transaction_status="pending", fraud_status=None))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "pending")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_challenge_is_ignored(self):
        resp = self.post(signed_notification(self.reference, transaction_status="capture", fraud_status="challenge"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "ignored")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertEqual(PaymentNotification.objects.get().outcome, "ignored")

    def test_bad_signature_is_403_and_writes_nothing(self):
        payload = signed_notification(self.reference)
        payload["signature_key"] = "0" * 128
        resp = self.post(payload)
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertFalse(PaymentNotification.objects.exists())

    def test_malformed_reference_is_rejected_without_lookup(self):
        payload = signed_notification("RACEPHOTO-abc-123")
        with self.assertNumQueries(0):
            with self.assertRaises(InvalidGatewayReference):
                PaymentService.process_notification(payload)

        resp = self.post(payload)
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "invalid_reference")

    def test_unknown_order_is_404(self):
        resp = self.post(signed_notification(PaymentService.build_gateway_reference(999999)))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(PaymentNotification.objects.exists())

    def test_two_owners_split(self):
        owner_a = User.objects.create_user(email="a@example.com", password="pass12345", name="A")
        owner_b = User.objects.create_user(email="b@example.com", password="pass12345", name="B")
        event = Event.objects.create(name="Rally", location="Bandung")
        photo_a = Photo.objects.create(event=event, class_name="A", start_no="1", price=15000,
                                       image=jpeg(), created_by=owner_a)
        photo_b = Photo.objects.create(event=event, class_name="A", start_no="2", price=25000,
                                       image=jpeg(), created_by=owner_b)
        order, _ = OrderService.create_order(
            email="buyer@example.com", whatsapp="",
            items=[{"photo_id": photo_a.id, "variant": 1}, {"photo_id": photo_b.id, "variant": 1}],
        )

        reference = PaymentService.build_gateway_reference(order.id)
        resp = self.post(signed_notification(reference, gross_amount="40000.00"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

        owner_a.refresh_from_db()
        owner_b.refresh_from_db()
        self.assertEqual(owner_a.balance, Decimal("15000.00"))
        self.assertEqual(owner_b.balance, Decimal("25000.00"))
        self.assertEqual(BalanceEntry.objects.filter(order=order).count(), 2)

    def test_ownerless_photo_still_settles(self):
        event = Event.objects.create(name="Orphan", location="Nowhere")
        photo = Photo.objects.create(event=event, class_name="A", start_no="9", price=10000, image=jpeg())
        order, _ = OrderService.create_order(
            email="buyer@example.com", whatsapp="", items=[{"photo_id": photo.id, "variant": 1}],
        )
        resp = self.post(signed_notification(PaymentService.build_gateway_reference(order.id), gross_amount="10000.00"))
        self.assertEqual(resp.data["status"], "applied")
        self.assertFalse(BalanceEntry.objects.filter(order=order).exists())


class CheckoutScenarioTests(PaymentFixtureMixin, APITestCase):
    """
    Buyer purchases photo 7 (Rp 20.000) end to end.
    """

    @patch("apps.payments.services.get_gateway")
    def test_photo_seven_purchase(self, get_gateway):
        owner = User.objects.create_user(email="owner@example.com", password="pass12345", name="Owner")
        event = Event.objects.create(name="Sentul Drag Fest", location="Sentul", created_by=owner)
        Photo.objects.create(id=7, event=event, class_name="FFA", start_no="7", price=20000, image=jpeg())

        resp = self.client.post("/api/v1/orders/", {
            "email": "buyer@example.com", "whatsapp": "0812", "items": [{"photoId": 7, "variant": 1}],
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        order_id = resp.data["id"]
        self.assertEqual(resp.data["totalPrice"], 20000)

        get_gateway.return_value = MidtransGateway()
        with patch.object(MidtransGateway, "_snap") as snap:
            snap.return_value.create_transaction.return_value = {"token": "snap-7", "redirect_url": "https://pay/7"}
            resp = self.client.post(CREATE_TOKEN_URL, {"orderId": order_id}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

        reference = Order.objects.get(pk=order_id).gateway_reference
        payload = signed_notification(reference)
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.post(NOTIFICATION_URL, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        with self.captureOnCommitCallbacks(execute=True):
            self.client.post(NOTIFICATION_URL, payload, format="json")

        order = Order.objects.get(pk=order_id)
        self.assertEqual(order.status, Order.Status.SUCCESS)
        owner.refresh_from_db()
        self.assertEqual(owner.balance, Decimal("20000.00"))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].attachments[0][0], "foto-7.jpg")


@skipUnless(connection.vendor == "postgresql", "row locks need PostgreSQL")
class ConcurrentNotificationTests(PaymentFixtureMixin, TransactionTestCase):

    def test_parallel_settlements_credit_once(self):
        order, owner, _ = self.make_order()
        payload = signed_notification(PaymentService.build_gateway_reference(order.id))
        barrier = threading.Barrier(4)
        results, errors = [], []

        def worker():
            try:
                barrier.wait()
                results.append(PaymentService.process_notification(payload)["status"])
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(sorted(results), ["applied", "duplicate", "duplicate", "duplicate"])
        owner.refresh_from_db()
        self.assertEqual(owner.balance, Decimal("20000.00"))
        self.assertEqual(BalanceEntry.objects.filter(order=order).count(), 1)
        self.assertEqual(len(mail.outbox), 1)
