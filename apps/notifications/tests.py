from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings

from apps.catalog.models import Event, Photo, RecapPhoto
from apps.orders.services import OrderService
from apps.utils.exceptions import NotificationDeliveryError
from .models import ReceiptDelivery
from .services import ReceiptService, build_receipt_message, queue_order_receipt
from .tasks import send_order_receipt_task

User = get_user_model()


def jpeg(name="photo.jpg"):
    return SimpleUploadedFile(name, b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg")


@override_settings(RECEIPT_BRAND_NAME="GEEZPLAY", EMAIL_MESSAGE_ID_DOMAIN="racephoto.test")
class ReceiptMessageTests(TestCase):

    def setUp(self):
        owner = User.objects.create_user(email="owner@example.com", password="pass12345", name="Owner")
        event = Event.objects.create(name="Sentul Drag Fest", location="Sentul", created_by=owner)
        self.photo = Photo.objects.create(event=event, class_name="FFA", start_no="12", price=20000, image=jpeg())
        RecapPhoto.objects.create(photo=self.photo, variant_number=2, image=jpeg("recap.jpg"))
        self.order, _ = OrderService.create_order(
            email="buyer@example.com", whatsapp="08123456789",
            items=[{"photo_id": self.photo.id, "variant": 2}],
        )

    def test_receipt_contents(self):
        message, message_id = build_receipt_message(self.order, "buyer@example.com")

        self.assertEqual(message.subject, f"Struk Pembelian Foto - Order #{self.order.pk}")
        self.assertEqual(message.to, ["buyer@example.com"])
        self.assertIn("GEEZPLAY", message.body)
        self.assertIn("08123456789", message.body)
        self.assertIn("Sentul Drag Fest", message.body)
        self.assertIn("Rp 20.000", message.body)
        self.assertTrue(message_id.endswith("@racephoto.test>"))
        self.assertEqual(message.extra_headers["Message-ID"], message_id)

        html, mimetype = message.alternatives[0]
        self.assertEqual(mimetype, "text/html")
        self.assertIn("TOTAL", html)

    def test_recap_variant_is_attached(self):
        message, _ = build_receipt_message(self.order, "buyer@example.com")
        self.assertEqual(len(message.attachments), 1)
        filename, content, mimetype = message.attachments[0]
        self.assertEqual(filename, "foto-12-v2.jpg")
        self.assertEqual(mimetype, "image/jpeg")
        self.assertEqual(content, b"\xff\xd8\xff\xe0fake-jpeg")

    def test_deleted_photo_is_not_attached(self):
        self.photo.delete()
        self.order.refresh_from_db()
        message, _ = build_receipt_message(self.order, "buyer@example.com")
        self.assertEqual(message.attachments, [])

    def test_deliver_marks_sent(self):
        delivery = ReceiptService.create_delivery(self.order, ReceiptDelivery.Trigger.MANUAL)

        ReceiptService.deliver(delivery)

        delivery.refresh_from_db()
        self.assertEqual(delivery.status, ReceiptDelivery.Status.SENT)
        self.assertEqual(delivery.attempts, 1)
        self.assertTrue(delivery.message_id)
        self.assertIsNotNone(delivery.sent_at)
        self.assertEqual(len(mail.outbox), 1)

    @patch("apps.notifications.services.EmailMultiAlternatives.send", side_effect=OSError("smtp down"))
    def test_deliver_records_failure(self, _send):
        delivery = ReceiptService.create_delivery(self.order, ReceiptDelivery.Trigger.MANUAL)

        with self.assertRaises(NotificationDeliveryError):
            ReceiptService.deliver(delivery, raise_on_error=True)

        delivery.refresh_from_db()
        self.assertEqual(delivery.status, ReceiptDelivery.Status.FAILED)
        self.assertIn("smtp down", delivery.error_message)
        self.assertEqual(delivery.attempts, 1)


class ReceiptQueueTests(TestCase):

    def setUp(self):
        event = Event.objects.create(name="Rally", location="Bandung")
        photo = Photo.objects.create(event=event, class_name="A", start_no="3", price=15000, image=jpeg())
        self.order, _ = OrderService.create_order(
            email="buyer@example.com", whatsapp="", items=[{"photo_id": photo.id, "variant": 1}],
        )

    def test_queue_sends_once(self):
        delivery = queue_order_receipt(self.order.pk)

        delivery.refresh_from_db()
        self.assertEqual(delivery.trigger, ReceiptDelivery.Trigger.SETTLEMENT)
        self.assertEqual(delivery.status, ReceiptDelivery.Status.SENT)
        self.assertEqual(len(mail.outbox), 1)

    def test_task_skips_sent_delivery(self):
        delivery = queue_order_receipt(self.order.pk)
        send_order_receipt_task.apply(args=[delivery.pk])
        self.assertEqual(len(mail.outbox), 1)

    def test_task_ignores_missing_delivery(self):
        send_order_receipt_task.apply(args=[999999])
        self.assertEqual(len(mail.outbox), 0)

    @patch("apps.notifications.tasks.send_order_receipt_task.delay", side_effect=ConnectionError("broker down"))
    def test_queue_failure_is_swallowed(self, _delay):
        self.assertIsNone(queue_order_receipt(self.order.pk))

    def test_queue_for_unknown_order(self):
        self.assertIsNone(queue_order_receipt(999999))
        self.assertFalse(ReceiptDelivery.objects.exists())
