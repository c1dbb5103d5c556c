# apps/catalog/tests.py
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.utils.exceptions import NotFound
from .models import Event, EventClass, Photo, RecapPhoto
from .services import CatalogService

User = get_user_model()


def jpeg(name="photo.jpg"):
    return SimpleUploadedFile(name, b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg")


class CatalogFixtureMixin:
    def make_catalog(self):
        self.owner = User.objects.create_user(email="owner@example.com", password="pass12345", name="Owner")
        self.event = Event.objects.create(name="Sentul Drag Fest", location="Sentul", created_by=self.owner)
        EventClass.objects.create(event=self.event, name="FFA")
        self.photo = Photo.objects.create(
            event=self.event, class_name="FFA", start_no="12", price=20000, image=jpeg(),
        )


class PhotoOwnerTests(CatalogFixtureMixin, TestCase):
    def setUp(self):
        self.make_catalog()

    def test_owner_falls_back_to_event_creator(self):
        self.assertIsNone(self.photo.created_by_id)
        self.assertEqual(self.photo.owner_account_id, self.owner.id)

    def test_photo_uploader_wins_over_event_creator(self):
        uploader = User.objects.create_user(email="shooter@example.com", password="pass12345", name="Shooter")
        self.photo.created_by = uploader
        self.photo.save()
        self.assertEqual(self.photo.owner_account_id, uploader.id)

    def test_no_owner_at_all(self):
        self.event.created_by = None
        self.event.save()
        photo = Photo.objects.get(pk=self.photo.pk)
        self.assertIsNone(photo.owner_account_id)


class CatalogServiceTests(CatalogFixtureMixin, TestCase):
    def setUp(self):
        self.make_catalog()

    def test_get_photo_snapshot(self):
        snap = CatalogService.get_photo(self.photo.id)
        self.assertEqual(snap.price, 20000)
        self.assertEqual(snap.start_no, "12")
        self.assertEqual(snap.class_name, "FFA")
        self.assertEqual(snap.event_name, "Sentul Drag Fest")
        self.assertEqual(snap.owner_account_id, self.owner.id)
        self.assertTrue(snap.url)

    def test_get_missing_photo(self):
        with self.assertRaises(NotFound):
            CatalogService.get_photo(999999)

    def test_resolve_cart_lines_keeps_input_order_and_flags_missing(self):
        lines = CatalogService.resolve_cart_lines([
            {"photo_id": 999999, "variant": 2},
            {"photo_id": self.photo.id, "variant": 3},
        ])
        self.assertEqual(len(lines), 2)
        self.assertFalse(lines[0].resolved)
        self.assertEqual(lines[0].variant, 2)
        self.assertTrue(lines[1].resolved)
        self.assertEqual(lines[1].variant, 3)
        self.assertEqual(lines[1].snapshot.price, 20000)

    def test_variant_resolves_to_recap(self):
        RecapPhoto.objects.create(photo=self.photo, variant_number=2, image=jpeg("recap.jpg"))
        asset = CatalogService.resolve_variant_asset(self.photo, 2, label="12")
        self.assertFalse(asset.is_fallback)
        self.assertEqual(asset.filename, "foto-12-v2.jpg")

    def test_missing_variant_falls_back_to_base_photo(self):
        asset = CatalogService.resolve_variant_asset(self.photo, 5, label="12")
        self.assertTrue(asset.is_fallback)
        self.assertEqual(asset.filename, "foto-12.jpg")
        self.assertEqual(asset.url, self.photo.url)

    def test_deleted_photo_has_no_asset(self):
        self.assertIsNone(CatalogService.resolve_variant_asset(None, 1))


class PublicCatalogAPITests(CatalogFixtureMixin, APITestCase):
    def setUp(self):
        self.make_catalog()
        self.hidden = Event.objects.create(name="Draft", location="X", is_published=False)

    def test_event_list_hides_unpublished(self):
        resp = self.client.get("/api/v1/catalog/events/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        names = [e["name"] for e in resp.data["results"]]
        self.assertIn("Sentul Drag Fest", names)
        self.assertNotIn("Draft", names)

    def test_upcoming_events_soonest_first(self):
        soon = timezone.now()
        future = [
            Event.objects.create(name=f"Round {n}", location="Sentul", start_time=soon + timedelta(days=n))
            for n in range(7, 0, -1)
        ]
        Event.objects.create(name="Last season", location="Sentul", start_time=soon - timedelta(days=1))
        Event.objects.create(name="Secret", location="X", start_time=soon + timedelta(hours=1), is_published=False)

        resp = self.client.get("/api/v1/catalog/events/upcoming/")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        expected = [e.id for e in reversed(future)][:6]
        self.assertEqual([e["id"] for e in resp.data], expected)

    def test_event_detail_lists_photo_classes(self):
        resp = self.client.get(f"/api/v1/catalog/events/{self.event.id}/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["photoClasses"], ["FFA"])
        self.assertEqual(resp.data["event"]["classes"][0]["name"], "FFA")

    def test_hidden_event_is_404(self):
        resp = self.client.get(f"/api/v1/catalog/events/{self.hidden.id}/")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_class_photos_filtered_by_start_no(self):
        Photo.objects.create(event=self.event, class_name="FFA", start_no="77", price=25000, image=jpeg())
        resp = self.client.get(
            f"/api/v1/catalog/events/{self.event.id}/classes/FFA/photos/", {"startNo": "77"}
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([p["startNo"] for p in resp.data["results"]], ["77"])
        self.assertEqual(resp.data["startNumbers"], ["12", "77"])

    def test_photo_detail_includes_recaps(self):
        RecapPhoto.objects.create(photo=self.photo, variant_number=1, image=jpeg("r1.jpg"))
        resp = self.client.get(f"/api/v1/catalog/photos/{self.photo.id}/")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["price"], 20000)
        self.assertEqual(len(resp.data["recaps"]), 1)
