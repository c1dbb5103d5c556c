# apps/catalog/models.py
from django.conf import settings
from django.db import models

from apps.utils.models import TimestampedModel


class Event(TimestampedModel):
    """
    A race / meet. Photos are grouped by event and class.
    """

    class Category(models.TextChoices):
        DRAG = "drag", "Drag Race"
        DRIFT = "drift", "Drift"
        RALLY = "rally", "Rally"
        TOURING = "touring", "Touring"
        MOTO = "moto", "Moto GP"
        ROAD_RACE = "road_race", "Road Race"

    class Status(models.TextChoices):
        APPROVED = "approved", "Approved"
        PENDING = "pending", "Pending"
        REJECTED = "rejected", "Rejected"

    name = models.CharField(max_length=255)
    date = models.CharField(max_length=100, blank=True)  # Legacy free-text date
    start_time = models.DateTimeField(null=True, blank=True)
    location = models.CharField(max_length=255)
    image = models.FileField(upload_to="events/", blank=True)
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.ROAD_RACE)
    external_link = models.URLField(blank=True)
    is_published = models.BooleanField(default=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.APPROVED, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="events",
    )

    class Meta:
        db_table = "events"
        ordering = ["-start_time", "-created_at"]

    def __str__(self):
        return self.name


class EventClass(models.Model):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="classes")
    name = models.CharField(max_length=100)

    class Meta:
        db_table = "event_classes"
        ordering = ["name"]

    def __str__(self):
        return f"{self.event_id}:{self.name}"


class Photo(TimestampedModel):
    """
    A sellable photo, tagged by bib ("start") number and class.
    """
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="photos")
    class_name = models.CharField(max_length=100)
    start_no = models.CharField(max_length=20, db_index=True)
    price = models.PositiveIntegerField(help_text="IDR, smallest unit")
    image = models.FileField(upload_to="photos/")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="photos",
    )

    class Meta:
        db_table = "photos"
        ordering = ["start_no"]
        indexes = [
            models.Index(fields=["event", "class_name", "start_no"], name="photo_event_class_start_idx"),
        ]

    def __str__(self):
        return f"#{self.start_no} ({self.class_name})"

    @property
    def url(self) -> str:
        return self.image.url if self.image else ""

    @property
    def owner_account_id(self):
        """
        Whose balance a sale of this photo credits: the photo's own uploader,
        falling back to the event creator.
        """
        if self.created_by_id:
            return self.created_by_id
        if self.event_id and self.event.created_by_id:
            return self.event.created_by_id
        return None


class RecapPhoto(models.Model):
    """
    A numbered variant (crop / edit) of a photo.
    """
    photo = models.ForeignKey(Photo, on_delete=models.CASCADE, related_name="recaps")
    variant_number = models.PositiveSmallIntegerField(default=1)
    image = models.FileField(upload_to="recaps/")

    class Meta:
        db_table = "recap_photos"
        ordering = ["variant_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["photo", "variant_number"],
                name="uniq_recap_per_photo_variant",
            )
        ]

    def __str__(self):
        return f"{self.photo_id} v{self.variant_number}"

    @property
    def url(self) -> str:
        return self.image.url if self.image else ""
