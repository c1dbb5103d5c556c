import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255)),
                ("date", models.CharField(blank=True, max_length=100)),
                ("start_time", models.DateTimeField(blank=True, null=True)),
                ("location", models.CharField(max_length=255)),
                ("image", models.FileField(blank=True, upload_to="events/")),
                ("category", models.CharField(choices=[("drag", "Drag Race"), ("drift", "Drift"), ("rally", "Rally"), ("touring", "Touring"), ("moto", "Moto GP"), ("road_race", "Road Race")], default="road_race", max_length=20)),
                ("external_link", models.URLField(blank=True)),
                ("is_published", models.BooleanField(default=True)),
                ("status", models.CharField(choices=[("approved", "Approved"), ("pending", "Pending"), ("rejected", "Rejected")], db_index=True, default="approved", max_length=20)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="events", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "events",
                "ordering": ["-start_time", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="EventClass",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100)),
                ("event", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="classes", to="catalog.event")),
            ],
            options={
                "db_table": "event_classes",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Photo",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("class_name", models.CharField(max_length=100)),
                ("start_no", models.CharField(db_index=True, max_length=20)),
                ("price", models.PositiveIntegerField(help_text="IDR, smallest unit")),
                ("image", models.FileField(upload_to="photos/")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="photos", to=settings.AUTH_USER_MODEL)),
                ("event", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="photos", to="catalog.event")),
            ],
            options={
                "db_table": "photos",
                "ordering": ["start_no"],
                "indexes": [models.Index(fields=["event", "class_name", "start_no"], name="photo_event_class_start_idx")],
            },
        ),
        migrations.CreateModel(
            name="RecapPhoto",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("variant_number", models.PositiveSmallIntegerField(default=1)),
                ("image", models.FileField(upload_to="recaps/")),
                ("photo", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="recaps", to="catalog.photo")),
            ],
            options={
                "db_table": "recap_photos",
                "ordering": ["variant_number"],
                "constraints": [models.UniqueConstraint(fields=("photo", "variant_number"), name="uniq_recap_per_photo_variant")],
            },
        ),
    ]
