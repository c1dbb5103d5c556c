import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("email", models.EmailField(max_length=254)),
                ("whatsapp", models.CharField(blank=True, max_length=30)),
                ("total_price", models.PositiveIntegerField(help_text="IDR, sum of item prices at creation")),
                ("status", models.CharField(choices=[("pending", "Pending Payment"), ("success", "Paid"), ("failed", "Failed")], db_index=True, default="pending", max_length=20)),
                ("snap_token", models.CharField(blank=True, max_length=255, null=True)),
                ("gateway_reference", models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("variant", models.PositiveSmallIntegerField(default=1)),
                ("price", models.PositiveIntegerField()),
                ("snap_photo_url", models.CharField(blank=True, max_length=500)),
                ("snap_photo_start_no", models.CharField(blank=True, max_length=20)),
                ("snap_event_name", models.CharField(blank=True, max_length=255)),
                ("snap_photo_class", models.CharField(blank=True, max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.order")),
                ("photo", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="order_items", to="catalog.photo")),
            ],
            options={
                "db_table": "order_items",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="OrderTimeline",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(max_length=20)),
                ("source", models.CharField(choices=[("checkout", "Checkout"), ("gateway", "Payment Gateway"), ("operator", "Operator")], max_length=20)),
                ("note", models.TextField(blank=True)),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="timeline", to="orders.order")),
            ],
            options={
                "db_table": "order_timeline",
                "ordering": ["-timestamp", "-id"],
            },
        ),
    ]
