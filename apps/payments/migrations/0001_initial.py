import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentNotification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("gateway_reference", models.CharField(db_index=True, max_length=50)),
                ("transaction_id", models.CharField(blank=True, db_index=True, max_length=100)),
                ("transaction_status", models.CharField(max_length=30)),
                ("fraud_status", models.CharField(blank=True, max_length=30)),
                ("payment_type", models.CharField(blank=True, max_length=50)),
                ("outcome", models.CharField(choices=[("applied", "Applied"), ("duplicate", "Duplicate / Already Final"), ("pending", "Still Pending"), ("ignored", "Ignored")], max_length=20)),
                ("payload", models.JSONField(default=dict)),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payment_notifications", to="orders.order")),
            ],
            options={
                "db_table": "payment_notifications",
                "ordering": ["-created_at"],
            },
        ),
    ]
