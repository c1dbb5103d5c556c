from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.utils import timezone
from .managers import UserManager


class Role(models.TextChoices):
    SUPER_ADMIN = "super_admin", "Super Admin"
    ADMIN = "admin", "Admin"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Operator / photo-owner account.

    Admins upload events and photos and accrue `balance` from sales.
    Super admins additionally approve withdrawals.
    `balance` is only moved by apps.wallet.services, never assigned directly.
    """
    email = models.EmailField(unique=True, db_index=True)
    name = models.CharField(max_length=255)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.ADMIN)

    balance = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal("0.00"))

    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        db_table = "users"
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="user_balance_non_negative",
            ),
        ]

    def __str__(self):
        return self.email

    @property
    def is_super_admin(self):
        return self.role == Role.SUPER_ADMIN

    @property
    def is_admin(self):
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)
