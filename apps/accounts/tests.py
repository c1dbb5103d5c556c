import os
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import CommandError, call_command
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.models import Role, User


class UserModelTests(TestCase):

    def test_create_user_defaults_to_admin_role(self):
        user = User.objects.create_user(email="Owner@Example.com", password="pass12345", name="Owner")
        self.assertEqual(user.role, Role.ADMIN)
        self.assertTrue(user.is_admin)
        self.assertFalse(user.is_super_admin)
        self.assertEqual(user.balance, Decimal("0.00"))
        self.assertTrue(user.check_password("pass12345"))

    def test_create_superuser_is_super_admin(self):
        user = User.objects.create_superuser(email="root@example.com", password="pass12345", name="Root")
        self.assertTrue(user.is_super_admin)
        self.assertTrue(user.is_admin)
        self.assertTrue(user.is_staff)

    def test_balance_cannot_go_negative(self):
        user = User.objects.create_user(email="a@example.com", password="pass12345", name="A")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                User.objects.filter(pk=user.pk).update(balance=Decimal("-1.00"))


class AuthAPITests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="owner@example.com", password="pass12345", name="Owner")

    def test_login_returns_tokens_and_profile(self):
        response = self.client.post(
            "/api/v1/auth/login/",
            {"email": "owner@example.com", "password": "pass12345"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)
        self.assertEqual(response.data["user"]["role"], "admin")

    def test_login_with_wrong_password(self):
        response = self.client.post(
            "/api/v1/auth/login/",
            {"email": "owner@example.com", "password": "nope"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_user_cannot_login(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post(
            "/api/v1/auth/login/",
            {"email": "owner@example.com", "password": "pass12345"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_token(self):
        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_with_bearer_token(self):
        login = self.client.post(
            "/api/v1/auth/login/",
            {"email": "owner@example.com", "password": "pass12345"},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")
        response = self.client.get("/api/v1/auth/me/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["email"], "owner@example.com")

    def test_refresh_token(self):
        login = self.client.post(
            "/api/v1/auth/login/",
            {"email": "owner@example.com", "password": "pass12345"},
            format="json",
        )
        response = self.client.post(
            "/api/v1/auth/token/refresh/",
            {"refresh": login.data["refresh"]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)

    def test_logout_blacklists_refresh_token(self):
        login = self.client.post(
            "/api/v1/auth/login/",
            {"email": "owner@example.com", "password": "pass12345"},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")

        response = self.client.post("/api/v1/auth/logout/", {"refresh": login.data["refresh"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(
            "/api/v1/auth/token/refresh/",
            {"refresh": login.data["refresh"]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_with_garbage_token(self):
        self.client.force_authenticate(self.user)
        response = self.client.post("/api/v1/auth/logout/", {"refresh": "not-a-token"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_token")


class CreateAdminCommandTests(TestCase):

    @patch.dict(os.environ, {
        "ALLOW_CREATE_ADMIN_IN_PROD": "True",
        "ADMIN_EMAIL": "boss@example.com",
        "ADMIN_PASSWORD": "s3cret-pass",
        "ADMIN_NAME": "Boss",
    })
    def test_creates_then_updates_super_admin(self):
        call_command("create_admin", stdout=StringIO(), stderr=StringIO())
        user = User.objects.get(email="boss@example.com")
        self.assertTrue(user.is_super_admin)
        self.assertTrue(user.check_password("s3cret-pass"))

        call_command("create_admin", stdout=StringIO(), stderr=StringIO())
        self.assertEqual(User.objects.filter(email="boss@example.com").count(), 1)

    @patch.dict(os.environ, {"ALLOW_CREATE_ADMIN_IN_PROD": "True"})
    def test_promotes_existing_operator_from_options(self):
        User.objects.create_user(email="owner@example.com", password="old-pass", name="Owner")

        call_command(
            "create_admin", "--email", "owner@example.com", "--password", "new-pass",
            stdout=StringIO(), stderr=StringIO(),
        )

        user = User.objects.get(email="owner@example.com")
        self.assertEqual(user.role, Role.SUPER_ADMIN)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.check_password("new-pass"))

    @patch.dict(os.environ, {"ALLOW_CREATE_ADMIN_IN_PROD": "True"})
    def test_missing_credentials(self):
        with self.assertRaises(CommandError):
            call_command("create_admin", "--email", "", "--password", "", stdout=StringIO(), stderr=StringIO())

    @patch.dict(os.environ, {"ALLOW_CREATE_ADMIN_IN_PROD": "False"})
    def test_production_lock(self):
        with self.assertRaises(CommandError):
            call_command(
                "create_admin", "--email", "x@example.com", "--password", "pass",
                stdout=StringIO(), stderr=StringIO(),
            )
        self.assertFalse(User.objects.filter(email="x@example.com").exists())
