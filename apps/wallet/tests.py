from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from apps.accounts.models import Role
from apps.catalog.models import Event, Photo
from apps.orders.services import OrderService
from apps.utils.exceptions import BusinessLogicException, NotFound
from .models import BalanceEntry, WithdrawalRequest
from .services import BalanceLedger, WithdrawalService

User = get_user_model()


def jpeg():
    return SimpleUploadedFile("photo.jpg", b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg")


def bank_details():
    return {"bank_name": "BCA", "account_number": "1234567890", "account_name": "Owner"}


class BalanceLedgerTests(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user(email="alice@example.com", password="pass12345", name="Alice")
        self.bob = User.objects.create_user(email="bob@example.com", password="pass12345", name="Bob")
        self.event = Event.objects.create(name="Sentul Drag Fest", location="Sentul", created_by=self.alice)

    def photo(self, price, created_by=None, event=None):
        return Photo.objects.create(
            event=event or self.event, class_name="FFA", start_no=str(price), price=price,
            image=jpeg(), created_by=created_by,
        )

    def order_for(self, *photos):
        order, _ = OrderService.create_order(
            email="buyer@example.com", whatsapp="",
            items=[{"photo_id": p.id, "variant": 1} for p in photos],
        )
        return order

    def test_groups_items_per_owner(self):
        order = self.order_for(self.photo(10000), self.photo(5000), self.photo(30000, created_by=self.bob))

        credited = BalanceLedger.credit_order(order)

        self.assertEqual(credited, {self.alice.id: 15000, self.bob.id: 30000})
        self.alice.refresh_from_db()
        self.bob.refresh_from_db()
        self.assertEqual(self.alice.balance, Decimal("15000.00"))
        self.assertEqual(self.bob.balance, Decimal("30000.00"))
        self.assertEqual(BalanceEntry.objects.filter(order=order, kind=BalanceEntry.Kind.SALE).count(), 2)

    def test_deleted_photo_is_skipped(self):
        kept = self.photo(10000)
        gone = self.photo(20000)
        order = self.order_for(kept, gone)
        gone.delete()

        credited = BalanceLedger.credit_order(order)

        self.assertEqual(credited, {self.alice.id: 10000})
        self.alice.refresh_from_db()
        self.assertEqual(self.alice.balance, Decimal("10000.00"))

    def test_second_sale_entry_for_same_order_is_refused(self):
        order = self.order_for(self.photo(10000))
        BalanceLedger.credit_order(order)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                BalanceLedger.credit_order(order)

        self.alice.refresh_from_db()
        self.assertEqual(self.alice.balance, Decimal("10000.00"))

    def test_entries_are_append_only(self):
        order = self.order_for(self.photo(10000))
        BalanceLedger.credit_order(order)
        entry = BalanceEntry.objects.get(order=order)
        entry.amount = Decimal("1.00")
        with self.assertRaises(ValueError):
            entry.save()


@override_settings(WITHDRAWAL_MINIMUM_AMOUNT=50000)
class WithdrawalServiceTests(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user(email="owner@example.com", password="pass12345", name="Owner")
        User.objects.filter(pk=self.owner.pk).update(balance=Decimal("100000.00"))
        self.owner.refresh_from_db()
        self.boss = User.objects.create_superuser(email="boss@example.com", password="pass12345", name="Boss")

    def test_below_minimum(self):
        with self.assertRaises(BusinessLogicException) as ctx:
            WithdrawalService.request_withdrawal(self.owner, Decimal("49999"), **bank_details())
        self.assertEqual(ctx.exception.code, "below_minimum")
        self.assertIn("Rp 50.000", ctx.exception.message)

    def test_pending_requests_reduce_available_balance(self):
        WithdrawalService.request_withdrawal(self.owner, Decimal("60000"), **bank_details())
        self.assertEqual(WithdrawalService.available_balance(self.owner), Decimal("40000.00"))

        with self.assertRaises(BusinessLogicException) as ctx:
            WithdrawalService.request_withdrawal(self.owner, Decimal("50000"), **bank_details())
        self.assertEqual(ctx.exception.code, "insufficient_balance")

        # Requesting does not move money
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("100000.00"))

    def test_approve_debits_and_records_entry(self):
        withdrawal = WithdrawalService.request_withdrawal(self.owner, Decimal("60000"), **bank_details())

        withdrawal = WithdrawalService.approve(withdrawal.pk, self.boss, "transferred")

        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.APPROVED)
        self.assertEqual(withdrawal.processed_by, self.boss)
        self.assertIsNotNone(withdrawal.processed_at)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("40000.00"))
        entry = BalanceEntry.objects.get(withdrawal=withdrawal)
        self.assertEqual(entry.amount, Decimal("-60000.00"))
        self.assertEqual(entry.kind, BalanceEntry.Kind.WITHDRAWAL)

    def test_approve_with_insufficient_balance_changes_nothing(self):
        withdrawal = WithdrawalService.request_withdrawal(self.owner, Decimal("60000"), **bank_details())
        User.objects.filter(pk=self.owner.pk).update(balance=Decimal("10000.00"))

        with self.assertRaises(BusinessLogicException) as ctx:
            WithdrawalService.approve(withdrawal.pk, self.boss)
        self.assertEqual(ctx.exception.code, "insufficient_balance")

        withdrawal.refresh_from_db()
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PENDING)
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("10000.00"))
        self.assertFalse(BalanceEntry.objects.exists())

    def test_reject_leaves_balance(self):
        withdrawal = WithdrawalService.request_withdrawal(self.owner, Decimal("60000"), **bank_details())

        withdrawal = WithdrawalService.reject(withdrawal.pk, self.boss, "wrong account")

        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.REJECTED)
        self.assertEqual(withdrawal.admin_notes, "wrong account")
        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("100000.00"))
        self.assertEqual(WithdrawalService.available_balance(self.owner), Decimal("100000.00"))

    def test_processed_request_cannot_be_decided_again(self):
        withdrawal = WithdrawalService.request_withdrawal(self.owner, Decimal("60000"), **bank_details())
        WithdrawalService.reject(withdrawal.pk, self.boss)

        for decide in (WithdrawalService.approve, WithdrawalService.reject):
            with self.subTest(action=decide.__name__):
                with self.assertRaises(BusinessLogicException) as ctx:
                    decide(withdrawal.pk, self.boss)
                self.assertEqual(ctx.exception.code, "already_processed")

    def test_unknown_request(self):
        with self.assertRaises(NotFound):
            WithdrawalService.approve(999999, self.boss)


@override_settings(WITHDRAWAL_MINIMUM_AMOUNT=50000)
class WalletAPITests(APITestCase):

    def setUp(self):
        self.owner = User.objects.create_user(email="owner@example.com", password="pass12345", name="Owner")
        User.objects.filter(pk=self.owner.pk).update(balance=Decimal("100000.00"))
        self.owner.refresh_from_db()
        self.boss = User.objects.create_user(
            email="boss@example.com", password="pass12345", name="Boss", role=Role.SUPER_ADMIN,
        )

    def request_payload(self, amount="60000"):
        return {"amount": amount, "bankName": "BCA", "accountNumber": "1234567890", "accountName": "Owner"}

    def test_balance_requires_login(self):
        resp = self.client.get("/api/v1/wallet/balance/")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_balance_shows_available_amount(self):
        WithdrawalService.request_withdrawal(
            self.owner, Decimal("60000"), bank_name="BCA", account_number="1", account_name="Owner",
        )
        self.client.force_authenticate(self.owner)

        resp = self.client.get("/api/v1/wallet/balance/")

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["balance"], Decimal("100000.00"))
        self.assertEqual(resp.data["availableBalance"], Decimal("40000.00"))
        self.assertEqual(len(resp.data["withdrawals"]), 1)

    def test_owner_requests_withdrawal(self):
        self.client.force_authenticate(self.owner)

        resp = self.client.post("/api/v1/wallet/withdrawals/", self.request_payload(), format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["status"], "pending")
        self.assertEqual(resp.data["bankName"], "BCA")

        resp = self.client.get("/api/v1/wallet/withdrawals/")
        self.assertEqual(resp.data["count"], 1)

    def test_below_minimum_is_400(self):
        self.client.force_authenticate(self.owner)
        resp = self.client.post("/api/v1/wallet/withdrawals/", self.request_payload("1000"), format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "below_minimum")

    def test_regular_admin_cannot_review(self):
        withdrawal = WithdrawalService.request_withdrawal(self.owner, Decimal("60000"), **bank_details())
        self.client.force_authenticate(self.owner)

        self.assertEqual(self.client.get("/api/v1/wallet/withdrawals/all/").status_code, status.HTTP_403_FORBIDDEN)
        resp = self.client.post(f"/api/v1/wallet/withdrawals/{withdrawal.pk}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_super_admin_reviews(self):
        first = WithdrawalService.request_withdrawal(self.owner, Decimal("50000"), **bank_details())
        second = WithdrawalService.request_withdrawal(self.owner, Decimal("50000"), **bank_details())
        self.client.force_authenticate(self.boss)

        resp = self.client.get("/api/v1/wallet/withdrawals/all/", {"status": "pending"})
        self.assertEqual(resp.data["count"], 2)
        self.assertEqual(resp.data["results"][0]["user"]["email"], "owner@example.com")

        resp = self.client.post(f"/api/v1/wallet/withdrawals/{first.pk}/approve/", {"notes": "ok"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["withdrawal"]["status"], "approved")

        resp = self.client.post(f"/api/v1/wallet/withdrawals/{second.pk}/reject/", {}, format="json")
        self.assertEqual(resp.data["withdrawal"]["status"], "rejected")

        resp = self.client.post(f"/api/v1/wallet/withdrawals/{first.pk}/approve/", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["code"], "already_processed")

        self.owner.refresh_from_db()
        self.assertEqual(self.owner.balance, Decimal("50000.00"))
