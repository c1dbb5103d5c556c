import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F, Sum

from apps.utils.exceptions import BusinessLogicException, NotFound
from apps.utils.utils import format_idr, now
from .models import BalanceEntry, WithdrawalRequest

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class BalanceLedger:
    """
    ALL balance changes must pass through here.
    Every change is a single UPDATE ... SET balance = balance +/- x
    paired with a BalanceEntry row.
    """

    @staticmethod
    @transaction.atomic
    def credit_order(order) -> Dict[int, int]:
        """
        Credits each photo owner with the sum of their items in `order`.

        Runs inside the transaction that moved the order to success.
        Items whose photo or owner is gone are skipped; the sale still stands.
        Returns {account_id: amount} for what was credited.
        """
        User = get_user_model()
        totals = defaultdict(int)

        for item in order.items.select_related("photo__event"):
            owner_id = item.photo.owner_account_id if item.photo_id else None
            if owner_id is None:
                logger.warning(
                    f"Order {order.pk}: item {item.pk} has no resolvable owner, skipping credit",
                    extra={"order_id": order.pk},
                )
                continue
            totals[owner_id] += item.price

        credited = {}
        # Deterministic order keeps row locks from interleaving
        for owner_id in sorted(totals):
            amount = totals[owner_id]
            updated = User.objects.filter(pk=owner_id).update(balance=F("balance") + Decimal(amount))
            if not updated:
                logger.warning(f"Order {order.pk}: owner {owner_id} vanished, skipping credit")
                continue

            BalanceEntry.objects.create(
                account_id=owner_id,
                kind=BalanceEntry.Kind.SALE,
                amount=Decimal(amount),
                order=order,
            )
            credited[owner_id] = amount

        logger.info(
            f"Order {order.pk} credited {len(credited)} owner(s)",
            extra={"order_id": order.pk},
        )
        return credited


class WithdrawalService:

    @staticmethod
    def pending_total(account) -> Decimal:
        total = (
            WithdrawalRequest.objects
            .filter(account=account, status=WithdrawalRequest.Status.PENDING)
            .aggregate(total=Sum("amount"))["total"]
        )
        return total or ZERO

    @staticmethod
    def available_balance(account) -> Decimal:
        """
        Balance not already claimed by pending requests.
        """
        return account.balance - WithdrawalService.pending_total(account)

    @staticmethod
    @transaction.atomic
    def request_withdrawal(account, amount: Decimal, bank_name: str, account_number: str, account_name: str):
        minimum = Decimal(settings.WITHDRAWAL_MINIMUM_AMOUNT)
        if amount < minimum:
            raise BusinessLogicException(
                f"Minimum withdrawal is {format_idr(minimum)}.",
                code="below_minimum",
            )

        # Serialize concurrent requests from the same account
        User = get_user_model()
        account = User.objects.select_for_update().get(pk=account.pk)

        if amount > WithdrawalService.available_balance(account):
            raise BusinessLogicException("Insufficient balance.", code="insufficient_balance")

        withdrawal = WithdrawalRequest.objects.create(
            account=account,
            amount=amount,
            bank_name=bank_name,
            account_number=account_number,
            account_name=account_name,
        )
        logger.info(f"Withdrawal {withdrawal.pk} requested by {account.pk} for {amount}")
        return withdrawal

    @staticmethod
    def _get_pending_locked(withdrawal_id) -> WithdrawalRequest:
        try:
            withdrawal = WithdrawalRequest.objects.select_for_update().get(pk=withdrawal_id)
        except WithdrawalRequest.DoesNotExist:
            raise NotFound("Withdrawal request not found.")

        if not withdrawal.is_pending:
            raise BusinessLogicException("Request already processed.", code="already_processed")
        return withdrawal

    @staticmethod
    @transaction.atomic
    def approve(withdrawal_id, processed_by, notes: str = "") -> WithdrawalRequest:
        """
        PENDING -> APPROVED. Debits the balance only if it still covers the amount.
        """
        withdrawal = WithdrawalService._get_pending_locked(withdrawal_id)

        User = get_user_model()
        updated = (
            User.objects
            .filter(pk=withdrawal.account_id, balance__gte=withdrawal.amount)
            .update(balance=F("balance") - withdrawal.amount)
        )
        if not updated:
            raise BusinessLogicException("Insufficient balance.", code="insufficient_balance")

        BalanceEntry.objects.create(
            account_id=withdrawal.account_id,
            kind=BalanceEntry.Kind.WITHDRAWAL,
            amount=-withdrawal.amount,
            withdrawal=withdrawal,
        )

        withdrawal.status = WithdrawalRequest.Status.APPROVED
        withdrawal.processed_by = processed_by
        withdrawal.processed_at = now()
        withdrawal.admin_notes = notes or ""
        withdrawal.save(update_fields=["status", "processed_by", "processed_at", "admin_notes", "updated_at"])

        logger.info(f"Withdrawal {withdrawal.pk} approved by {processed_by.pk}")
        return withdrawal

    @staticmethod
    @transaction.atomic
    def reject(withdrawal_id, processed_by, notes: str = "") -> WithdrawalRequest:
        withdrawal = WithdrawalService._get_pending_locked(withdrawal_id)

        withdrawal.status = WithdrawalRequest.Status.REJECTED
        withdrawal.processed_by = processed_by
        withdrawal.processed_at = now()
        withdrawal.admin_notes = notes or ""
        withdrawal.save(update_fields=["status", "processed_by", "processed_at", "admin_notes", "updated_at"])

        logger.info(f"Withdrawal {withdrawal.pk} rejected by {processed_by.pk}")
        return withdrawal
