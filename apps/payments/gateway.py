"""
Midtrans Snap adapter.

The rest of the code base only sees GatewayToken / GatewayNotification;
midtransclient types never leave this module.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import midtransclient
import requests
from django.conf import settings
from midtransclient.error_midtrans import MidtransAPIError

from apps.utils.exceptions import NotificationVerificationError, PaymentGatewayError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayToken:
    token: str
    redirect_url: str


@dataclass(frozen=True)
class GatewayNotification:
    order_ref: str
    transaction_status: str
    fraud_status: Optional[str]
    transaction_id: str
    status_code: str
    gross_amount: str
    payment_type: str = ""
    raw: dict = field(default_factory=dict, compare=False)


class MidtransGateway:

    def __init__(self, server_key=None, client_key=None, is_production=None, verify_with_api=None):
        self.server_key = server_key if server_key is not None else settings.MIDTRANS_SERVER_KEY
        self.client_key = client_key if client_key is not None else settings.MIDTRANS_CLIENT_KEY
        self.is_production = settings.MIDTRANS_IS_PRODUCTION if is_production is None else is_production
        self.verify_with_api = (
            settings.MIDTRANS_VERIFY_STATUS_WITH_API if verify_with_api is None else verify_with_api
        )

    def _snap(self):
        return midtransclient.Snap(
            is_production=self.is_production,
            server_key=self.server_key,
            client_key=self.client_key,
        )

    def _core(self):
        return midtransclient.CoreApi(
            is_production=self.is_production,
            server_key=self.server_key,
            client_key=self.client_key,
        )

    def create_transaction(self, order_ref: str, amount: int, buyer: dict, line_items: List[dict]) -> GatewayToken:
        """
        Opens a Snap transaction. Raises PaymentGatewayError on any failure.
        """
        param = {
            "transaction_details": {
                "order_id": order_ref,
                "gross_amount": int(amount),
            },
            "customer_details": {
                "email": buyer.get("email", ""),
                "phone": buyer.get("phone", ""),
            },
            "item_details": line_items,
        }

        try:
            response = self._snap().create_transaction(param)
        except MidtransAPIError as e:
            logger.error(f"Midtrans rejected transaction {order_ref}: {e}")
            raise PaymentGatewayError("Payment gateway rejected the request.")
        except requests.RequestException as e:
            logger.error(f"Midtrans unreachable for {order_ref}: {e}")
            raise PaymentGatewayError("Payment gateway is unavailable, please retry.")

        token = response.get("token")
        if not token:
            logger.error(f"Midtrans returned no token for {order_ref}: {response}")
            raise PaymentGatewayError("Payment gateway returned an invalid response.")

        return GatewayToken(token=token, redirect_url=response.get("redirect_url", ""))

    def signature_for(self, order_ref: str, status_code: str, gross_amount: str) -> str:
        raw = f"{order_ref}{status_code}{gross_amount}{self.server_key}"
        return hashlib.sha512(raw.encode("utf-8")).hexdigest()

    def verify_notification(self, payload: dict) -> GatewayNotification:
        """
        Strict verification:
        1. signature_key must match sha512(order_id + status_code + gross_amount + server_key)
        2. when enabled, the status is re-read from the Midtrans API and that answer wins
        """
        if not isinstance(payload, dict):
            raise NotificationVerificationError("Malformed notification.")

        order_ref = str(payload.get("order_id") or "")
        status_code = str(payload.get("status_code") or "")
        gross_amount = str(payload.get("gross_amount") or "")
        signature = str(payload.get("signature_key") or "")

        if not (order_ref and signature):
            logger.warning("Midtrans notification without order_id/signature_key")
            raise NotificationVerificationError("Missing signature.")

        expected = self.signature_for(order_ref, status_code, gross_amount)
        if not hmac.compare_digest(expected, signature):
            logger.warning(f"Midtrans notification signature mismatch for {order_ref}")
            raise NotificationVerificationError("Invalid signature.")

        data = payload
        if self.verify_with_api:
            if not payload.get("transaction_id"):
                logger.warning(f"Midtrans notification for {order_ref} without transaction_id")
                raise NotificationVerificationError("Missing transaction id.")
            try:
                data = self._core().transactions.notification(payload)
            except (MidtransAPIError, requests.RequestException, KeyError) as e:
                logger.error(f"Midtrans status check failed for {order_ref}: {e}")
                raise NotificationVerificationError("Could not confirm transaction status.")

            if str(data.get("order_id")) != order_ref:
                logger.warning(f"Midtrans status for {order_ref} refers to {data.get('order_id')}")
                raise NotificationVerificationError("Notification does not match gateway record.")

        return GatewayNotification(
            order_ref=order_ref,
            transaction_status=str(data.get("transaction_status") or ""),
            fraud_status=data.get("fraud_status") or None,
            transaction_id=str(data.get("transaction_id") or ""),
            status_code=str(data.get("status_code") or status_code),
            gross_amount=str(data.get("gross_amount") or gross_amount),
            payment_type=str(data.get("payment_type") or ""),
            raw=dict(payload),
        )


def get_gateway() -> MidtransGateway:
    return MidtransGateway()
