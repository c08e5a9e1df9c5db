"""
Payment processor gateway.

The core only needs three calls from the processor:

    authorize(amount)                       -> hold reference
    payout(booking_id, share, account)      -> transfer reference
    refund(hold_ref)                        -> refund reference

Any failure is raised as ``PaymentProcessorError``; callers decide whether it
blocks the transition (authorization) or is recorded for retry (payout, refund).
"""

import logging
import uuid
from decimal import Decimal

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PaymentProcessorError(Exception):
    """Raised when the processor rejects or cannot complete a request."""
    pass


class PaymentProcessor:
    """Interface implemented by concrete processors."""

    def authorize(self, amount: Decimal) -> str:
        raise NotImplementedError

    def payout(self, booking_id: int, share: Decimal, account: str) -> str:
        raise NotImplementedError

    def refund(self, hold_ref: str) -> str:
        raise NotImplementedError


def _to_kobo(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


class PaystackProcessor(PaymentProcessor):
    """Paystack adapter (amounts are sent in kobo)."""

    def __init__(self, secret_key: str = None, base_url: str = None, timeout: int = None):
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning("Paystack timeout calling %s", path)
            raise PaymentProcessorError("Payment processor timed out")
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("Paystack request error calling %s: %s", path, e)
            raise PaymentProcessorError("Payment processor unavailable")

        if not response.ok or not data.get("status") or not data.get("data"):
            message = data.get("message") or f"HTTP {response.status_code}"
            logger.warning("Paystack rejected %s: %s", path, message)
            raise PaymentProcessorError(message)
        return data["data"]

    def authorize(self, amount: Decimal) -> str:
        reference = f"hold_{uuid.uuid4().hex[:16]}"
        data = self._post("/transaction/initialize", {
            "amount": _to_kobo(amount),
            "reference": reference,
            "metadata": {"capture": "deferred"},
        })
        return data.get("reference", reference)

    def payout(self, booking_id: int, share: Decimal, account: str) -> str:
        if not account:
            raise PaymentProcessorError("Driver has not set up a payout account")
        data = self._post("/transfer", {
            "source": "balance",
            "amount": _to_kobo(share),
            "recipient": account,
            "reference": f"completion_{booking_id}",
            "reason": f"Payment for completed trip #{booking_id}",
        })
        return data.get("transfer_code") or data.get("reference")

    def refund(self, hold_ref: str) -> str:
        if not hold_ref:
            raise PaymentProcessorError("No payment reference to refund")
        data = self._post("/refund", {"transaction": hold_ref})
        return str(data.get("id") or data.get("transaction", {}).get("reference", hold_ref))


def get_payment_processor() -> PaymentProcessor:
    """Instantiate the processor configured by PAYMENT_PROCESSOR_CLASS."""
    return import_string(settings.PAYMENT_PROCESSOR_CLASS)()
