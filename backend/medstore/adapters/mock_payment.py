import hashlib
import hmac
import time
from typing import Dict, Optional
from uuid import uuid4

from medstore.config import settings


class PaymentGatewayError(Exception):
    """Raised when the gateway cannot create an order (network, auth, ...)."""
    pass


class MockPaymentGateway:
    """
    Razorpay-shaped mock gateway.

    The client-side checkout popup is out of process; this adapter covers the
    two server-side touch points: creating the gateway order the popup pays
    against, and verifying the signature the popup hands back on success.
    """

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        delay_ms: int = 0,
        fail: bool = False,
    ):
        self.key_id = key_id or settings.PAYMENT_KEY_ID
        self.key_secret = (key_secret or settings.PAYMENT_KEY_SECRET).encode("utf-8")
        self.delay_seconds = delay_ms / 1000.0
        self.fail = fail

    def create_order(self, amount_cents: int, currency: str, receipt: str) -> Dict:
        """
        Create a gateway order for `amount_cents` (minor units).

        Returns {id, amount, currency, receipt, status}.

        Raises:
            PaymentGatewayError: if the gateway is unavailable.
        """
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.fail:
            raise PaymentGatewayError("Simulated gateway outage")
        return {
            "id": f"order_{uuid4().hex[:14]}",
            "amount": amount_cents,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
        }

    def sign(self, gateway_order_id: str, payment_id: str) -> str:
        """Signature the gateway attaches to a successful payment."""
        message = f"{gateway_order_id}|{payment_id}".encode("utf-8")
        return hmac.new(self.key_secret, message, hashlib.sha256).hexdigest()

    def verify_signature(
        self, gateway_order_id: str, payment_id: str, signature: Optional[str]
    ) -> bool:
        if not signature:
            return False
        expected = self.sign(gateway_order_id, payment_id)
        return hmac.compare_digest(expected, signature)

    def health_check(self) -> bool:
        return not self.fail
