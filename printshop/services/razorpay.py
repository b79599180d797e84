"""
Razorpay REST client and signature checks
"""
import hashlib
import hmac
from typing import Optional

import requests
from loguru import logger

from printshop.config import settings
from printshop.utils.errors import PaymentGatewayError

API_BASE = "https://api.razorpay.com/v1"
# Razorpay rejects receipts longer than 40 characters
RECEIPT_MAX_LENGTH = 40


def hmac_sha256(secret: str, message) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    if not signature or not secret:
        return False
    return hmac.compare_digest(hmac_sha256(secret, body), signature)


def receipt_for(order_id) -> str:
    return f"ord_{order_id}"[:RECEIPT_MAX_LENGTH]


class RazorpayClient:
    def __init__(self, key_id: str, key_secret: str, base_url: str = API_BASE, timeout: float = 15.0,
                 session: requests.Session = None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def create_order(self, amount_paise: int, currency: str, receipt: str, notes: dict = None) -> dict:
        payload = {
            "amount": amount_paise,
            "currency": currency,
            "receipt": receipt[:RECEIPT_MAX_LENGTH],
            "notes": notes or {},
        }
        try:
            response = self.session.post(
                f"{self.base_url}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise PaymentGatewayError("Could not reach the payment gateway")

        if response.status_code >= 400:
            logger.error(f"Razorpay rejected order creation: {response.status_code} - {response.text}")
            raise PaymentGatewayError("Payment gateway rejected the order")

        return response.json()

    def verify_payment_signature(self, razorpay_order_id: str, razorpay_payment_id: str, signature: str) -> bool:
        expected = hmac_sha256(self.key_secret, f"{razorpay_order_id}|{razorpay_payment_id}")
        return hmac.compare_digest(expected, signature or "")


def get_razorpay() -> Optional[RazorpayClient]:
    """FastAPI dependency; None when credentials are missing"""
    if not settings.razorpay_configured:
        return None
    return RazorpayClient(settings.razorpay_key_id, settings.razorpay_key_secret)
