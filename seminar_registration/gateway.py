"""
Razorpay payment gateway client

Orders are created through the Razorpay REST API with HTTP basic auth.
The checkout itself happens in the browser; the server only sees the
(order id, payment id, signature) triple afterwards and checks it with
verify_payment_signature.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

import requests

from .config import AppConfig
from .exceptions import ConfigurationError, GatewayException
from .models import Order


logger = logging.getLogger(__name__)

UNAUTHORIZED_HINT = ("Razorpay authentication failed. Check RAZORPAY_KEY_ID "
                     "and RAZORPAY_KEY_SECRET in your environment")


def payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of 'order_id|payment_id'"""
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str,
                             secret: Optional[str]) -> bool:
    """
    Check a checkout signature against the key secret

    Returns False when the secret is missing or the digests differ.
    """
    if not secret or not signature:
        return False
    expected = payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode(), signature.encode())


def make_receipt() -> str:
    return f"seminar_{int(time.time() * 1000)}"


class RazorpayGateway:
    """
    Thin client for the Razorpay orders API

    Credentials come from AppConfig; nothing is sent when they are missing.
    """

    def __init__(self, config: AppConfig, session: Optional[requests.Session] = None):
        self.key_id = config.razorpay_key_id
        self.key_secret = config.razorpay_key_secret
        self.api_url = config.razorpay_api_url
        self.timeout = config.razorpay_timeout
        self.session = session or requests.Session()

    def ensure_configured(self) -> None:
        if not self.key_id or not self.key_secret:
            raise ConfigurationError(
                "RAZORPAY_KEY_ID",
                "Razorpay credentials not configured"
            )

    def create_order(self, amount_minor: int, currency: str, receipt: str) -> Order:
        """
        Create a payment order

        Args:
            amount_minor: Amount in the currency's minor unit (paise)
            currency: ISO currency code
            receipt: Unique receipt label

        Returns:
            Order with the amount in whole units

        Raises:
            ConfigurationError: If credentials are missing
            GatewayException: If the gateway rejects the request or is unreachable
        """
        self.ensure_configured()

        payload = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
        }
        try:
            response = self.session.post(
                f"{self.api_url}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Razorpay order request failed: %s", e)
            raise GatewayException("Failed to create order")

        if response.status_code != 200:
            raise GatewayException(
                self._error_description(response),
                status_code=response.status_code,
            )

        try:
            body = response.json()
            return Order(
                order_id=body["id"],
                amount=int(body.get("amount", amount_minor)) // 100,
                currency=body.get("currency", currency),
                receipt=body.get("receipt", receipt),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Unexpected Razorpay order response: %s", e)
            raise GatewayException("Failed to create order", status_code=response.status_code)

    @staticmethod
    def _error_description(response: requests.Response) -> str:
        try:
            description = response.json().get("error", {}).get("description")
        except ValueError:
            description = None
        if description:
            return description
        if response.status_code == 401:
            return UNAUTHORIZED_HINT
        return "Failed to create order"
