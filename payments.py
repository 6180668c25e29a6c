"""
PaymentLedger and the payment gateway client.

The gateway authorises the charge and hands the browser a client secret; once
the charge succeeds the client calls `record_payment`. The ledger trusts that
call: it does not re-check the transaction with the gateway, and it does not
link the payment to an application. Applications carry their own embedded
`payment` reference supplied by the client, so the two can drift apart.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from database import create_document, get_documents, to_number
from errors import GatewayError, MissingFields, MissingParameter

logger = logging.getLogger(__name__)

COLLECTION = "payments"
REQUIRED_FIELDS = ("scholarshipId", "amount", "transactionId", "email")

PAYMENT_GATEWAY_URL = os.getenv("PAYMENT_GATEWAY_URL", "https://api.stripe.com/v1/payment_intents")
PAYMENT_SECRET_KEY = os.getenv("PAYMENT_SECRET_KEY")
PAYMENT_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")


def record_payment(
    db,
    scholarshipId: Optional[str] = None,
    amount: Any = None,
    transactionId: Optional[str] = None,
    email: Optional[str] = None,
) -> str:
    supplied = {
        "scholarshipId": scholarshipId,
        "amount": amount,
        "transactionId": transactionId,
        "email": email,
    }
    missing = [k for k in REQUIRED_FIELDS if supplied[k] in (None, "")]
    if missing:
        raise MissingFields(missing)
    doc = {
        **supplied,
        "amount": to_number(amount, "amount"),
        "paidAt": datetime.now(timezone.utc),
        "status": "completed",
    }
    payment_id = create_document(db, COLLECTION, doc)
    logger.info("payment %s recorded for %s", transactionId, scholarshipId, extra={"email": email})
    return payment_id


def list_by_email(db, email: Optional[str]) -> List[Dict[str, Any]]:
    if not email:
        raise MissingParameter("Email is required")
    return get_documents(db, COLLECTION, {"email": email})


class PaymentGateway:
    """Thin client for the card processor's payment-intent endpoint.

    Calls are never retried: a repeated intent is a second charge attempt.
    """

    def __init__(
        self,
        secret_key: Optional[str] = PAYMENT_SECRET_KEY,
        url: str = PAYMENT_GATEWAY_URL,
        timeout_seconds: float = PAYMENT_TIMEOUT_SECONDS,
        currency: str = PAYMENT_CURRENCY,
        session: Optional[requests.Session] = None,
    ):
        self.secret_key = secret_key
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.currency = currency
        self._session = session or requests.Session()

    def create_payment_intent(self, amount: Any, metadata: Optional[Dict[str, Any]] = None) -> str:
        if not self.secret_key:
            raise GatewayError("Payment gateway is not configured")
        cents = int(round(to_number(amount, "amount") * 100))
        if cents <= 0:
            raise MissingFields(["amount"])
        form = {
            "amount": cents,
            "currency": self.currency,
            "payment_method_types[]": "card",
        }
        for key, value in (metadata or {}).items():
            if value is not None:
                form[f"metadata[{key}]"] = str(value)
        try:
            response = self._session.post(
                self.url,
                data=form,
                auth=(self.secret_key, ""),
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error("payment gateway unreachable: %s", exc)
            raise GatewayError() from exc
        if response.status_code >= 400:
            logger.error("payment gateway rejected intent", extra={"status_code": response.status_code})
            raise GatewayError()
        secret = response.json().get("client_secret")
        if not secret:
            raise GatewayError("Payment gateway returned no client secret")
        return secret


_gateway: Optional[PaymentGateway] = None


def get_gateway() -> PaymentGateway:
    """FastAPI dependency; one gateway client per process."""
    global _gateway
    if _gateway is None:
        _gateway = PaymentGateway()
    return _gateway
