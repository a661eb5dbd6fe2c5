"""
Payment Gateway (Razorpay)
Hosted payment links, status lookups, saved-card renewals and webhook parsing.
Amounts enter in KWD and leave as fils (x1000).
"""

from typing import Optional

import razorpay
import structlog

from app.core.config import CURRENCY, get_config

logger = structlog.get_logger(__name__)

CAPTURED = "CAPTURED"
FAILED = "FAILED"
CANCELLED = "CANCELLED"
PENDING = "PENDING"


class GatewayError(Exception):
    """Raised when the payment provider rejects or cannot serve a request"""


def to_minor_units(amount_kwd: float) -> int:
    return int(round(amount_kwd * 1000))


def _status_from_event(event: str, entity_status: Optional[str]) -> str:
    if event in ("payment_link.paid", "payment.captured", "order.paid"):
        return CAPTURED
    if event == "payment.failed":
        return FAILED
    if event in ("payment_link.cancelled", "payment_link.expired"):
        return CANCELLED
    return normalize_status(entity_status)


def normalize_status(status: Optional[str]) -> str:
    status = (status or "").lower()
    if status in ("paid", "captured"):
        return CAPTURED
    if status == "failed":
        return FAILED
    if status in ("cancelled", "expired"):
        return CANCELLED
    return PENDING


def parse_webhook_event(data: dict) -> dict:
    """
    Flatten a Razorpay webhook into the fields the handlers use.

    charge_id is the payment link id when the event carries one, else the
    payment id. Notes of the link and the payment are merged.
    """
    payload = data.get("payload") or {}
    link = (payload.get("payment_link") or {}).get("entity") or {}
    payment = (payload.get("payment") or {}).get("entity") or {}
    card = payment.get("card") or {}

    notes = {}
    for source in (payment.get("notes"), link.get("notes")):
        if isinstance(source, dict):
            notes.update(source)

    event = data.get("event", "")
    return {
        "event": event,
        "charge_id": link.get("id") or payment.get("id"),
        "payment_id": payment.get("id"),
        "status": _status_from_event(event, link.get("status") or payment.get("status")),
        "notes": notes,
        "customer_id": payment.get("customer_id"),
        "token_id": payment.get("token_id"),
        "card_last_four": card.get("last4"),
        "card_brand": card.get("network"),
    }


class RazorpayGateway:
    """Thin wrapper around the Razorpay SDK"""

    def __init__(self, key_id: str, key_secret: str):
        self.client = razorpay.Client(auth=(key_id, key_secret))

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """X-Razorpay-Signature checked against the raw body with the webhook secret"""
        secret = get_config().RAZORPAY_WEBHOOK_SECRET
        if not signature or not secret:
            return False
        try:
            self.client.utility.verify_webhook_signature(body.decode(), signature, secret)
        except UnicodeDecodeError:
            return False
        except razorpay.errors.SignatureVerificationError:
            return False
        return True

    def create_payment_link(
        self,
        amount_kwd: float,
        description: str,
        customer: dict,
        notes: dict,
        callback_url: str,
        save_card: bool = False
    ) -> dict:
        """Hosted payment page; returns {charge_id, payment_url}"""
        data = {
            "amount": to_minor_units(amount_kwd),
            "currency": CURRENCY,
            "description": description,
            "customer": customer,
            "notes": {k: str(v) for k, v in notes.items()},
            "callback_url": callback_url,
            "callback_method": "get",
        }
        if save_card:
            data["options"] = {"checkout": {"recurring": "1"}}

        try:
            link = self.client.payment_link.create(data)
        except razorpay.errors.BadRequestError as e:
            logger.error("gateway_create_link_failed", error=str(e))
            raise GatewayError(str(e))
        except Exception as e:
            logger.error("gateway_unreachable", error=str(e))
            raise GatewayError(str(e))

        return {"charge_id": link["id"], "payment_url": link["short_url"]}

    def fetch_status(self, charge_id: str) -> str:
        try:
            link = self.client.payment_link.fetch(charge_id)
        except Exception as e:
            logger.error("gateway_fetch_failed", charge_id=charge_id, error=str(e))
            raise GatewayError(str(e))
        return normalize_status(link.get("status"))

    def charge_saved_card(
        self,
        amount_kwd: float,
        email: str,
        customer_id: str,
        token_id: str,
        notes: dict
    ) -> dict:
        """Off-session charge against a saved token; returns {charge_id, status}"""
        amount = to_minor_units(amount_kwd)
        try:
            order = self.client.order.create({
                "amount": amount,
                "currency": CURRENCY,
                "payment_capture": 1,
                "notes": {k: str(v) for k, v in notes.items()},
            })
            payment = self.client.payment.createRecurring({
                "email": email,
                "amount": amount,
                "currency": CURRENCY,
                "order_id": order["id"],
                "customer_id": customer_id,
                "token": token_id,
                "recurring": "1",
                "notes": {k: str(v) for k, v in notes.items()},
            })
        except Exception as e:
            logger.error("gateway_recurring_failed", customer_id=customer_id, error=str(e))
            raise GatewayError(str(e))

        payment_id = payment.get("razorpay_payment_id") or payment.get("id")
        status = PENDING
        if payment_id:
            try:
                status = normalize_status(self.client.payment.fetch(payment_id).get("status"))
            except Exception as e:
                logger.warning("gateway_recurring_status_unknown", payment_id=payment_id, error=str(e))
        return {"charge_id": payment_id or order["id"], "status": status}


def get_payment_gateway() -> RazorpayGateway:
    """FastAPI dependency; tests override it with a fake"""
    config = get_config()
    return RazorpayGateway(config.RAZORPAY_KEY_ID or "", config.RAZORPAY_KEY_SECRET or "")
