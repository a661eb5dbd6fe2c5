"""Tests for checkout, payment webhooks and verification."""

from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from app.checkout.gateway import CAPTURED, FAILED, RazorpayGateway, parse_webhook_event, to_minor_units
from app.checkout.pricing import quote
from app.core import messages
from app.core.config import clear_config_cache
from helpers import link_paid_event, make_admin, payment_failed_event, signed_webhook, signup


class TestQuote:
    def test_base_and_upsell(self):
        assert quote()["total"] == 47
        assert quote(has_upsell=True)["total"] == 107

    def test_coupons(self):
        assert quote(coupon="save50")["total"] == 23.5
        assert quote(has_upsell=True, coupon="SAVE50")["total"] == 53.5

    def test_minimum_charge(self):
        result = quote(coupon="TEST99")
        assert result["discount_percent"] == 99
        assert result["total"] == 0.5

    def test_empty_coupon_is_none(self):
        assert quote(coupon="  ")["coupon_code"] is None

    def test_unknown_coupon(self):
        with pytest.raises(HTTPException) as exc:
            quote(coupon="FREE100")
        assert exc.value.status_code == 400
        assert exc.value.detail == messages.INVALID_COUPON


class TestGatewayHelpers:
    def test_minor_units(self):
        assert to_minor_units(47) == 47000
        assert to_minor_units(0.5) == 500

    def test_signature_checked_by_sdk(self):
        gateway = RazorpayGateway("rzp_test_key", "rzp_test_secret")
        body, headers = signed_webhook({"event": "x"})
        assert gateway.verify_webhook_signature(body, headers["X-Razorpay-Signature"])
        assert not gateway.verify_webhook_signature(body, "deadbeef")
        assert not gateway.verify_webhook_signature(body, None)
        assert not gateway.verify_webhook_signature(b"\xff\xfe", headers["X-Razorpay-Signature"])

    def test_signature_refused_without_secret(self, monkeypatch):
        monkeypatch.delenv("RAZORPAY_WEBHOOK_SECRET")
        clear_config_cache()
        gateway = RazorpayGateway("rzp_test_key", "rzp_test_secret")
        body, headers = signed_webhook({"event": "x"})
        assert not gateway.verify_webhook_signature(body, headers["X-Razorpay-Signature"])

    def test_parse_link_paid(self):
        event = parse_webhook_event(link_paid_event("plink_9", {"purchase_id": "PUR_1"}, customer_id="cust_1"))
        assert event["status"] == CAPTURED
        assert event["charge_id"] == "plink_9"
        assert event["notes"]["purchase_id"] == "PUR_1"
        assert event["customer_id"] == "cust_1"

    def test_parse_failed(self):
        event = parse_webhook_event(payment_failed_event({"purchase_id": "PUR_1"}))
        assert event["status"] == FAILED
        assert event["charge_id"] == "pay_failed"


class TestCreatePayment:
    async def test_creates_pending_purchase(self, client, db, gateway):
        user = await signup(client)
        response = await client.post(
            "/checkout/payment",
            json={"name": "  Sara ", "has_upsell": True, "coupon_code": "SAVE50"},
            headers=user["headers"],
        )
        assert response.status_code == 200
        body = response.json()
        assert body["payment_url"].startswith("https://rzp.io/i/")

        purchase = await db.purchases.find_one({"purchase_id": body["purchase_id"]})
        assert purchase["status"] == "pending"
        assert purchase["amount_kwd"] == 53.5
        assert purchase["charge_id"] == body["charge_id"]

        link = gateway.links[0]
        assert link["notes"]["type"] == "course_purchase"
        assert link["notes"]["purchase_id"] == body["purchase_id"]
        assert link["callback_url"].endswith(f"/#/success?ref={body['purchase_id']}")

    async def test_name_validation(self, client):
        user = await signup(client)
        response = await client.post("/checkout/payment", json={"name": " a "}, headers=user["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == messages.INVALID_NAME

    async def test_already_purchased(self, client, db):
        user = await signup(client)
        await db.purchases.insert_one({"purchase_id": "PUR_X", "user_id": user["user_id"], "status": "completed"})
        response = await client.post("/checkout/payment", json={"name": "Sara"}, headers=user["headers"])
        assert response.status_code == 409

    async def test_gateway_failure_marks_failed(self, client, db, gateway):
        gateway.fail_create = True
        user = await signup(client)
        response = await client.post("/checkout/payment", json={"name": "Sara"}, headers=user["headers"])
        assert response.status_code == 502
        purchase = await db.purchases.find_one({"user_id": user["user_id"]})
        assert purchase["status"] == "failed"

    async def test_requires_login(self, client):
        response = await client.post("/checkout/payment", json={"name": "Sara"})
        assert response.status_code == 401


async def _start_checkout(client, user):
    response = await client.post("/checkout/payment", json={"name": "Sara"}, headers=user["headers"])
    return response.json()


class TestPaymentWebhook:
    async def test_captured_completes_and_grants_trial(self, client, db):
        user = await signup(client)
        session = await _start_checkout(client, user)

        body, headers = signed_webhook(
            link_paid_event(session["charge_id"], {"purchase_id": session["purchase_id"]})
        )
        response = await client.post("/webhooks/payment", content=body, headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "success"

        purchase = await db.purchases.find_one({"purchase_id": session["purchase_id"]})
        assert purchase["status"] == "completed"
        assert purchase["metadata"]["event"] == "payment_link.paid"

        subscription = await db.community_subscriptions.find_one({"user_id": user["user_id"]})
        assert subscription["status"] == "trial"
        profile = await db.profiles.find_one({"user_id": user["user_id"]})
        assert profile["has_community_access"] is True
        assert profile["community_trial_used"] is True

    async def test_captured_keeps_running_paid_subscription(self, client, db):
        user = await signup(client)
        period_end = (datetime.utcnow() + timedelta(days=20)).replace(microsecond=0)
        await db.community_subscriptions.insert_one({
            "user_id": user["user_id"],
            "status": "active",
            "plan": "monthly",
            "current_period_end": period_end,
            "token_id": "token_1",
        })
        session = await _start_checkout(client, user)

        body, headers = signed_webhook(
            link_paid_event(session["charge_id"], {"purchase_id": session["purchase_id"]})
        )
        response = await client.post("/webhooks/payment", content=body, headers=headers)
        assert response.json()["status"] == "success"

        subscription = await db.community_subscriptions.find_one({"user_id": user["user_id"]})
        assert subscription["status"] == "active"
        assert subscription["plan"] == "monthly"
        assert subscription["current_period_end"] == period_end
        assert subscription["token_id"] == "token_1"

    async def test_bad_signature_rejected(self, client):
        body, headers = signed_webhook({"event": "payment_link.paid"})
        headers["X-Razorpay-Signature"] = "0" * 64
        response = await client.post("/webhooks/payment", content=body, headers=headers)
        assert response.status_code == 400

    async def test_missing_purchase_acknowledged(self, client):
        body, headers = signed_webhook(link_paid_event("plink_1", {"purchase_id": "PUR_MISSING"}))
        response = await client.post("/webhooks/payment", content=body, headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "error"

        body, headers = signed_webhook(link_paid_event("plink_1", {}))
        response = await client.post("/webhooks/payment", content=body, headers=headers)
        assert response.json()["message"] == "Missing purchase_id in metadata"

    async def test_failed_then_late_capture(self, client, db):
        user = await signup(client)
        session = await _start_checkout(client, user)

        body, headers = signed_webhook(payment_failed_event({"purchase_id": session["purchase_id"]}))
        await client.post("/webhooks/payment", content=body, headers=headers)
        purchase = await db.purchases.find_one({"purchase_id": session["purchase_id"]})
        assert purchase["status"] == "failed"

        body, headers = signed_webhook(
            link_paid_event(session["charge_id"], {"purchase_id": session["purchase_id"]})
        )
        await client.post("/webhooks/payment", content=body, headers=headers)
        purchase = await db.purchases.find_one({"purchase_id": session["purchase_id"]})
        assert purchase["status"] == "completed"

    async def test_completed_never_reverted(self, client, db):
        user = await signup(client)
        session = await _start_checkout(client, user)

        body, headers = signed_webhook(
            link_paid_event(session["charge_id"], {"purchase_id": session["purchase_id"]})
        )
        await client.post("/webhooks/payment", content=body, headers=headers)
        await client.post("/webhooks/payment", content=body, headers=headers)

        body, headers = signed_webhook(payment_failed_event({"purchase_id": session["purchase_id"]}))
        await client.post("/webhooks/payment", content=body, headers=headers)

        purchase = await db.purchases.find_one({"purchase_id": session["purchase_id"]})
        assert purchase["status"] == "completed"


class TestVerifyPayment:
    async def test_verify_captured(self, client, db, gateway):
        user = await signup(client)
        session = await _start_checkout(client, user)
        gateway.statuses[session["charge_id"]] = CAPTURED

        response = await client.post(
            "/checkout/verify", json={"purchase_id": session["purchase_id"]}, headers=user["headers"]
        )
        assert response.json()["success"] is True
        assert (await db.profiles.find_one({"user_id": user["user_id"]}))["community_trial_used"] is True

        poll = await client.get(f"/checkout/purchases/{session['purchase_id']}", headers=user["headers"])
        assert poll.json()["status"] == "completed"

    async def test_verify_pending(self, client, gateway):
        user = await signup(client)
        session = await _start_checkout(client, user)
        response = await client.post(
            "/checkout/verify",
            json={"purchase_id": session["purchase_id"], "charge_id": session["charge_id"]},
            headers=user["headers"],
        )
        assert response.json() == {"success": False, "status": "pending"}

    async def test_verify_other_users_purchase(self, client):
        owner = await signup(client, email="owner@example.com")
        other = await signup(client, email="other@example.com")
        session = await _start_checkout(client, owner)
        response = await client.post(
            "/checkout/verify", json={"purchase_id": session["purchase_id"]}, headers=other["headers"]
        )
        assert response.status_code == 404


class TestManualPurchase:
    async def test_admin_grants_purchase(self, client, db):
        admin = await signup(client, email="admin@example.com")
        await make_admin(db, admin["user_id"])
        buyer = await signup(client, email="buyer@example.com")

        response = await client.post(
            "/admin/purchases/manual",
            json={"user_id": buyer["user_id"], "has_upsell": True},
            headers=admin["headers"],
        )
        assert response.status_code == 201
        body = response.json()
        assert body["amount_kwd"] == 107
        assert body["payment_ref"].startswith("manual-")

        me = (await client.get("/auth/me", headers=buyer["headers"])).json()["user"]
        assert me["has_purchased"] is True
        assert me["has_upsell"] is True
