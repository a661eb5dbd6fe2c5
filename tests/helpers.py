"""
Shared test helpers: fake payment gateway, auth and webhook builders, seed data.
"""

import hashlib
import hmac
import json

from app.checkout.gateway import CAPTURED, PENDING, GatewayError, RazorpayGateway

WEBHOOK_SECRET = "whsec_test"


class FakeGateway(RazorpayGateway):
    """Network calls are recorded; webhook signatures go through the real SDK check"""

    def __init__(self):
        super().__init__("rzp_test_key", "rzp_test_secret")
        self.links = []
        self.statuses = {}
        self.recurring = []
        self.fail_create = False
        self.recurring_status = CAPTURED
        self.recurring_error_for = set()

    def create_payment_link(self, amount_kwd, description, customer, notes, callback_url, save_card=False):
        if self.fail_create:
            raise GatewayError("gateway down")
        charge_id = f"plink_{len(self.links) + 1}"
        self.links.append({
            "charge_id": charge_id,
            "amount_kwd": amount_kwd,
            "customer": customer,
            "notes": notes,
            "callback_url": callback_url,
            "save_card": save_card,
        })
        return {"charge_id": charge_id, "payment_url": f"https://rzp.io/i/{charge_id}"}

    def fetch_status(self, charge_id):
        return self.statuses.get(charge_id, PENDING)

    def charge_saved_card(self, amount_kwd, email, customer_id, token_id, notes):
        if notes["user_id"] in self.recurring_error_for:
            raise GatewayError("card network timeout")
        self.recurring.append({"amount_kwd": amount_kwd, "token_id": token_id, "notes": notes})
        return {"charge_id": f"pay_renew_{len(self.recurring)}", "status": self.recurring_status}


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def signup(client, email="member@example.com", name="Member", password="secret123") -> dict:
    response = await client.post("/auth/signup", json={"email": email, "password": password, "name": name})
    assert response.status_code == 201, response.text
    body = response.json()
    return {"token": body["token"], "user_id": body["user"]["user_id"], "headers": auth(body["token"])}


def signed_webhook(payload: dict) -> tuple:
    body = json.dumps(payload).encode()
    signature = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()
    return body, {"X-Razorpay-Signature": signature, "Content-Type": "application/json"}


def link_paid_event(charge_id: str, notes: dict, **payment) -> dict:
    return {
        "event": "payment_link.paid",
        "payload": {
            "payment_link": {"entity": {"id": charge_id, "status": "paid", "notes": notes}},
            "payment": {"entity": {"id": payment.pop("payment_id", "pay_1"), "status": "captured", **payment}},
        },
    }


def payment_failed_event(notes: dict, payment_id="pay_failed") -> dict:
    return {
        "event": "payment.failed",
        "payload": {"payment": {"entity": {"id": payment_id, "status": "failed", "notes": notes}}},
    }


async def seed_lessons(db, count=3, free_first=True):
    lessons = []
    for i in range(count):
        lesson = {
            "lesson_id": f"l{i + 1}",
            "module_id": "m1" if i < 2 else "m2",
            "module_title": "اليوم ١" if i < 2 else "اليوم ٢",
            "title": f"Lesson {i + 1}",
            "duration": 10 + i,
            "video_url": f"https://www.youtube.com/watch?v=vid{i + 1}",
            "order_index": i + 1,
            "is_free": free_first and i == 0,
        }
        await db.lessons.insert_one(dict(lesson))
        lessons.append(lesson)
    return lessons


async def make_admin(db, user_id, community=False):
    field = "is_community_admin" if community else "is_admin"
    await db.profiles.update_one({"user_id": user_id}, {"$set": {field: True}})


async def community_member(client, email="member@example.com", name="Member") -> dict:
    user = await signup(client, email=email, name=name)
    response = await client.post("/community/trial", headers=user["headers"])
    assert response.status_code == 200, response.text
    return user
