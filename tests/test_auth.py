"""Tests for account endpoints."""

import asyncio
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from app.auth import service
from app.core import messages
from helpers import auth, signup


class TestSignUp:
    """Tests for POST /auth/signup."""

    async def test_signup_creates_profile(self, client, db):
        response = await client.post(
            "/auth/signup",
            json={"email": "  Sara@Example.COM ", "password": "secret123", "name": " Sara "},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["user"]["email"] == "sara@example.com"
        assert body["user"]["name"] == "Sara"
        assert body["user"]["has_purchased"] is False
        assert body["user"]["completed_lessons"] == []

        profile = await db.profiles.find_one({"email": "sara@example.com"})
        assert profile["is_admin"] is False
        assert profile["has_community_access"] is False
        assert profile["community_trial_used"] is False
        assert profile["community_level"] == 1
        assert profile["password_hash"] != "secret123"

    async def test_short_password_rejected(self, client):
        response = await client.post(
            "/auth/signup", json={"email": "a@example.com", "password": "12345", "name": "A"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == messages.PASSWORD_TOO_SHORT

    async def test_duplicate_email_conflict(self, client):
        await signup(client, email="dup@example.com")
        response = await client.post(
            "/auth/signup", json={"email": "DUP@example.com", "password": "secret123", "name": "B"}
        )
        assert response.status_code == 409
        assert response.json()["detail"] == messages.EMAIL_EXISTS

    async def test_malformed_email_rejected(self, client, db):
        for email in ("not-an-email", "sara@", "@example.com"):
            response = await client.post(
                "/auth/signup", json={"email": email, "password": "secret123", "name": "Sara"}
            )
            assert response.status_code == 422
        assert await db.profiles.count_documents({}) == 0


class TestSignIn:
    """Tests for POST /auth/login and GET /auth/me."""

    async def test_login_and_me(self, client):
        await signup(client, email="login@example.com")
        response = await client.post(
            "/auth/login", json={"email": "login@example.com", "password": "secret123"}
        )
        assert response.status_code == 200
        token = response.json()["token"]

        me = await client.get("/auth/me", headers=auth(token))
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "login@example.com"
        assert "password_hash" not in me.json()["profile"]

    async def test_wrong_password(self, client):
        await signup(client, email="wrong@example.com")
        response = await client.post(
            "/auth/login", json={"email": "wrong@example.com", "password": "nope-nope"}
        )
        assert response.status_code == 401
        assert response.json()["detail"] == messages.INVALID_CREDENTIALS

    async def test_unknown_email(self, client):
        response = await client.post(
            "/auth/login", json={"email": "ghost@example.com", "password": "secret123"}
        )
        assert response.status_code == 401

    async def test_me_requires_token(self, client):
        assert (await client.get("/auth/me")).status_code == 401
        bad = await client.get("/auth/me", headers=auth("not-a-jwt"))
        assert bad.status_code == 401

    async def test_user_object_counts_only_completed_purchases(self, client, db):
        user = await signup(client)
        await db.purchases.insert_one(
            {"purchase_id": "PUR_1", "user_id": user["user_id"], "status": "pending", "has_upsell": True}
        )
        me = (await client.get("/auth/me", headers=user["headers"])).json()["user"]
        assert me["has_purchased"] is False
        assert me["has_upsell"] is False

        await db.purchases.update_one({"purchase_id": "PUR_1"}, {"$set": {"status": "completed"}})
        me = (await client.get("/auth/me", headers=user["headers"])).json()["user"]
        assert me["has_purchased"] is True
        assert me["has_upsell"] is True


class TestPasswordReset:
    """Tests for forgot / reset password."""

    async def test_generic_answer_for_unknown_email(self, client, db):
        response = await client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 200
        assert response.json()["message"] == messages.RESET_EMAIL_SENT
        assert await db.password_resets.count_documents({}) == 0

    async def test_malformed_email_rejected(self, client):
        response = await client.post("/auth/forgot-password", json={"email": "nobody"})
        assert response.status_code == 422

    async def test_reset_flow_single_use(self, client, monkeypatch):
        await signup(client, email="reset@example.com")
        monkeypatch.setattr(service.secrets, "token_urlsafe", lambda n: "fixed-reset-token")

        await client.post("/auth/forgot-password", json={"email": "reset@example.com"})

        short = await client.post(
            "/auth/reset-password", json={"token": "fixed-reset-token", "new_password": "123"}
        )
        assert short.status_code == 400

        ok = await client.post(
            "/auth/reset-password", json={"token": "fixed-reset-token", "new_password": "brand-new"}
        )
        assert ok.status_code == 200

        again = await client.post(
            "/auth/reset-password", json={"token": "fixed-reset-token", "new_password": "another1"}
        )
        assert again.status_code == 400
        assert again.json()["detail"] == messages.INVALID_RESET_TOKEN

        login = await client.post(
            "/auth/login", json={"email": "reset@example.com", "password": "brand-new"}
        )
        assert login.status_code == 200

    async def test_unknown_token(self, client):
        response = await client.post(
            "/auth/reset-password", json={"token": "missing", "new_password": "secret123"}
        )
        assert response.status_code == 400

    async def test_token_consumed_once_under_concurrent_resets(self, db):
        await db.password_resets.insert_one({
            "token_hash": service._hash_token("race-token"),
            "user_id": "USR_1",
            "expires_at": datetime.utcnow() + timedelta(hours=1),
            "used": False,
        })
        results = await asyncio.gather(
            service.reset_password(db, "race-token", "first-pass"),
            service.reset_password(db, "race-token", "second-pass"),
            return_exceptions=True,
        )
        assert sum(1 for r in results if isinstance(r, dict)) == 1
        failures = [r for r in results if isinstance(r, HTTPException)]
        assert len(failures) == 1
        assert failures[0].detail == messages.INVALID_RESET_TOKEN

    async def test_expired_token(self, db):
        await db.password_resets.insert_one({
            "token_hash": service._hash_token("old-token"),
            "user_id": "USR_1",
            "expires_at": datetime.utcnow() - timedelta(minutes=1),
            "used": False,
        })
        with pytest.raises(HTTPException) as exc:
            await service.reset_password(db, "old-token", "secret123")
        assert exc.value.status_code == 400
        record = await db.password_resets.find_one({"token_hash": service._hash_token("old-token")})
        assert record["used"] is False


class TestLogout:
    async def test_logout_clears_playback_positions(self, client, db):
        user = await signup(client)
        await db.playback_positions.insert_one(
            {"user_id": user["user_id"], "lesson_id": "l1", "position_seconds": 120}
        )
        response = await client.post("/auth/logout", headers=user["headers"])
        assert response.status_code == 200
        assert await db.playback_positions.count_documents({"user_id": user["user_id"]}) == 0
