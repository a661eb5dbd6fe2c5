"""
Pytest configuration and fixtures: in-memory Mongo, fake gateway, API client.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"
os.environ["RENEWALS_CRON_SECRET"] = "cron-secret"

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from app.admin.analytics import cache
from app.checkout.gateway import get_payment_gateway
from app.core.config import clear_config_cache
from app.core.database import create_indexes, get_db
from app.main import create_app
from helpers import FakeGateway


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv("FILES_STORAGE_DIR", str(tmp_path / "files"))
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture(autouse=True)
async def clear_analytics_cache():
    await cache.clear()
    yield
    await cache.clear()


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["academy_test"]
    await create_indexes(database)
    return database


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(db, gateway):
    application = create_app()

    async def override_db():
        return db

    application.dependency_overrides[get_db] = override_db
    application.dependency_overrides[get_payment_gateway] = lambda: gateway
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
