"""
Pytest configuration and fixtures for the Aari order API tests.

Provides an in-memory MongoDB (mongomock), a fake object storage, sample
order data and a TestClient wired to all of them.
"""

import os

# main.py builds its app at import time, so the environment must be complete first
_TEST_ENV = {
    "DATABASE_URL": "mongodb://localhost:27017",
    "DATABASE_NAME": "aari_test",
    "AWS_REGION": "ap-south-1",
    "AWS_ACCESS_KEY_ID": "test-key",
    "AWS_SECRET_ACCESS_KEY": "test-secret",
    "S3_BUCKET_NAME": "test-bucket",
    "PORT": "8000",
    "ALLOWED_ORIGINS": "http://localhost:3000",
    "REDIS_URL": "memory://",
    "RATE_LIMIT_MAX_REQUESTS": "1000",
}
for _key, _value in _TEST_ENV.items():
    os.environ.setdefault(_key, _value)

import threading
from datetime import datetime, timedelta
from typing import List, Optional

import mongomock
import pytest
from fastapi.testclient import TestClient

from cache import MemoryCache
from config import Settings
from database import create_document, ensure_indexes
from errors import Internal
from main import create_app
from schemas import Aari
from services import Services
from storage import DesignFile

BUCKET_URL = "https://test-bucket.s3.ap-south-1.amazonaws.com"


class FakeStorage:
    """Object storage double: URLs are derived from the file name."""

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.uploaded: List[str] = []
        self._lock = threading.Lock()

    def upload(self, file: DesignFile) -> str:
        if file.filename == self.fail_on:
            raise Internal("Failed to upload design")
        url = f"{BUCKET_URL}/Aari/{file.filename}"
        with self._lock:
            self.uploaded.append(url)
        return url

    def close(self) -> None:
        pass


def design(name: str, content_type: str = "image/png") -> DesignFile:
    return DesignFile(filename=name, content_type=content_type, data=b"\x89PNG" + name.encode())


def design_url(name: str) -> str:
    return f"{BUCKET_URL}/Aari/{name}"


@pytest.fixture
def sample_order_fields() -> dict:
    """Form fields of a valid Aari submission, as the API receives them."""
    return {
        "customerId": "64b7f0c2a1b2c3d4e5f60718",
        "orderId": "AARI-1001",
        "name": "Meena",
        "phoneNumber": "+91-9876543210",
        "submissionDate": "2024-05-01T10:00:00",
        "deliveryDate": "2024-05-10T10:00:00",
        "address": "12 Main Road, Dindigul",
        "additionalInformation": "Gold thread on sleeves",
        "staffName": "Kavya",
        "workType": "bridal",
        "quotedPrice": "1500",
    }


@pytest.fixture
def sample_customer_fields() -> dict:
    return {
        "name": "Lakshmi",
        "phoneNumber": "+91-9123456780",
        "alternateNumber": "+91-",
        "address": "4 Temple Street",
        "town": "Palani",
        "dateOfBirth": "14/02/1995",
        "maritalStatus": "Married",
    }


@pytest.fixture
def db():
    database = mongomock.MongoClient()["aari_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache(ttl=60)


@pytest.fixture
def services(db, storage, cache) -> Services:
    return Services.build(db, storage, cache)


@pytest.fixture
def make_order(db):
    """Insert an order document directly, bypassing upload and validation."""
    counter = {"n": 0}

    def _make(**overrides) -> dict:
        counter["n"] += 1
        n = counter["n"]
        data = {
            "order_id": f"AARI-{n:04d}",
            "customer_id": "64b7f0c2a1b2c3d4e5f60718",
            "name": f"Customer {n}",
            "phone_number": "+91-9876543210",
            "address": "12 Main Road",
            "staff_name": "Kavya",
            "submission_date": datetime(2024, 5, 1),
            "delivery_date": datetime(2024, 5, 1) + timedelta(days=n),
            "work_type": "normal",
            "designs": [design_url(f"order-{n}.png")],
            "quoted_price": 1000.0,
        }
        data.update(overrides)
        create_document(db, "aari", Aari(**data))
        return db["aari"].find_one({"order_id": data["order_id"]})

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, **_TEST_ENV)


@pytest.fixture
def client(settings, services) -> TestClient:
    app = create_app(settings=settings, services=services)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def api_prefix(settings) -> str:
    return f"/{settings.API_VERSION}"
