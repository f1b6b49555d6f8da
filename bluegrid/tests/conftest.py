"""
Shared pytest fixtures for the BlueGrid Water Portal test suite.

Provides an in-process httpx AsyncClient backed by an in-memory mongomock
database, plus signed-in accounts for every role.
"""

import os
import sys
import tempfile
from pathlib import Path

os.environ.setdefault("JWT_SECRET", "test-only-secret-0123456789abcdefghijklmnop")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="bluegrid-uploads-"))

import pytest
import pytest_asyncio
import httpx
import mongomock
from passlib.context import CryptContext

# Ensure the bluegrid package is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from bluegrid import config, portal
from bluegrid.portal import app, lifespan, limiter

PASSWORD = "secret123"

ACCOUNTS = {
    "resident": {"email": "lakshmi@example.com", "full_name": "Lakshmi Narayanan",
                 "phone": "9847012345", "address": "Ward 3"},
    "other_resident": {"email": "joseph@example.com", "full_name": "Joseph Mathew",
                       "phone": None, "address": "Ward 5"},
    "panchayat_officer": {"email": "officer@example.com", "full_name": "Radhika Menon",
                          "phone": "9446001122", "address": None},
    "maintenance_technician": {"email": "tech@example.com", "full_name": "Suresh Kumar",
                               "phone": "9446003344", "address": None},
    "other_technician": {"email": "tech2@example.com", "full_name": "Anwar Sadath",
                         "phone": None, "address": None},
    "water_flow_controller": {"email": "control@example.com", "full_name": "Biju Varghese",
                              "phone": None, "address": None},
    "other_controller": {"email": "control2@example.com", "full_name": "Mini Thomas",
                         "phone": None, "address": None},
}

ROLE_OF = {
    "other_resident": "resident",
    "other_technician": "maintenance_technician",
    "other_controller": "water_flow_controller",
}


@pytest.fixture(autouse=True)
def offline_channels(monkeypatch):
    """Never reach a real SMTP server or Twilio from tests."""
    monkeypatch.setattr(config, "SMTP_USER", "")
    monkeypatch.setattr(config, "SMTP_PASSWORD", "")
    monkeypatch.setattr(config, "TWILIO_ACCOUNT_SID", "")
    monkeypatch.setattr(config, "TWILIO_AUTH_TOKEN", "")


@pytest_asyncio.fixture
async def client(monkeypatch):
    """In-process httpx AsyncClient over a fresh in-memory database."""
    monkeypatch.setattr(portal, "MongoClient", mongomock.MongoClient)
    # Cheap hashes keep account fixtures fast
    monkeypatch.setattr(portal, "pwd_context", CryptContext(schemes=["bcrypt"], bcrypt__rounds=4))
    # Disable rate limiting during tests so sign-in fixtures aren't throttled
    limiter.enabled = False

    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
            yield c


@pytest.fixture
def db(client):
    return portal.db


async def signin(client: httpx.AsyncClient, email: str, password: str = PASSWORD) -> dict:
    """Sign in and return Authorization headers dict."""
    resp = await client.post("/api/auth/signin", json={"email": email, "password": password})
    assert resp.status_code == 200, f"Sign-in failed for {email}: {resp.text}"
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest_asyncio.fixture
async def accounts(client, db):
    """One signed-in account per role (plus a spare of each), keyed by name.

    Each value holds ``id``, ``email`` and ``headers``.
    """
    out = {}
    for name, a in ACCOUNTS.items():
        role = ROLE_OF.get(name, name)
        user, _profile = portal.create_account(
            db, a["email"], PASSWORD, a["full_name"], a["phone"], a["address"],
            role, email_verified=True)
        out[name] = {"id": user["_id"], "email": a["email"],
                     "headers": await signin(client, a["email"])}
    return out


@pytest.fixture
def resident(accounts):
    return accounts["resident"]


@pytest.fixture
def officer(accounts):
    return accounts["panchayat_officer"]


@pytest.fixture
def technician(accounts):
    return accounts["maintenance_technician"]


@pytest.fixture
def controller(accounts):
    return accounts["water_flow_controller"]


@pytest.fixture
def sent(monkeypatch):
    """Record background notifications instead of sending them."""
    calls = []

    async def fake_dispatch(email, phone, subject, message):
        calls.append({"email": email, "phone": phone, "subject": subject, "message": message})

    monkeypatch.setattr(portal.notifier, "dispatch", fake_dispatch)
    return calls
