import os

# settings are read at import time
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SQLALCHEMY_URL", "sqlite://")
os.environ.setdefault("GATEWAY_RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "rzp_webhook_secret")
os.environ.setdefault("CASHFREE_APP_ID", "cf_app")
os.environ.setdefault("CASHFREE_SECRET_KEY", "cf_secret")
os.environ.setdefault("PHONEPE_MERCHANT_ID", "PGTESTMERCHANT")
os.environ.setdefault("PHONEPE_SALT_KEY", "phonepe-salt")
os.environ.setdefault("PHONEPE_SALT_INDEX", "1")
os.environ.setdefault("OPERATOR_EMAIL", "operator@example.com")
os.environ.setdefault("BREVO_API_KEY", "brevo-test-key")

import pytest
import requests
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from receiptdesk.constants.payment_status import PaymentMode
from receiptdesk.create_admin import create_admin
from receiptdesk.database import create_db_and_tables, engine
from receiptdesk.main import app
from receiptdesk.services import email_service, payment_service
from receiptdesk.services.user_directory import find_or_create_user


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


@pytest.fixture(autouse=True)
def db():
    create_db_and_tables()
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(db):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(db):
    # no context manager: the lifespan would dispose the shared in-memory engine
    return TestClient(app)


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    sent = []

    def fake_send_email(to, subject, html, attachments=None):
        sent.append({"to": to, "subject": subject, "html": html, "attachments": attachments or []})

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


@pytest.fixture
def cashfree_api(monkeypatch):
    """Stand-in for the Cashfree orders endpoint; records every request."""
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None, **kwargs):
        calls.append({"url": url, "json": json, "headers": headers})
        return FakeResponse(
            200,
            {
                "order_id": json["order_id"],
                "cf_order_id": 4242,
                "payment_session_id": "session_test_123",
            },
        )

    monkeypatch.setattr(requests, "post", fake_post)
    return calls


@pytest.fixture
def customer(session):
    return find_or_create_user(
        session,
        email="asha@example.com",
        name="Asha Rao",
        phone="+919876543210",
        address="12 MG Road, Bengaluru",
    )


@pytest.fixture
def make_payment(session, customer):
    def _make(amount=500, payment_mode=PaymentMode.UPI, gateway="cashfree", **kwargs):
        return payment_service.create_payment(
            session,
            user=customer,
            amount=amount,
            payment_mode=payment_mode,
            gateway=gateway,
            **kwargs,
        )

    return _make


@pytest.fixture
def admin_headers(client, session):
    create_admin(session, "admin", "admin@example.com", "s3cret-pass", "Site Admin")
    response = client.post("/admin/login", json={"username": "admin", "password": "s3cret-pass"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
